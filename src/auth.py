"""
Authentication and Client Management
Supports both local (Azure CLI login) and pipeline (managed identity / service principal) execution
"""

import os
from typing import Optional

from azure.identity import (
    AzureCliCredential,
    ChainedTokenCredential,
    DefaultAzureCredential,
    ManagedIdentityCredential,
)
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.resource import ResourceManagementClient

from models import ExecutionMode


class AuthConfig:
    """
    Handles authentication for both local and pipeline execution.

    LOCAL mode:    Uses the Azure CLI login of the operator.
    PIPELINE mode: Uses managed identity, falling back to the environment
                   (service principal variables) via DefaultAzureCredential.
    """

    def __init__(self,
                 mode: ExecutionMode = ExecutionMode.LOCAL,
                 subscription_id: Optional[str] = None,
                 credential=None):
        """
        Initialize authentication configuration.

        Args:
            mode: Execution mode (local or pipeline)
            subscription_id: Azure subscription ID. Defaults to AZURE_SUBSCRIPTION_ID.
            credential: Pre-built credential object (skips credential selection)
        """
        self.mode = mode
        self.subscription_id = subscription_id or os.environ.get("AZURE_SUBSCRIPTION_ID")
        self._credential = credential
        self._network_client = None  # Lazy initialized
        self._resource_client = None  # Lazy initialized

    def get_credential(self):
        """
        Get credential for the execution mode, cached after first use.

        Returns:
            Azure TokenCredential
        """
        if self._credential is None:
            if self.mode == ExecutionMode.LOCAL:
                self._credential = AzureCliCredential()
            else:
                self._credential = ChainedTokenCredential(
                    ManagedIdentityCredential(),
                    DefaultAzureCredential(),
                )
        return self._credential

    def _require_subscription(self) -> str:
        if not self.subscription_id:
            raise ValueError(
                "Azure subscription required: pass --subscription or set AZURE_SUBSCRIPTION_ID"
            )
        return self.subscription_id

    @property
    def network_client(self) -> NetworkManagementClient:
        """Lazy-initialized network management client."""
        if self._network_client is None:
            self._network_client = NetworkManagementClient(
                credential=self.get_credential(),
                subscription_id=self._require_subscription(),
            )
        return self._network_client

    @property
    def resource_client(self) -> ResourceManagementClient:
        """Lazy-initialized resource management client."""
        if self._resource_client is None:
            self._resource_client = ResourceManagementClient(
                credential=self.get_credential(),
                subscription_id=self._require_subscription(),
            )
        return self._resource_client

    def clear_client_cache(self):
        """Clear cached clients (useful for testing)"""
        self._network_client = None
        self._resource_client = None
