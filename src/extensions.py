"""
Extension Configuration
Timezone guard plus the collaborator boundary for OS-level configuration.
"""

from typing import Callable, Dict, Iterable

from errors import ConfigurationError
from models import ComputeHandle, Environment

# Azure region -> Windows timezone id
TIMEZONE_BY_LOCATION = {
    'eastus': 'Eastern Standard Time',
    'eastus2': 'Eastern Standard Time',
    'centralus': 'Central Standard Time',
    'northcentralus': 'Central Standard Time',
    'southcentralus': 'Central Standard Time',
    'westcentralus': 'Mountain Standard Time',
    'westus': 'Pacific Standard Time',
    'westus2': 'Pacific Standard Time',
    'westus3': 'US Mountain Standard Time',
    'canadacentral': 'Eastern Standard Time',
    'uksouth': 'GMT Standard Time',
    'ukwest': 'GMT Standard Time',
    'northeurope': 'GMT Standard Time',
    'westeurope': 'W. Europe Standard Time',
    'australiaeast': 'AUS Eastern Standard Time',
}

# apply_extension(vm_id, timezone) -> None
ExtensionApplier = Callable[[str, str], None]


def timezone_for(environment: Environment) -> str:
    """
    Raises:
        ConfigurationError: the environment's location has no timezone mapping
    """
    location = environment.location.lower().replace(" ", "")
    timezone = TIMEZONE_BY_LOCATION.get(location)
    if timezone is None:
        raise ConfigurationError(
            f"No timezone mapping for location '{environment.location}' of '{environment.name}'",
            environment=environment.name,
            subject=environment.location,
            precondition="every location maps to a known timezone",
        )
    return timezone


def validate_timezones(environments: Iterable[Environment]):
    """Fail fast for the first environment without a timezone mapping."""
    for environment in environments:
        timezone_for(environment)


class ExtensionConfigurator:
    """Applies the per-machine timezone through the injected extension callable."""

    def __init__(self, apply_extension: ExtensionApplier):
        self.apply_extension = apply_extension

    def configure(self, environment: Environment, compute: ComputeHandle) -> Dict[str, str]:
        timezone = timezone_for(environment)
        configured = {}
        for vm_id in compute.windows_vm_ids + compute.linux_vm_ids:
            self.apply_extension(vm_id, timezone)
            configured[vm_id] = timezone
        return configured
