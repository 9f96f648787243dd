"""
Shared test fixtures for the hub-and-spoke network provisioner.
"""

import pytest
import sys
import os
from unittest.mock import MagicMock

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from models import (
    Environment,
    EnvironmentKind,
    NetworkHandle,
    SubnetRole,
    SubnetSpec,
)
from registry import EnvironmentRegistry

CONFIG_FILE = os.path.join(os.path.dirname(__file__), '..', 'config', 'environments.yaml')

SUBSCRIPTION = "/subscriptions/00000000-0000-0000-0000-000000000000"


def make_environment(name, kind, octet, roles, nat=False, vpn=False, location="eastus", machines=()):
    """Environment with a /16 VNet and one /24 subnet per role."""
    subnets = []
    for index, role in enumerate(roles):
        subnet_name = "GatewaySubnet" if role == SubnetRole.GATEWAY else f"snet-{name}-{role.value}"
        subnets.append(SubnetSpec(
            name=subnet_name,
            cidr=f"10.{octet}.{index}.0/24",
            role=role,
        ))
    return Environment(
        name=name,
        kind=kind,
        resource_group=f"rg-{name}",
        location=location,
        cidr=f"10.{octet}.0.0/16",
        vnet_name=f"vnet-{name}",
        subnets=tuple(subnets),
        nat_gateway=nat,
        vpn_gateway=vpn,
        machines=tuple(machines),
    )


def make_handle(environment, vpn_gateway_id=None):
    """NetworkHandle with fake Azure ids for every declared subnet."""
    rg = f"{SUBSCRIPTION}/resourceGroups/{environment.resource_group}"
    vnet_id = f"{rg}/providers/Microsoft.Network/virtualNetworks/{environment.vnet_name}"
    return NetworkHandle(
        environment=environment.name,
        vnet_id=vnet_id,
        vnet_name=environment.vnet_name,
        subnet_ids={spec.role: f"{vnet_id}/subnets/{spec.name}" for spec in environment.subnets},
        location=environment.location,
        resource_group=environment.resource_group,
        nat_gateway_id=f"{rg}/providers/Microsoft.Network/natGateways/nat-{environment.name}" if environment.nat_gateway else None,
        vpn_gateway_id=vpn_gateway_id,
    )


@pytest.fixture
def reference_environments():
    """Reference 5-environment topology."""
    return [
        make_environment("hub", EnvironmentKind.HUB, 0,
                         [SubnetRole.GATEWAY, SubnetRole.MANAGEMENT, SubnetRole.SHARED],
                         nat=True, vpn=True),
        make_environment("gateway", EnvironmentKind.GATEWAY, 10,
                         [SubnetRole.MANAGEMENT, SubnetRole.UNTRUST, SubnetRole.TRUST]),
        make_environment("clinical", EnvironmentKind.SPOKE, 20,
                         [SubnetRole.MANAGEMENT, SubnetRole.SHARED, SubnetRole.CUSTOM],
                         nat=True),
        make_environment("non_clinical", EnvironmentKind.SPOKE, 30,
                         [SubnetRole.MANAGEMENT, SubnetRole.SHARED, SubnetRole.CUSTOM],
                         nat=True),
        make_environment("velocity", EnvironmentKind.SPOKE, 40,
                         [SubnetRole.MANAGEMENT, SubnetRole.SHARED, SubnetRole.DEV]),
    ]


@pytest.fixture
def reference_registry(reference_environments):
    return EnvironmentRegistry(reference_environments)


@pytest.fixture
def reference_handles(reference_environments):
    """Network outputs for every reference environment."""
    handles = {}
    for env in reference_environments:
        vpn_id = None
        if env.vpn_gateway:
            vpn_id = f"{SUBSCRIPTION}/resourceGroups/{env.resource_group}/providers/Microsoft.Network/virtualNetworkGateways/vpngw-{env.name}"
        handles[env.name] = make_handle(env, vpn_gateway_id=vpn_id)
    return handles


@pytest.fixture
def mock_auth():
    """AuthConfig stand-in exposing mocked Azure clients."""
    auth = MagicMock()
    auth.network_client = MagicMock()
    auth.resource_client = MagicMock()
    return auth


@pytest.fixture
def config_file():
    return CONFIG_FILE


@pytest.fixture
def sample_run_summary():
    """Sample run summary."""
    return {
        "phase": "apply",
        "start_time": "2024-01-01T10:00:00",
        "end_time": "2024-01-01T10:05:00",
        "duration_seconds": 300.0,
        "total_steps": 27,
        "succeeded": 25,
        "failed": 1,
        "skipped": 1,
        "results": [
            {"key": "network:velocity", "status": "FAILED", "message": "quota exceeded", "duration_ms": 1200},
            {"key": "compute:velocity", "status": "SKIPPED", "message": "Dependency not satisfied: network:velocity", "duration_ms": 0},
        ],
    }


def edge_index(edges):
    """Peering edges keyed by their unordered pair."""
    return {edge.pair: edge for edge in edges}
