"""
Network Provisioner
Creates one environment's resource group, virtual network, subnets and
optional NAT / VPN gateways. Reads nothing from other environments.
"""

from typing import Dict, Optional

import yaml
from azure.core.exceptions import ResourceNotFoundError

from errors import ConfigurationError, DriftError
from models import Environment, NetworkHandle, SubnetRole
from registry import validate_subnets

PUBLIC_IP_SKU = {'name': 'Standard'}
NAT_GATEWAY_SKU = {'name': 'Standard'}
VPN_GATEWAY_SKU = {'name': 'VpnGw1', 'tier': 'VpnGw1'}


class NetworkProvisioner:
    """
    Provisions the network layer for one environment at a time.
    Every create is a create-or-update, so re-running converges on the same resources.
    """

    def __init__(self, auth_config):
        """
        Initialize NetworkProvisioner.

        Args:
            auth_config: AuthConfig instance providing Azure clients
        """
        self.auth = auth_config

    @property
    def network(self):
        return self.auth.network_client

    def ensure_resource_group(self, environment: Environment) -> str:
        """Create or update the environment's resource group."""
        group = self.auth.resource_client.resource_groups.create_or_update(
            environment.resource_group,
            {'location': environment.location}
        )
        print(f"  ✓ Resource group {environment.resource_group} ({environment.location})")
        return group.id

    def check_preconditions(self, environment: Environment):
        """
        Fail before any resource is created.

        Raises:
            ConfigurationError: invalid subnets, or a capability without its subnet
        """
        validate_subnets(environment)

        if environment.nat_gateway and environment.subnet(SubnetRole.SHARED) is None:
            raise ConfigurationError(
                f"Environment '{environment.name}' requires a NAT gateway but declares no 'shared' subnet",
                environment=environment.name,
                subject=SubnetRole.SHARED.value,
                precondition="NAT gateway attaches to the shared subnet",
            )
        if environment.vpn_gateway and environment.subnet(SubnetRole.GATEWAY) is None:
            raise ConfigurationError(
                f"Environment '{environment.name}' requires a VPN gateway but declares no 'gateway' subnet",
                environment=environment.name,
                subject=SubnetRole.GATEWAY.value,
                precondition="VPN gateway lives on the gateway subnet",
            )

    def provision(self, environment: Environment) -> NetworkHandle:
        """
        Provision the VNet and its subnets.

        Args:
            environment: Environment to provision

        Returns:
            NetworkHandle with the VNet id and subnet ids keyed by role
        """
        self.check_preconditions(environment)

        print(f"Provisioning network for {environment.name}...")

        nat_gateway_id = None
        if environment.nat_gateway:
            nat_gateway_id = self._ensure_nat_gateway(environment)

        vnet = self._ensure_vnet(environment)

        subnet_ids: Dict[SubnetRole, str] = {}
        for spec in environment.subnets:
            nat_id = nat_gateway_id if spec.role == SubnetRole.SHARED else None
            subnet = self._ensure_subnet(environment, spec, nat_id)
            subnet_ids[spec.role] = subnet.id

        vpn_gateway_id = None
        if environment.vpn_gateway:
            vpn_gateway_id = self._ensure_vpn_gateway(environment, subnet_ids[SubnetRole.GATEWAY])

        print(f"  ✓ {environment.vnet_name}: {len(subnet_ids)} subnets")

        return NetworkHandle(
            environment=environment.name,
            vnet_id=vnet.id,
            vnet_name=environment.vnet_name,
            subnet_ids=subnet_ids,
            location=environment.location,
            resource_group=environment.resource_group,
            nat_gateway_id=nat_gateway_id,
            vpn_gateway_id=vpn_gateway_id,
        )

    def _ensure_vnet(self, environment: Environment):
        # A VNet PUT without its subnets would drop them, so only create when absent
        try:
            existing = self.network.virtual_networks.get(environment.resource_group, environment.vnet_name)
        except ResourceNotFoundError:
            existing = None

        if existing is not None:
            prefixes = list(existing.address_space.address_prefixes or [])
            if environment.cidr not in prefixes:
                raise DriftError(
                    f"VNet {environment.vnet_name} of '{environment.name}' has address space "
                    f"{prefixes}, expected {environment.cidr}",
                    environment=environment.name,
                    subject=environment.vnet_name,
                    precondition="existing VNet matches declared CIDR",
                )
            return existing

        return self.network.virtual_networks.begin_create_or_update(
            environment.resource_group,
            environment.vnet_name,
            {
                'location': environment.location,
                'address_space': {'address_prefixes': [environment.cidr]},
            }
        ).result()

    def _ensure_subnet(self, environment: Environment, spec, nat_gateway_id: Optional[str]):
        params = {'address_prefix': spec.cidr}
        if nat_gateway_id:
            params['nat_gateway'] = {'id': nat_gateway_id}

        try:
            existing = self.network.subnets.get(
                environment.resource_group, environment.vnet_name, spec.name
            )
        except ResourceNotFoundError:
            existing = None

        if existing is not None:
            if existing.address_prefix != spec.cidr:
                raise DriftError(
                    f"Subnet '{spec.name}' of '{environment.name}' has prefix "
                    f"{existing.address_prefix}, expected {spec.cidr}",
                    environment=environment.name,
                    subject=spec.name,
                    precondition="existing subnet matches declared CIDR",
                )
            # Keep associations made by the routing layer
            if existing.route_table is not None:
                params['route_table'] = {'id': existing.route_table.id}

        return self.network.subnets.begin_create_or_update(
            environment.resource_group,
            environment.vnet_name,
            spec.name,
            params
        ).result()

    def _ensure_public_ip(self, environment: Environment, name: str) -> str:
        address = self.network.public_ip_addresses.begin_create_or_update(
            environment.resource_group,
            name,
            {
                'location': environment.location,
                'sku': PUBLIC_IP_SKU,
                'public_ip_allocation_method': 'Static',
            }
        ).result()
        return address.id

    def _ensure_nat_gateway(self, environment: Environment) -> str:
        public_ip_id = self._ensure_public_ip(environment, f"pip-nat-{environment.name}")
        nat = self.network.nat_gateways.begin_create_or_update(
            environment.resource_group,
            f"nat-{environment.name}",
            {
                'location': environment.location,
                'sku': NAT_GATEWAY_SKU,
                'public_ip_addresses': [{'id': public_ip_id}],
            }
        ).result()
        print(f"  ✓ NAT gateway nat-{environment.name}")
        return nat.id

    def _ensure_vpn_gateway(self, environment: Environment, gateway_subnet_id: str) -> str:
        public_ip_id = self._ensure_public_ip(environment, f"pip-vpngw-{environment.name}")
        gateway = self.network.virtual_network_gateways.begin_create_or_update(
            environment.resource_group,
            f"vpngw-{environment.name}",
            {
                'location': environment.location,
                'gateway_type': 'Vpn',
                'vpn_type': 'RouteBased',
                'sku': VPN_GATEWAY_SKU,
                'ip_configurations': [{
                    'name': 'default',
                    'subnet': {'id': gateway_subnet_id},
                    'public_ip_address': {'id': public_ip_id},
                    'private_ip_allocation_method': 'Dynamic',
                }],
            }
        ).result()
        print(f"  ✓ VPN gateway vpngw-{environment.name}")
        return gateway.id


# =============================================================================
# HANDLE SERIALIZATION
# =============================================================================

def handle_to_dict(handle: NetworkHandle) -> Dict:
    return {
        'environment': handle.environment,
        'vnet_id': handle.vnet_id,
        'vnet_name': handle.vnet_name,
        'subnet_ids': {role.value: subnet_id for role, subnet_id in handle.subnet_ids.items()},
        'location': handle.location,
        'resource_group': handle.resource_group,
        'nat_gateway_id': handle.nat_gateway_id,
        'vpn_gateway_id': handle.vpn_gateway_id,
    }


def handle_from_dict(data: Dict) -> NetworkHandle:
    return NetworkHandle(
        environment=data['environment'],
        vnet_id=data['vnet_id'],
        vnet_name=data['vnet_name'],
        subnet_ids={SubnetRole(role): subnet_id for role, subnet_id in data.get('subnet_ids', {}).items()},
        location=data['location'],
        resource_group=data['resource_group'],
        nat_gateway_id=data.get('nat_gateway_id'),
        vpn_gateway_id=data.get('vpn_gateway_id'),
    )


def load_handles(handles_file: str) -> Dict[str, NetworkHandle]:
    """Load network outputs (one entry per environment) from YAML file."""
    with open(handles_file, 'r') as f:
        data = yaml.safe_load(f)

    if not data:
        return {}

    handles = [handle_from_dict(entry) for entry in data.get('networks', [])]
    return {handle.environment: handle for handle in handles}
