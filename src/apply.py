"""
Topology Apply
Creates the resolver's peerings, route tables and subnet associations.
Existing resources with matching parameters are left alone; mismatches are
reported as drift and never overwritten.
"""

from typing import Dict, List, Tuple

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.network.models import RouteTable as RouteTableModel

from errors import DependencyError, DriftError
from models import (
    ApplyAction,
    NetworkHandle,
    PeeringEdge,
    PeeringLink,
    RouteTable,
    RouteTableAssociation,
)


def _same_id(a: str, b: str) -> bool:
    # Azure resource ids are case-insensitive
    return (a or "").lower() == (b or "").lower()


def _handle(handles: Dict[str, NetworkHandle], environment: str, subject: str) -> NetworkHandle:
    try:
        return handles[environment]
    except KeyError:
        raise DependencyError(
            f"No network output for '{environment}' while applying {subject}",
            environment=environment,
            subject=subject,
            precondition="network step succeeded for every environment referenced",
        ) from None


class TopologyApplier:
    """
    Applies a TopologyResult against Azure.
    Safe to re-run after an interrupted apply.
    """

    def __init__(self, auth_config):
        """
        Initialize TopologyApplier.

        Args:
            auth_config: AuthConfig instance providing Azure clients
        """
        self.auth = auth_config

    @property
    def network(self):
        return self.auth.network_client

    # -------------------------------------------------------------------------
    # Peerings
    # -------------------------------------------------------------------------

    def apply_peerings(self,
                       peerings: Tuple[PeeringEdge, ...],
                       handles: Dict[str, NetworkHandle]) -> Dict[str, ApplyAction]:
        """Apply both directions of every edge, transit side first."""
        results = {}
        for edge in peerings:
            for link in edge.links():
                results[link.name] = self.apply_peering(link, handles)
        return results

    def apply_peering(self, link: PeeringLink, handles: Dict[str, NetworkHandle]) -> ApplyAction:
        local = _handle(handles, link.environment, f"peering {link.name}")
        remote = _handle(handles, link.remote, f"peering {link.name}")

        desired = {
            'remote_virtual_network': {'id': remote.vnet_id},
            'allow_virtual_network_access': True,
            'allow_forwarded_traffic': True,
            'allow_gateway_transit': link.allow_gateway_transit,
            'use_remote_gateways': link.use_remote_gateways,
        }

        try:
            existing = self.network.virtual_network_peerings.get(
                local.resource_group, local.vnet_name, link.name
            )
        except ResourceNotFoundError:
            existing = None

        if existing is not None:
            mismatched = []
            existing_remote = existing.remote_virtual_network.id if existing.remote_virtual_network else None
            if not _same_id(existing_remote, remote.vnet_id):
                mismatched.append('remote_virtual_network')
            for field in ('allow_virtual_network_access', 'allow_forwarded_traffic',
                          'allow_gateway_transit', 'use_remote_gateways'):
                if bool(getattr(existing, field)) != desired[field]:
                    mismatched.append(field)
            if mismatched:
                raise DriftError(
                    f"Peering {link.name} on {local.vnet_name} differs in: {', '.join(mismatched)}",
                    environment=link.environment,
                    subject=link.name,
                    precondition="existing peering matches target parameters",
                )
            print(f"  = Peering {link.name} unchanged")
            return ApplyAction.UNCHANGED

        self.network.virtual_network_peerings.begin_create_or_update(
            local.resource_group,
            local.vnet_name,
            link.name,
            desired
        ).result()
        print(f"  ✓ Peering {link.name} created")
        return ApplyAction.CREATED

    # -------------------------------------------------------------------------
    # Route tables
    # -------------------------------------------------------------------------

    def apply_route_table(self, table: RouteTable, handle: NetworkHandle) -> Tuple[ApplyAction, str]:
        """
        Returns:
            (action, route table id)
        """
        desired_routes = [
            {
                'name': route.name,
                'address_prefix': route.address_prefix,
                'next_hop_type': route.next_hop_type.value,
            }
            for route in table.routes
        ]

        try:
            existing = self.network.route_tables.get(handle.resource_group, table.name)
        except ResourceNotFoundError:
            existing = None

        if existing is not None:
            current = {
                r.name: (r.address_prefix, getattr(r.next_hop_type, 'value', r.next_hop_type))
                for r in (existing.routes or [])
            }
            target = {
                r['name']: (r['address_prefix'], r['next_hop_type'])
                for r in desired_routes
            }
            if current != target:
                raise DriftError(
                    f"Route table {table.name} of '{table.environment}' has routes "
                    f"{sorted(current)}, expected {sorted(target)}",
                    environment=table.environment,
                    subject=table.name,
                    precondition="existing route table matches target routes",
                )
            print(f"  = Route table {table.name} unchanged")
            return ApplyAction.UNCHANGED, existing.id

        created = self.network.route_tables.begin_create_or_update(
            handle.resource_group,
            table.name,
            {
                'location': handle.location,
                'routes': desired_routes,
            }
        ).result()
        print(f"  ✓ Route table {table.name} created ({len(desired_routes)} routes)")
        return ApplyAction.CREATED, created.id

    # -------------------------------------------------------------------------
    # Associations
    # -------------------------------------------------------------------------

    def apply_associations(self,
                           associations: List[RouteTableAssociation],
                           route_table_id: str,
                           handle: NetworkHandle) -> Dict[str, ApplyAction]:
        return {
            association.subnet_name: self.apply_association(association, route_table_id, handle)
            for association in associations
        }

    def apply_association(self,
                          association: RouteTableAssociation,
                          route_table_id: str,
                          handle: NetworkHandle) -> ApplyAction:
        subject = f"subnet {association.subnet_name}"
        try:
            subnet = self.network.subnets.get(
                handle.resource_group, handle.vnet_name, association.subnet_name
            )
        except ResourceNotFoundError:
            raise DependencyError(
                f"Subnet '{association.subnet_name}' of '{association.environment}' does not exist",
                environment=association.environment,
                subject=subject,
                precondition="subnet created by the network step",
            ) from None

        if subnet.route_table is not None:
            if _same_id(subnet.route_table.id, route_table_id):
                print(f"  = {association.subnet_name} → {association.route_table} unchanged")
                return ApplyAction.UNCHANGED
            raise DriftError(
                f"Subnet '{association.subnet_name}' of '{association.environment}' is associated "
                f"with {subnet.route_table.id}, expected {association.route_table}",
                environment=association.environment,
                subject=subject,
                precondition="a subnet has at most one route table",
            )

        subnet.route_table = RouteTableModel(id=route_table_id)
        self.network.subnets.begin_create_or_update(
            handle.resource_group,
            handle.vnet_name,
            association.subnet_name,
            subnet
        ).result()
        print(f"  ✓ {association.subnet_name} → {association.route_table}")
        return ApplyAction.CREATED
