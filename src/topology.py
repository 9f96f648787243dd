"""
Topology Resolver
Pure function from the network outputs of all environments to the peering
edge set, the route table set and the subnet association set.
No network calls are made here.
"""

from typing import Dict, List, Set

from errors import ConfigurationError, DependencyError
from models import NetworkHandle, TopologyResult
from policy import REFERENCE_POLICY, TopologyPolicy, derive_peerings, peers_of
from registry import EnvironmentRegistry
from routing import build_associations, build_route_table


class TopologyResolver:
    """
    Resolves the hub-and-spoke topology.

    The registry and policy are explicit inputs, so the same resolver gives the
    same result for the same handles every time it runs.
    """

    def __init__(self, registry: EnvironmentRegistry, policy: TopologyPolicy = REFERENCE_POLICY):
        self.registry = registry
        self.policy = policy

    def required_environments(self) -> List[str]:
        """Environments whose network outputs the resolution reads, in declaration order."""
        environments = self.registry.list_environments()
        required: Set[str] = {self.registry.hub().name}
        for edge in derive_peerings(list(environments), self.policy):
            required.update(edge.pair)
        for env in self.policy.routed(list(environments)):
            required.add(env.name)
        return [env.name for env in environments if env.name in required]

    def resolve(self, handles: Dict[str, NetworkHandle]) -> TopologyResult:
        """
        Resolve peerings, route tables and associations.

        Args:
            handles: NetworkHandle per environment name

        Returns:
            TopologyResult with every collection in deterministic order

        Raises:
            ConfigurationError: policy references a subnet role the hub does not declare
            DependencyError: a required network output is missing
        """
        environments = list(self.registry.list_environments())
        hub = self.registry.hub()

        if hub.subnet(self.policy.gateway_subnet_role) is None:
            raise ConfigurationError(
                f"Hub '{hub.name}' declares no '{self.policy.gateway_subnet_role.value}' subnet "
                f"for its VPN gateway",
                environment=hub.name,
                subject=self.policy.gateway_subnet_role.value,
                precondition="hub must declare a gateway subnet",
            )

        missing = [name for name in self.required_environments() if name not in handles]
        if missing:
            raise DependencyError(
                f"Network outputs missing for: {', '.join(missing)}",
                environment=missing[0],
                subject=", ".join(missing),
                precondition="every required environment's network is provisioned before resolution",
            )

        edges = derive_peerings(environments, self.policy)
        routed = self.policy.routed(environments)

        if routed and not handles[hub.name].vpn_gateway_id:
            raise DependencyError(
                f"Hub '{hub.name}' has no VPN gateway id; route tables of "
                f"{', '.join(env.name for env in routed)} cannot target it",
                environment=hub.name,
                subject="vpn_gateway",
                precondition="hub VPN gateway created before routing",
            )

        route_tables = []
        associations = []
        for env in routed:
            table = build_route_table(env, environments, peers_of(env.name, edges))
            route_tables.append(table)
            associations.extend(
                build_associations(env, handles[env.name], table, self.policy.unrouted_roles)
            )

        return TopologyResult(
            peerings=edges,
            route_tables=tuple(route_tables),
            associations=tuple(associations),
        )
