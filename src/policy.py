"""
Topology Policy
Declarative table of peering rules. New environments join the topology by kind;
new connection patterns are added as rules, not as pairwise calls.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple

from errors import ConfigurationError
from models import Environment, EnvironmentKind, PeeringEdge, SubnetRole


@dataclass(frozen=True)
class PeeringRule:
    """Peer every environment of kind `source` with every environment whose kind is in `targets`."""
    source: EnvironmentKind
    targets: FrozenSet[EnvironmentKind]
    allow_gateway_transit: bool = False
    use_remote_gateway: bool = False


@dataclass(frozen=True)
class TopologyPolicy:
    rules: Tuple[PeeringRule, ...]
    # Kinds that receive a route table steering traffic to the hub
    routed_kinds: FrozenSet[EnvironmentKind] = frozenset({EnvironmentKind.GATEWAY, EnvironmentKind.SPOKE})
    # Subnets never associated with a forced route table
    unrouted_roles: FrozenSet[SubnetRole] = frozenset({SubnetRole.MANAGEMENT})
    # Subnet the hub VPN gateway lives on
    gateway_subnet_role: SubnetRole = SubnetRole.GATEWAY

    def routed(self, environments: List[Environment]) -> List[Environment]:
        """Environments that get a route table. VPN gateway owners are routing roots."""
        return [
            env for env in environments
            if env.kind in self.routed_kinds and not env.vpn_gateway
        ]


REFERENCE_POLICY = TopologyPolicy(
    rules=(
        # Hub is the transit root
        PeeringRule(
            source=EnvironmentKind.HUB,
            targets=frozenset({EnvironmentKind.GATEWAY, EnvironmentKind.SPOKE}),
            allow_gateway_transit=True,
            use_remote_gateway=True,
        ),
        # Lateral gateway-to-spoke edges, no transit
        PeeringRule(
            source=EnvironmentKind.GATEWAY,
            targets=frozenset({EnvironmentKind.SPOKE}),
        ),
    ),
)


def derive_peerings(environments: List[Environment], policy: TopologyPolicy) -> Tuple[PeeringEdge, ...]:
    """
    Expand the policy table into a set of peering edges.

    Order follows rule order, then source and target declaration order.
    Self-pairs are skipped and each unordered pair is kept once.

    Raises:
        ConfigurationError: if two rules produce the same pair with different flags
    """
    edges: Dict[FrozenSet[str], PeeringEdge] = {}

    for rule in policy.rules:
        sources = [env for env in environments if env.kind == rule.source]
        targets = [env for env in environments if env.kind in rule.targets]
        for source in sources:
            for target in targets:
                if source.name == target.name:
                    continue
                edge = PeeringEdge(
                    local=source.name,
                    remote=target.name,
                    allow_gateway_transit=rule.allow_gateway_transit,
                    use_remote_gateway=rule.use_remote_gateway,
                )
                existing = edges.get(edge.pair)
                if existing is None:
                    edges[edge.pair] = edge
                elif not _same_flags(existing, edge):
                    raise ConfigurationError(
                        f"Peering {existing.name} is required twice with conflicting transit flags",
                        environment=source.name,
                        subject=existing.name,
                        precondition="one set of transit flags per environment pair",
                    )

    return tuple(edges.values())


def _same_flags(a: PeeringEdge, b: PeeringEdge) -> bool:
    # Compare per side, so the same pair in either orientation is handled
    return set(a.links()) == set(b.links())


def peers_of(environment: str, edges: Tuple[PeeringEdge, ...]) -> FrozenSet[str]:
    """Environments directly peered with `environment`."""
    peers = set()
    for edge in edges:
        if environment in edge.pair:
            peers.update(edge.pair - {environment})
    return frozenset(peers)
