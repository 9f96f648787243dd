"""
Route Generation
Two composable strategies, selected per environment by its NAT capability:
- HubGatewayStrategy: everything goes to the hub VPN gateway
- NatEgressStrategy: internet egress stays local via NAT, remote networks go to the hub
"""

from typing import FrozenSet, List, Tuple

from errors import DependencyError
from models import (
    Environment,
    NetworkHandle,
    NextHopType,
    Route,
    RouteTable,
    RouteTableAssociation,
    SubnetRole,
)

DEFAULT_ROUTE = "0.0.0.0/0"


class HubGatewayStrategy:
    """Default route via the hub VPN gateway."""

    name = "hub-gateway"

    def routes(self, environment: Environment, remote_cidrs: List[Tuple[str, str]]) -> Tuple[Route, ...]:
        return (
            Route(
                name="default-to-hub",
                address_prefix=DEFAULT_ROUTE,
                next_hop_type=NextHopType.VIRTUAL_NETWORK_GATEWAY,
            ),
        )


class NatEgressStrategy:
    """Local egress via NAT first, then one route per remote network via the hub."""

    name = "nat-egress"

    def routes(self, environment: Environment, remote_cidrs: List[Tuple[str, str]]) -> Tuple[Route, ...]:
        routes = [
            Route(
                name="default-local-egress",
                address_prefix=DEFAULT_ROUTE,
                next_hop_type=NextHopType.INTERNET,
            )
        ]
        for remote_name, cidr in remote_cidrs:
            routes.append(Route(
                name=f"to-{remote_name}-via-hub",
                address_prefix=cidr,
                next_hop_type=NextHopType.VIRTUAL_NETWORK_GATEWAY,
            ))
        return tuple(routes)


HUB_GATEWAY = HubGatewayStrategy()
NAT_EGRESS = NatEgressStrategy()


def strategy_for(environment: Environment):
    """Pick the route strategy from the environment's NAT capability flag."""
    return NAT_EGRESS if environment.nat_gateway else HUB_GATEWAY


def route_table_name(environment: Environment) -> str:
    return f"rt-{environment.name}"


def build_route_table(environment: Environment,
                      environments: List[Environment],
                      peers: FrozenSet[str]) -> RouteTable:
    """
    Route table for one environment.

    Remote networks are environments that are neither this one nor directly
    peered with it; their traffic must transit the hub gateway.
    """
    remote_cidrs = [
        (env.name, env.cidr)
        for env in environments
        if env.name != environment.name and env.name not in peers
    ]
    return RouteTable(
        environment=environment.name,
        name=route_table_name(environment),
        routes=strategy_for(environment).routes(environment, remote_cidrs),
    )


def build_associations(environment: Environment,
                       handle: NetworkHandle,
                       table: RouteTable,
                       unrouted_roles: FrozenSet[SubnetRole]) -> List[RouteTableAssociation]:
    """
    One association per routed subnet, in subnet declaration order.

    Raises:
        DependencyError: if a declared subnet has no provisioned id
    """
    associations = []
    for spec in environment.subnets:
        if spec.role in unrouted_roles:
            continue
        subnet_id = handle.subnet_ids.get(spec.role)
        if not subnet_id:
            raise DependencyError(
                f"Subnet '{spec.name}' ({spec.role.value}) of '{environment.name}' "
                f"has no provisioned id",
                environment=environment.name,
                subject=spec.name,
                precondition="subnet id produced by the network step",
            )
        associations.append(RouteTableAssociation(
            environment=environment.name,
            subnet_role=spec.role,
            subnet_name=spec.name,
            subnet_id=subnet_id,
            route_table=table.name,
        ))
    return associations
