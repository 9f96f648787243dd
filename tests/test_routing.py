"""
Tests for route strategies, route tables and subnet associations.
"""

import pytest

from errors import DependencyError
from models import NextHopType, SubnetRole
from policy import REFERENCE_POLICY, derive_peerings, peers_of
from routing import (
    DEFAULT_ROUTE,
    HUB_GATEWAY,
    NAT_EGRESS,
    build_associations,
    build_route_table,
    route_table_name,
    strategy_for,
)
from conftest import make_handle


def _table(environments, name):
    edges = derive_peerings(environments, REFERENCE_POLICY)
    env = next(e for e in environments if e.name == name)
    return build_route_table(env, environments, peers_of(name, edges))


class TestStrategySelection:
    """Test strategy selection by NAT capability."""

    def test_nat_environment_uses_local_egress(self, reference_environments):
        clinical = reference_environments[2]
        assert strategy_for(clinical) is NAT_EGRESS

    def test_environment_without_nat_uses_hub(self, reference_environments):
        velocity = reference_environments[4]
        assert strategy_for(velocity) is HUB_GATEWAY

    def test_hub_gateway_single_default_route(self, reference_environments):
        routes = HUB_GATEWAY.routes(reference_environments[4], [("clinical", "10.20.0.0/16")])

        assert len(routes) == 1
        assert routes[0].address_prefix == DEFAULT_ROUTE
        assert routes[0].next_hop_type == NextHopType.VIRTUAL_NETWORK_GATEWAY


class TestBuildRouteTable:
    """Test route tables for the reference topology."""

    def test_table_name(self, reference_environments):
        assert route_table_name(reference_environments[3]) == "rt-non_clinical"

    def test_velocity_forced_to_hub(self, reference_environments):
        table = _table(reference_environments, "velocity")

        assert table.name == "rt-velocity"
        assert [(r.name, r.address_prefix, r.next_hop_type) for r in table.routes] == [
            ("default-to-hub", "0.0.0.0/0", NextHopType.VIRTUAL_NETWORK_GATEWAY),
        ]

    def test_gateway_forced_to_hub(self, reference_environments):
        table = _table(reference_environments, "gateway")
        assert [r.name for r in table.routes] == ["default-to-hub"]

    def test_clinical_egress_local_and_remote_via_hub(self, reference_environments):
        table = _table(reference_environments, "clinical")

        assert [(r.name, r.address_prefix, r.next_hop_type) for r in table.routes] == [
            ("default-local-egress", "0.0.0.0/0", NextHopType.INTERNET),
            ("to-non_clinical-via-hub", "10.30.0.0/16", NextHopType.VIRTUAL_NETWORK_GATEWAY),
            ("to-velocity-via-hub", "10.40.0.0/16", NextHopType.VIRTUAL_NETWORK_GATEWAY),
        ]

    def test_non_clinical_routes(self, reference_environments):
        table = _table(reference_environments, "non_clinical")

        assert [r.name for r in table.routes] == [
            "default-local-egress",
            "to-clinical-via-hub",
            "to-velocity-via-hub",
        ]

    def test_default_route_comes_first(self, reference_environments):
        for name in ("gateway", "clinical", "non_clinical", "velocity"):
            assert _table(reference_environments, name).routes[0].address_prefix == DEFAULT_ROUTE

    def test_peered_networks_get_no_explicit_route(self, reference_environments):
        table = _table(reference_environments, "clinical")
        prefixes = {r.address_prefix for r in table.routes}

        assert "10.0.0.0/16" not in prefixes
        assert "10.10.0.0/16" not in prefixes


class TestBuildAssociations:
    """Test subnet-to-route-table associations."""

    def test_management_subnet_is_skipped(self, reference_environments):
        clinical = reference_environments[2]
        table = _table(reference_environments, "clinical")

        associations = build_associations(
            clinical, make_handle(clinical), table, REFERENCE_POLICY.unrouted_roles
        )

        assert [a.subnet_role for a in associations] == [SubnetRole.SHARED, SubnetRole.CUSTOM]
        assert all(a.route_table == "rt-clinical" for a in associations)
        assert associations[0].subnet_name == "snet-clinical-shared"
        assert associations[0].subnet_id.endswith("/subnets/snet-clinical-shared")

    def test_gateway_trust_and_untrust_associated(self, reference_environments):
        gateway = reference_environments[1]
        table = _table(reference_environments, "gateway")

        associations = build_associations(
            gateway, make_handle(gateway), table, REFERENCE_POLICY.unrouted_roles
        )

        assert [a.subnet_role for a in associations] == [SubnetRole.UNTRUST, SubnetRole.TRUST]

    def test_missing_subnet_id_is_dependency_error(self, reference_environments):
        velocity = reference_environments[4]
        handle = make_handle(velocity)
        del handle.subnet_ids[SubnetRole.DEV]

        with pytest.raises(DependencyError) as exc:
            build_associations(
                velocity, handle, _table(reference_environments, "velocity"),
                REFERENCE_POLICY.unrouted_roles,
            )
        assert exc.value.environment == "velocity"
        assert exc.value.subject == "snet-velocity-dev"
