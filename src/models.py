"""
Data Models and Enums
Shared across all modules
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

# =============================================================================
# ENUMS
# =============================================================================

class ExecutionMode(Enum):
    """Execution environment"""
    LOCAL = "local"
    PIPELINE = "pipeline"

class EnvironmentKind(Enum):
    """Place of an environment in the hub-and-spoke layout"""
    HUB = "hub"
    GATEWAY = "gateway"
    SPOKE = "spoke"

class SubnetRole(Enum):
    """Subnet role tag"""
    MANAGEMENT = "management"
    SHARED = "shared"
    GATEWAY = "gateway"
    TRUST = "trust"
    UNTRUST = "untrust"
    CUSTOM = "custom"
    DEV = "dev"

class NextHopType(Enum):
    """Route next hop (Azure values)"""
    VIRTUAL_NETWORK_GATEWAY = "VirtualNetworkGateway"
    INTERNET = "Internet"
    VNET_LOCAL = "VnetLocal"
    NONE = "None"

class StepLayer(Enum):
    """Provisioning layers, in execution order"""
    RESOURCE_GROUP = 1
    NETWORK = 2
    COMPUTE = 3
    TOPOLOGY = 4
    ROUTING = 5
    EXTENSIONS = 6

class StepStatus(Enum):
    """Step result status"""
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"

class ApplyAction(Enum):
    """Outcome of an idempotent apply"""
    CREATED = "created"
    UNCHANGED = "unchanged"

# =============================================================================
# CONFIGURATION MODELS
# =============================================================================

@dataclass(frozen=True)
class SubnetSpec:
    """Declared subnet"""
    name: str
    cidr: str
    role: SubnetRole

@dataclass(frozen=True)
class MachineSpec:
    """Declared machine, placed on a subnet by role"""
    name: str
    os: str
    subnet: SubnetRole

@dataclass(frozen=True)
class Environment:
    """Environment configuration - immutable once loaded"""
    name: str
    kind: EnvironmentKind
    resource_group: str
    location: str
    cidr: str
    vnet_name: str
    subnets: Tuple[SubnetSpec, ...] = ()
    # Capability flags, set explicitly per environment
    nat_gateway: bool = False
    vpn_gateway: bool = False
    machines: Tuple[MachineSpec, ...] = ()

    def subnet(self, role: SubnetRole) -> Optional[SubnetSpec]:
        for spec in self.subnets:
            if spec.role == role:
                return spec
        return None

# =============================================================================
# PROVISIONED RESOURCE MODELS
# =============================================================================

@dataclass
class NetworkHandle:
    """Identifiers produced by the Network Provisioner for one environment"""
    environment: str
    vnet_id: str
    vnet_name: str
    subnet_ids: Dict[SubnetRole, str]
    location: str
    resource_group: str
    nat_gateway_id: Optional[str] = None
    vpn_gateway_id: Optional[str] = None

@dataclass
class ComputeHandle:
    """Machines produced by the Compute Provisioner for one environment"""
    environment: str
    windows_vm_ids: List[str] = field(default_factory=list)
    linux_vm_ids: List[str] = field(default_factory=list)
    location_by_vm: Dict[str, str] = field(default_factory=dict)

# =============================================================================
# TOPOLOGY MODELS
# =============================================================================

@dataclass(frozen=True)
class PeeringLink:
    """One direction of a peering, as the network fabric stores it"""
    environment: str
    remote: str
    name: str
    allow_gateway_transit: bool
    use_remote_gateways: bool

@dataclass(frozen=True)
class PeeringEdge:
    """
    Peering between two environments.
    allow_gateway_transit is set on the local side, use_remote_gateway on the remote side.
    """
    local: str
    remote: str
    allow_gateway_transit: bool = False
    use_remote_gateway: bool = False

    @property
    def pair(self) -> FrozenSet[str]:
        return frozenset((self.local, self.remote))

    @property
    def name(self) -> str:
        return f"{self.local}-{self.remote}"

    def links(self) -> Tuple[PeeringLink, PeeringLink]:
        """Expand into the two directional peerings."""
        return (
            PeeringLink(
                environment=self.local,
                remote=self.remote,
                name=f"{self.local}-to-{self.remote}",
                allow_gateway_transit=self.allow_gateway_transit,
                use_remote_gateways=False,
            ),
            PeeringLink(
                environment=self.remote,
                remote=self.local,
                name=f"{self.remote}-to-{self.local}",
                allow_gateway_transit=False,
                use_remote_gateways=self.use_remote_gateway,
            ),
        )

@dataclass(frozen=True)
class Route:
    """Route entry"""
    name: str
    address_prefix: str
    next_hop_type: NextHopType

@dataclass(frozen=True)
class RouteTable:
    """Route table owned by one environment"""
    environment: str
    name: str
    routes: Tuple[Route, ...]

@dataclass(frozen=True)
class RouteTableAssociation:
    """Binds one subnet to one route table"""
    environment: str
    subnet_role: SubnetRole
    subnet_name: str
    subnet_id: str
    route_table: str

@dataclass(frozen=True)
class TopologyResult:
    """Resolver output, in deterministic order"""
    peerings: Tuple[PeeringEdge, ...]
    route_tables: Tuple[RouteTable, ...]
    associations: Tuple[RouteTableAssociation, ...]

    def route_table_for(self, environment: str) -> Optional[RouteTable]:
        for table in self.route_tables:
            if table.environment == environment:
                return table
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data rendering for export."""
        return {
            'peerings': [
                {
                    'local': e.local,
                    'remote': e.remote,
                    'allow_gateway_transit': e.allow_gateway_transit,
                    'use_remote_gateway': e.use_remote_gateway,
                }
                for e in self.peerings
            ],
            'route_tables': [
                {
                    'environment': t.environment,
                    'name': t.name,
                    'routes': [
                        {
                            'name': r.name,
                            'address_prefix': r.address_prefix,
                            'next_hop_type': r.next_hop_type.value,
                        }
                        for r in t.routes
                    ],
                }
                for t in self.route_tables
            ],
            'associations': [
                {
                    'environment': a.environment,
                    'subnet_role': a.subnet_role.value,
                    'subnet_name': a.subnet_name,
                    'subnet_id': a.subnet_id,
                    'route_table': a.route_table,
                }
                for a in self.associations
            ],
        }

# =============================================================================
# PLAN MODELS
# =============================================================================

@dataclass(frozen=True)
class ProvisioningStep:
    """Single plan step"""
    key: str
    layer: StepLayer
    environment: Optional[str] = None
    depends_on: Tuple[str, ...] = ()

@dataclass
class StepResult:
    """Individual step result"""
    key: str
    status: StepStatus
    message: str
    duration_ms: int
    output: Any = None
