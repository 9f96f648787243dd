"""
Environment Registry
Static set of environments, loaded once from YAML and immutable thereafter.
"""

import ipaddress
from typing import Dict, List, Tuple

import yaml

from errors import ConfigurationError
from models import Environment, EnvironmentKind, MachineSpec, SubnetRole, SubnetSpec


class EnvironmentRegistry:
    """
    Holds environments in declaration order.
    Passed explicitly to the resolver and plan builder - no module-level state.
    """

    def __init__(self, environments: List[Environment]):
        self._environments: Tuple[Environment, ...] = tuple(environments)
        self._by_name: Dict[str, Environment] = {}
        for env in self._environments:
            if env.name in self._by_name:
                raise ConfigurationError(
                    f"Environment '{env.name}' is declared more than once",
                    environment=env.name,
                    precondition="unique environment names",
                )
            self._by_name[env.name] = env

    def __len__(self) -> int:
        return len(self._environments)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def list_environments(self) -> Tuple[Environment, ...]:
        """All environments, in declaration order."""
        return self._environments

    def names(self) -> List[str]:
        return [env.name for env in self._environments]

    def get(self, name: str) -> Environment:
        try:
            return self._by_name[name]
        except KeyError:
            raise ConfigurationError(
                f"Environment '{name}' is not declared",
                environment=name,
                precondition="environment must be declared in the registry",
            ) from None

    def by_kind(self, kind: EnvironmentKind) -> List[Environment]:
        return [env for env in self._environments if env.kind == kind]

    def hub(self) -> Environment:
        hubs = self.by_kind(EnvironmentKind.HUB)
        if len(hubs) != 1:
            raise ConfigurationError(
                f"Expected exactly one hub environment, found {len(hubs)}",
                subject="hub",
                precondition="exactly one hub",
            )
        return hubs[0]

    def validate(self):
        """
        Configuration checks run before any provider call.

        Raises:
            ConfigurationError: on the first violated precondition
        """
        self.hub()

        networks = []
        for env in self._environments:
            try:
                network = ipaddress.ip_network(env.cidr)
            except ValueError as e:
                raise ConfigurationError(
                    f"Environment '{env.name}' has an invalid VNet CIDR '{env.cidr}': {e}",
                    environment=env.name,
                    subject=env.vnet_name,
                    precondition="valid CIDR",
                ) from e
            networks.append((env, network))

        for i, (env_a, net_a) in enumerate(networks):
            for env_b, net_b in networks[i + 1:]:
                if net_a.overlaps(net_b):
                    raise ConfigurationError(
                        f"VNet CIDR {env_a.cidr} of '{env_a.name}' overlaps "
                        f"{env_b.cidr} of '{env_b.name}'",
                        environment=env_a.name,
                        subject=env_b.name,
                        precondition="VNet CIDRs must not overlap",
                    )

        for env in self._environments:
            validate_subnets(env)


def validate_subnets(environment: Environment):
    """
    Subnet CIDRs must be disjoint sub-ranges of the VNet CIDR, one subnet per role.

    Raises:
        ConfigurationError: naming the environment and subnet
    """
    try:
        vnet = ipaddress.ip_network(environment.cidr)
    except ValueError as e:
        raise ConfigurationError(
            f"Environment '{environment.name}' has an invalid VNet CIDR '{environment.cidr}': {e}",
            environment=environment.name,
            subject=environment.vnet_name,
            precondition="valid CIDR",
        ) from e

    seen_roles = {}
    parsed = []
    for spec in environment.subnets:
        try:
            network = ipaddress.ip_network(spec.cidr)
        except ValueError as e:
            raise ConfigurationError(
                f"Subnet '{spec.name}' in '{environment.name}' has an invalid CIDR '{spec.cidr}': {e}",
                environment=environment.name,
                subject=spec.name,
                precondition="valid CIDR",
            ) from e

        if network.version != vnet.version or not network.subnet_of(vnet):
            raise ConfigurationError(
                f"Subnet '{spec.name}' ({spec.cidr}) is not within VNet "
                f"{environment.cidr} of '{environment.name}'",
                environment=environment.name,
                subject=spec.name,
                precondition="subnet CIDR must be a subset of the VNet CIDR",
            )

        if spec.role in seen_roles:
            raise ConfigurationError(
                f"Subnets '{seen_roles[spec.role]}' and '{spec.name}' in '{environment.name}' "
                f"share role '{spec.role.value}'",
                environment=environment.name,
                subject=spec.name,
                precondition="one subnet per role",
            )
        seen_roles[spec.role] = spec.name

        for other_spec, other in parsed:
            if network.overlaps(other):
                raise ConfigurationError(
                    f"Subnet '{spec.name}' ({spec.cidr}) overlaps '{other_spec.name}' "
                    f"({other_spec.cidr}) in '{environment.name}'",
                    environment=environment.name,
                    subject=spec.name,
                    precondition="subnet CIDRs must be disjoint",
                )
        parsed.append((spec, network))


# =============================================================================
# LOADING
# =============================================================================

def _parse_role(value: str, env_name: str, subject: str) -> SubnetRole:
    try:
        return SubnetRole(value)
    except ValueError:
        raise ConfigurationError(
            f"Unknown subnet role '{value}' for '{subject}' in environment '{env_name}'",
            environment=env_name,
            subject=subject,
            precondition=f"role must be one of {[r.value for r in SubnetRole]}",
        ) from None


def parse_environment(data: Dict) -> Environment:
    """Build an Environment from one YAML entry."""
    name = data.get('name')
    if not name:
        raise ConfigurationError("Environment entry without a name", precondition="name is required")

    for key in ('kind', 'resource_group', 'location', 'cidr'):
        if key not in data:
            raise ConfigurationError(
                f"Environment '{name}' is missing '{key}'",
                environment=name,
                precondition=f"'{key}' is required",
            )

    try:
        kind = EnvironmentKind(data['kind'])
    except ValueError:
        raise ConfigurationError(
            f"Environment '{name}' has unknown kind '{data['kind']}'",
            environment=name,
            precondition=f"kind must be one of {[k.value for k in EnvironmentKind]}",
        ) from None

    subnets = tuple(
        SubnetSpec(
            name=s['name'],
            cidr=s['cidr'],
            role=_parse_role(s['role'], name, s['name']),
        )
        for s in data.get('subnets', [])
    )

    machines = tuple(
        MachineSpec(
            name=m['name'],
            os=m.get('os', 'linux'),
            subnet=_parse_role(m['subnet'], name, m['name']),
        )
        for m in data.get('machines', [])
    )

    return Environment(
        name=name,
        kind=kind,
        resource_group=data['resource_group'],
        location=data['location'],
        cidr=data['cidr'],
        vnet_name=data.get('vnet_name', f"vnet-{name}"),
        subnets=subnets,
        nat_gateway=bool(data.get('nat_gateway', False)),
        vpn_gateway=bool(data.get('vpn_gateway', False)),
        machines=machines,
    )


def load_registry(environments_file: str) -> EnvironmentRegistry:
    """Load environment configurations from YAML file."""
    with open(environments_file, 'r') as f:
        data = yaml.safe_load(f)

    if not data:
        return EnvironmentRegistry([])

    return EnvironmentRegistry([parse_environment(env) for env in data.get('environments', [])])
