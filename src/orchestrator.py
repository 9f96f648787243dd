"""
Hub-and-Spoke Provisioning Orchestrator
Thin orchestration layer that coordinates validation, planning, execution and reporting.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from apply import TopologyApplier
from compute import ComputeProvisioner, VmFactory
from errors import ConfigurationError, ProvisioningError
from extensions import ExtensionApplier, ExtensionConfigurator, validate_timezones
from models import (
    Environment,
    MachineSpec,
    NetworkHandle,
    ProvisioningStep,
    StepLayer,
    StepResult,
    StepStatus,
    TopologyResult,
)
from network import NetworkProvisioner
from plan import PEERINGS_STEP, TOPOLOGY_STEP, PlanBuilder, PlanExecutor, ProvisioningPlan, step_key
from policy import REFERENCE_POLICY, TopologyPolicy
from registry import EnvironmentRegistry
from topology import TopologyResolver


def _no_vm_factory(environment: Environment, machine: MachineSpec, subnet_id: str) -> str:
    raise ConfigurationError(
        f"Machine '{machine.name}' declared in '{environment.name}' but no VM factory is configured",
        environment=environment.name,
        subject=machine.name,
        precondition="a compute collaborator is configured when machines are declared",
    )


def _no_extension(vm_id: str, timezone: str):
    raise ConfigurationError(
        f"No extension collaborator configured for {vm_id}",
        subject=vm_id,
        precondition="an extension collaborator is configured when machines are declared",
    )


class ProvisioningOrchestrator:
    """
    Main orchestrator - wires the registry, provisioners, resolver and applier
    into a layered plan and runs it.
    """

    def __init__(self,
                 auth_config,
                 registry: EnvironmentRegistry,
                 policy: TopologyPolicy = REFERENCE_POLICY,
                 create_vm: Optional[VmFactory] = None,
                 apply_extension: Optional[ExtensionApplier] = None,
                 max_parallel: int = 3):
        """
        Initialize the orchestrator.

        Args:
            auth_config: AuthConfig instance for Azure authentication
            registry: Environments to provision
            policy: Topology policy table
            create_vm: Compute collaborator, required only when machines are declared
            apply_extension: Extension collaborator, required only when machines are declared
            max_parallel: Maximum concurrent steps within a layer
        """
        self.auth = auth_config
        self.registry = registry
        self.policy = policy
        self.max_parallel = max_parallel
        self.create_vm = create_vm
        self.apply_extension = apply_extension

        # Initialize components
        self.network = NetworkProvisioner(auth_config)
        self.compute = ComputeProvisioner(create_vm or _no_vm_factory)
        self.extensions = ExtensionConfigurator(apply_extension or _no_extension)
        self.resolver = TopologyResolver(registry, policy)
        self.applier = TopologyApplier(auth_config)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    def validate(self):
        """
        Configuration checks; no provider calls.

        Raises:
            ConfigurationError: on the first violated precondition
        """
        self.registry.validate()
        for env in self.registry.list_environments():
            self.network.check_preconditions(env)
        # Only environments with machines get OS-level configuration
        validate_timezones(env for env in self.registry.list_environments() if env.machines)
        self._check_collaborators()

        hub = self.registry.hub()
        if hub.subnet(self.policy.gateway_subnet_role) is None:
            raise ConfigurationError(
                f"Hub '{hub.name}' declares no '{self.policy.gateway_subnet_role.value}' subnet",
                environment=hub.name,
                subject=self.policy.gateway_subnet_role.value,
                precondition="hub must declare a gateway subnet",
            )

    def _check_collaborators(self):
        """Declared machines need both a VM factory and an extension applier."""
        missing = []
        if self.create_vm is None:
            missing.append("VM factory")
        if self.apply_extension is None:
            missing.append("extension applier")
        if not missing:
            return

        for env in self.registry.list_environments():
            if env.machines:
                machine = env.machines[0]
                raise ConfigurationError(
                    f"Machine '{machine.name}' declared in '{env.name}' but no "
                    f"{' or '.join(missing)} is configured",
                    environment=env.name,
                    subject=machine.name,
                    precondition="compute and extension collaborators are configured when machines are declared",
                )

    def build_plan(self) -> ProvisioningPlan:
        return PlanBuilder(self.registry, self.policy).build()

    def resolve(self, handles: Dict[str, NetworkHandle]) -> TopologyResult:
        return self.resolver.resolve(handles)

    def apply(self) -> Dict:
        """
        Validate, build the plan and execute it.

        Returns:
            Run summary dictionary
        """
        print("=" * 80)
        print("HUB-AND-SPOKE PROVISIONING")
        print("=" * 80)

        self.validate()
        plan = self.build_plan()
        print(f"Environments: {', '.join(self.registry.names())}")
        print(f"Plan: {len(plan.steps)} steps in {len(plan.layers())} layers")

        start_time = datetime.utcnow()
        executor = PlanExecutor(self.handlers(), max_parallel=self.max_parallel)
        try:
            results = executor.execute(plan)
        except ProvisioningError as e:
            e.summary = summarize(e.results, start_time, datetime.utcnow(), aborted=str(e))
            raise
        end_time = datetime.utcnow()

        return summarize(results, start_time, end_time)

    # -------------------------------------------------------------------------
    # Step handlers
    # -------------------------------------------------------------------------

    def handlers(self) -> Dict[StepLayer, Any]:
        return {
            StepLayer.RESOURCE_GROUP: self._resource_group_step,
            StepLayer.NETWORK: self._network_step,
            StepLayer.COMPUTE: self._compute_step,
            StepLayer.TOPOLOGY: self._topology_step,
            StepLayer.ROUTING: self._routing_step,
            StepLayer.EXTENSIONS: self._extensions_step,
        }

    def _resource_group_step(self, step: ProvisioningStep, outputs: Dict[str, Any]):
        return self.network.ensure_resource_group(self.registry.get(step.environment))

    def _network_step(self, step: ProvisioningStep, outputs: Dict[str, Any]) -> NetworkHandle:
        return self.network.provision(self.registry.get(step.environment))

    def _compute_step(self, step: ProvisioningStep, outputs: Dict[str, Any]):
        environment = self.registry.get(step.environment)
        return self.compute.provision(environment, outputs[step_key("network", environment.name)])

    def _topology_step(self, step: ProvisioningStep, outputs: Dict[str, Any]) -> TopologyResult:
        return self.resolver.resolve(self._handles(outputs))

    def _routing_step(self, step: ProvisioningStep, outputs: Dict[str, Any]):
        topology: TopologyResult = outputs[TOPOLOGY_STEP]
        handles = self._handles(outputs)

        if step.key == PEERINGS_STEP:
            return self.applier.apply_peerings(topology.peerings, handles)

        table = topology.route_table_for(step.environment)
        handle = handles[step.environment]
        action, route_table_id = self.applier.apply_route_table(table, handle)
        associations = [a for a in topology.associations if a.environment == step.environment]
        return {
            'route_table': action,
            'associations': self.applier.apply_associations(associations, route_table_id, handle),
        }

    def _extensions_step(self, step: ProvisioningStep, outputs: Dict[str, Any]):
        environment = self.registry.get(step.environment)
        return self.extensions.configure(environment, outputs[step_key("compute", environment.name)])

    @staticmethod
    def _handles(outputs: Dict[str, Any]) -> Dict[str, NetworkHandle]:
        return {
            value.environment: value
            for key, value in outputs.items()
            if key.startswith("network:")
        }


def summarize(results: List[StepResult],
              start_time: datetime,
              end_time: datetime,
              aborted: Optional[str] = None) -> Dict:
    """Run summary, in the same shape for console and file output."""
    return {
        'phase': 'apply',
        'aborted': aborted,
        'start_time': start_time.isoformat(),
        'end_time': end_time.isoformat(),
        'duration_seconds': (end_time - start_time).total_seconds(),
        'total_steps': len(results),
        'succeeded': sum(1 for r in results if r.status == StepStatus.SUCCEEDED),
        'failed': sum(1 for r in results if r.status == StepStatus.FAILED),
        'skipped': sum(1 for r in results if r.status == StepStatus.SKIPPED),
        'results': [
            {
                'key': r.key,
                'status': r.status.value,
                'message': r.message,
                'duration_ms': r.duration_ms,
            }
            for r in results
        ],
    }
