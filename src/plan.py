"""
Provisioning Plan
Builds the dependency-ordered step list and executes it layer by layer.

Layers:
    1. resource groups
    2. networks            (per environment, independent)
    3. compute             (per environment, own network only)
    4. topology resolution (all networks)
    5. peerings and route tables
    6. extensions          (per environment, own compute only)
"""

import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from errors import ConfigurationError, DependencyError
from models import ProvisioningStep, StepLayer, StepResult, StepStatus
from policy import REFERENCE_POLICY, TopologyPolicy
from registry import EnvironmentRegistry

TOPOLOGY_STEP = "topology"
PEERINGS_STEP = "peerings"

# handler(step, outputs of completed steps) -> step output
StepHandler = Callable[[ProvisioningStep, Dict[str, Any]], Any]


def step_key(kind: str, environment: str) -> str:
    return f"{kind}:{environment}"


@dataclass(frozen=True)
class ProvisioningPlan:
    """Ordered steps; every dependency refers to a step in an earlier layer."""
    steps: Tuple[ProvisioningStep, ...]

    def validate(self):
        """
        Raises:
            DependencyError: a step references an unknown, later or same-layer step
        """
        layer_of: Dict[str, StepLayer] = {}
        previous_layer = None
        for step in self.steps:
            if step.key in layer_of:
                raise DependencyError(
                    f"Step '{step.key}' appears twice in the plan",
                    environment=step.environment,
                    subject=step.key,
                    precondition="unique step keys",
                )
            if previous_layer is not None and step.layer.value < previous_layer.value:
                raise DependencyError(
                    f"Step '{step.key}' (layer {step.layer.name}) follows layer {previous_layer.name}",
                    environment=step.environment,
                    subject=step.key,
                    precondition="steps ordered by layer",
                )
            for dependency in step.depends_on:
                if dependency not in layer_of:
                    raise DependencyError(
                        f"Step '{step.key}' depends on '{dependency}', which is not an earlier step",
                        environment=step.environment,
                        subject=step.key,
                        precondition="inputs reference only outputs of earlier steps",
                    )
                if layer_of[dependency].value >= step.layer.value:
                    raise DependencyError(
                        f"Step '{step.key}' depends on '{dependency}' in the same layer",
                        environment=step.environment,
                        subject=step.key,
                        precondition="dependencies live in earlier layers",
                    )
            layer_of[step.key] = step.layer
            previous_layer = step.layer

    def layers(self) -> List[Tuple[StepLayer, List[ProvisioningStep]]]:
        grouped: Dict[StepLayer, List[ProvisioningStep]] = {}
        for step in self.steps:
            grouped.setdefault(step.layer, []).append(step)
        return [(layer, grouped[layer]) for layer in StepLayer if layer in grouped]

    def get(self, key: str) -> Optional[ProvisioningStep]:
        for step in self.steps:
            if step.key == key:
                return step
        return None

    def to_dict(self) -> Dict:
        return {
            'steps': [
                {
                    'key': step.key,
                    'layer': step.layer.name.lower(),
                    'environment': step.environment,
                    'depends_on': list(step.depends_on),
                }
                for step in self.steps
            ]
        }


class PlanBuilder:
    """Derives the plan from the registry and the topology policy."""

    def __init__(self, registry: EnvironmentRegistry, policy: TopologyPolicy = REFERENCE_POLICY):
        self.registry = registry
        self.policy = policy

    def build(self) -> ProvisioningPlan:
        environments = self.registry.list_environments()
        names = [env.name for env in environments]
        steps: List[ProvisioningStep] = []

        for name in names:
            steps.append(ProvisioningStep(step_key("resource_group", name), StepLayer.RESOURCE_GROUP, name))

        for name in names:
            steps.append(ProvisioningStep(
                step_key("network", name), StepLayer.NETWORK, name,
                (step_key("resource_group", name),)
            ))

        for name in names:
            steps.append(ProvisioningStep(
                step_key("compute", name), StepLayer.COMPUTE, name,
                (step_key("network", name),)
            ))

        steps.append(ProvisioningStep(
            TOPOLOGY_STEP, StepLayer.TOPOLOGY, None,
            tuple(step_key("network", name) for name in names)
        ))

        steps.append(ProvisioningStep(PEERINGS_STEP, StepLayer.ROUTING, None, (TOPOLOGY_STEP,)))
        for env in self.policy.routed(list(environments)):
            steps.append(ProvisioningStep(
                step_key("route_table", env.name), StepLayer.ROUTING, env.name,
                (TOPOLOGY_STEP, step_key("network", env.name))
            ))

        for name in names:
            steps.append(ProvisioningStep(
                step_key("extensions", name), StepLayer.EXTENSIONS, name,
                (step_key("compute", name),)
            ))

        plan = ProvisioningPlan(tuple(steps))
        plan.validate()
        return plan


class PlanExecutor:
    """
    Runs a plan one layer at a time.

    Steps within a layer run concurrently and the layer is joined before the
    next starts. A step whose dependency did not succeed is skipped; unrelated
    branches keep going. A ConfigurationError aborts the run once the layer
    is joined, carrying the results collected so far.
    """

    def __init__(self, handlers: Dict[StepLayer, StepHandler], max_parallel: int = 3):
        self.handlers = handlers
        self.max_parallel = max(1, max_parallel)

    def execute(self, plan: ProvisioningPlan) -> List[StepResult]:
        plan.validate()

        results: Dict[str, StepResult] = {}
        outputs: Dict[str, Any] = {}

        for layer, steps in plan.layers():
            print(f"\n--- Layer {layer.value}: {layer.name.lower()} ({len(steps)} steps) ---")

            runnable = []
            for step in steps:
                blocked = [d for d in step.depends_on if results[d].status != StepStatus.SUCCEEDED]
                if blocked:
                    results[step.key] = StepResult(
                        key=step.key,
                        status=StepStatus.SKIPPED,
                        message=f"Dependency not satisfied: {', '.join(blocked)}",
                        duration_ms=0,
                    )
                    print(f"  - {step.key}: skipped ({', '.join(blocked)} did not succeed)")
                else:
                    runnable.append(step)

            # Earlier layers only; nothing in this layer writes here until the join
            visible = dict(outputs)
            abort: Optional[ConfigurationError] = None

            with ThreadPoolExecutor(max_workers=self.max_parallel) as pool:
                futures = {pool.submit(self._run_step, step, visible): step for step in runnable}
                for future in as_completed(futures):
                    step = futures[future]
                    try:
                        result = future.result()
                    except ConfigurationError as e:
                        abort = abort or e
                        result = StepResult(step.key, StepStatus.FAILED, str(e), 0)
                    results[step.key] = result
                    if result.status == StepStatus.SUCCEEDED:
                        outputs[step.key] = result.output

            if abort is not None:
                abort.results = [results[s.key] for s in plan.steps if s.key in results]
                raise abort

        return [results[step.key] for step in plan.steps]

    def _run_step(self, step: ProvisioningStep, outputs: Dict[str, Any]) -> StepResult:
        start_time = time.time()
        handler = self.handlers.get(step.layer)
        if handler is None:
            return StepResult(
                key=step.key,
                status=StepStatus.SKIPPED,
                message=f"No handler for layer {step.layer.name.lower()}",
                duration_ms=0,
            )

        try:
            output = handler(step, outputs)
        except ConfigurationError:
            raise
        except Exception as e:
            print(f"  ✗ {step.key}: {e}")
            return StepResult(
                key=step.key,
                status=StepStatus.FAILED,
                message=str(e),
                duration_ms=int((time.time() - start_time) * 1000),
            )

        print(f"  ✓ {step.key}")
        return StepResult(
            key=step.key,
            status=StepStatus.SUCCEEDED,
            message="ok",
            duration_ms=int((time.time() - start_time) * 1000),
            output=output,
        )
