# ============================================================================
# EXECUTION PLANNER
# ============================================================================
# STATUS: Core - Expansion + graph in one pass
# PURPOSE: Turn a validated workflow into an ordered, fully resolved plan
# CREATED: 19 OCT 2026
# ============================================================================
"""
Execution Planner

Everything that can fail for configuration reasons happens here, before
any process is started:

    1. structural validation of the workflow
    2. job-level `needs` validation (unknown jobs, cycles)
    3. matrix expansion and template rendering of every instance
    4. instance graph construction (fan-out gate policy)

The resulting ExecutionPlan is immutable input to the scheduler and the
gate. Building a plan twice from the same workflow yields the same
instances in the same order.
"""

import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from core.errors import ConfigurationError
from core.logging import ComponentType, get_logger
from core.models.instance import JobInstance
from core.models.workflow import WorkflowDefinition
from orchestrator.engine.graph import DependencyGraph, GraphBuilder
from orchestrator.engine.matrix import MatrixExpander

logger = get_logger(__name__, ComponentType.PLANNER)


def new_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"


@dataclass
class ExecutionPlan:
    """Ordered job instances plus the graph connecting them."""
    run_id: str
    workflow: WorkflowDefinition
    instances: List[JobInstance]
    graph: DependencyGraph
    trigger_event: Optional[str] = None
    trigger_ref: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def trigger(self) -> Optional[str]:
        """Opaque trigger label, e.g. 'push@refs/heads/main'."""
        if not self.trigger_event:
            return None
        if self.trigger_ref:
            return f"{self.trigger_event}@{self.trigger_ref}"
        return self.trigger_event

    def get_instance(self, instance_id: str) -> JobInstance:
        for instance in self.instances:
            if instance.instance_id == instance_id:
                return instance
        raise KeyError(f"Unknown instance: {instance_id}")

    def instances_by_job(self) -> Dict[str, List[JobInstance]]:
        result: Dict[str, List[JobInstance]] = {job_id: [] for job_id in self.workflow.jobs}
        for instance in self.instances:
            result[instance.job_id].append(instance)
        return result


def build_plan(
    workflow: WorkflowDefinition,
    expander: Optional[MatrixExpander] = None,
    trigger_event: Optional[str] = None,
    trigger_ref: Optional[str] = None,
    run_id: Optional[str] = None,
) -> ExecutionPlan:
    """
    Build the execution plan of a workflow.

    Raises:
        ConfigurationError: structural, matrix, template or step errors
        UnknownJob: `needs` names a job that does not exist
        CyclicDependency: `needs` declarations form a cycle
    """
    errors = workflow.validate_structure()
    if errors:
        raise ConfigurationError(f"Workflow '{workflow.name}' is invalid: " + "; ".join(errors))

    expander = expander or MatrixExpander()
    builder = GraphBuilder()
    job_order = builder.validate_jobs(workflow)

    warnings: List[str] = []
    if trigger_event and not workflow.accepts_trigger(trigger_event, trigger_ref):
        message = f"trigger '{trigger_event}' is not declared by workflow '{workflow.name}'"
        logger.warning(message)
        warnings.append(message)

    instances_by_job: Dict[str, List[JobInstance]] = {}
    for job_id in job_order:
        expansion = expander.expand(workflow, job_id, trigger_event, trigger_ref)
        instances_by_job[job_id] = expansion.instances
        warnings.extend(expansion.warnings)

    graph, ordered = builder.build(workflow, instances_by_job)

    plan = ExecutionPlan(
        run_id=run_id or new_run_id(),
        workflow=workflow,
        instances=ordered,
        graph=graph,
        trigger_event=trigger_event,
        trigger_ref=trigger_ref,
        warnings=warnings,
    )
    logger.info(
        f"Planned workflow '{workflow.name}': {len(workflow.jobs)} job(s), "
        f"{len(ordered)} instance(s)"
    )
    return plan


__all__ = ["ExecutionPlan", "build_plan", "new_run_id"]
