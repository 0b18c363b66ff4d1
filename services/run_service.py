# ============================================================================
# RUN SERVICE
# ============================================================================
# STATUS: Core - Run lifecycle
# PURPOSE: Plan a workflow, execute the plan, aggregate the report
# CREATED: 19 OCT 2026
# ============================================================================
"""
Run Service

Manages a run end to end:
- Load the workflow file (WorkflowService)
- Build the execution plan (matrix expansion + dependency graph)
- Schedule instances against an executor
- Aggregate the outcome into a RunReport

Configuration and graph errors surface from plan() before any process
starts; execution errors end up inside the report.
"""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from core.config import Defaults, get_defaults
from core.logging import ComponentType, get_logger, log_context
from core.models import RunReport, WorkflowDefinition
from orchestrator.engine.gate import ResultAggregator
from orchestrator.engine.matrix import MatrixExpander
from orchestrator.engine.planner import ExecutionPlan, build_plan
from orchestrator.scheduler import Scheduler
from orchestrator.state import RunStateTable
from worker.contracts import InstanceResult
from worker.executor import InstanceExecutor
from .workflow_service import WorkflowService

logger = get_logger(__name__, ComponentType.SCHEDULER)

# plan -> object with `async execute(instance) -> InstanceResult`
ExecutorFactory = Callable[[ExecutionPlan], object]


class RunService:
    """Service for planning and executing workflow runs."""

    def __init__(
        self,
        defaults: Optional[Defaults] = None,
        workflow_service: Optional[WorkflowService] = None,
        source_dir: Optional[str] = None,
        executor_factory: Optional[ExecutorFactory] = None,
    ):
        """
        Initialize run service.

        Args:
            defaults: Scheduler/executor/matrix settings (env-derived if omitted)
            workflow_service: Workflow loader
            source_dir: Repository the `checkout` action clones
            executor_factory: Builds the executor for a plan (subprocess executor if omitted)
        """
        self.defaults = defaults or get_defaults()
        self.workflow_service = workflow_service or WorkflowService()
        self.source_dir = source_dir
        self._executor_factory = executor_factory or self._default_executor
        self.last_results: Dict[str, InstanceResult] = {}

    def _default_executor(self, plan: ExecutionPlan) -> InstanceExecutor:
        return InstanceExecutor(
            run_id=plan.run_id,
            trigger=plan.trigger,
            config=self.defaults.executor,
        )

    def load(self, path: Union[str, Path]) -> WorkflowDefinition:
        """Load a workflow file."""
        return self.workflow_service.load_file(path)

    def plan(
        self,
        workflow: WorkflowDefinition,
        trigger_event: Optional[str] = None,
        trigger_ref: Optional[str] = None,
        run_id: Optional[str] = None,
    ) -> ExecutionPlan:
        """
        Build the execution plan of a workflow.

        Raises:
            ConfigurationError, CyclicDependency
        """
        expander = MatrixExpander(
            max_cells=self.defaults.matrix.max_cells,
            fail_on_empty=self.defaults.matrix.fail_on_empty_matrix,
            source_dir=self.source_dir,
        )
        return build_plan(
            workflow,
            expander=expander,
            trigger_event=trigger_event,
            trigger_ref=trigger_ref,
            run_id=run_id,
        )

    async def execute(self, plan: ExecutionPlan) -> RunReport:
        """
        Execute a plan and aggregate its report.

        Returns:
            RunReport with the overall gate verdict
        """
        started_at = datetime.now(timezone.utc)
        state = RunStateTable.for_plan(plan)
        scheduler = Scheduler(
            self._executor_factory(plan),
            max_parallel=self.defaults.scheduler.max_parallel,
        )

        with log_context(run_id=plan.run_id, workflow=plan.workflow.name, trigger=plan.trigger):
            logger.info(
                f"Starting run of '{plan.workflow.name}': {len(plan.instances)} instance(s), "
                f"max_parallel={scheduler.max_parallel}"
            )
            await scheduler.run(plan, state)
            self.last_results = scheduler.results

            report = ResultAggregator().aggregate(
                plan, state, started_at=started_at, results=scheduler.results
            )
            logger.info(f"Run finished: {report.overall_status.value} {report.status_counts()}")
        return report

    def run(
        self,
        workflow: WorkflowDefinition,
        trigger_event: Optional[str] = None,
        trigger_ref: Optional[str] = None,
    ) -> RunReport:
        """
        Plan and execute a workflow synchronously.

        Raises:
            ConfigurationError, CyclicDependency: before anything runs
        """
        plan = self.plan(workflow, trigger_event=trigger_event, trigger_ref=trigger_ref)
        return asyncio.run(self.execute(plan))


__all__ = ["RunService", "ExecutorFactory"]
