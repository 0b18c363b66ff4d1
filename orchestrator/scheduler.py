# ============================================================================
# SCHEDULER
# ============================================================================
# STATUS: Core - asyncio coordinator for one run
# PURPOSE: Dispatch ready instances under a concurrency bound, skip the rest
# CREATED: 19 OCT 2026
# ============================================================================
"""
Scheduler

Drives one run to completion:

1. Instances with prerequisites start BLOCKED, the rest PENDING
2. Evaluate candidates in topological order:
   - any prerequisite SKIPPED, or FAILED without allow_failure -> SKIPPED
     (dependents are re-evaluated at once, so skips propagate)
   - all prerequisites terminal -> ready
3. Dispatch ready instances, in topological order, up to max_parallel
4. Wait for the first running instance to finish
5. Record its result, re-evaluate its dependents
6. Repeat until nothing is running

Only this coordinating task touches the RunStateTable. The executor is
any object with `async execute(instance) -> InstanceResult`; whatever it
raises is contained as a failed instance.

Running instances are never cancelled because an unrelated instance
failed; they are only cancelled when the run itself is cancelled.
"""

import asyncio
import bisect
from collections import deque
from typing import Dict, Iterable, List, Optional

from core.contracts import RunStatus
from core.errors import AggregationError
from core.logging import ComponentType, get_logger, log_checkpoint, log_context
from orchestrator.engine.planner import ExecutionPlan
from orchestrator.state import RunStateTable
from worker.contracts import InstanceResult

logger = get_logger(__name__, ComponentType.SCHEDULER)


class Scheduler:
    """Runs an ExecutionPlan against an executor."""

    def __init__(self, executor, max_parallel: int = 1):
        """
        Initialize scheduler.

        Args:
            executor: Object with `async execute(instance) -> InstanceResult`
            max_parallel: Maximum instances executing at once
        """
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")
        self.executor = executor
        self.max_parallel = max_parallel
        self.results: Dict[str, InstanceResult] = {}

        self._plan: Optional[ExecutionPlan] = None
        self._state: Optional[RunStateTable] = None
        self._position: Dict[str, int] = {}
        self._ready: List[int] = []

    async def run(
        self,
        plan: ExecutionPlan,
        state: Optional[RunStateTable] = None,
    ) -> RunStateTable:
        """
        Execute every instance of the plan.

        Args:
            plan: Execution plan (instances in topological order)
            state: State table to drive (fresh table if omitted)

        Returns:
            The state table, every instance terminal

        Raises:
            AggregationError: an instance was left non-terminal
        """
        if state is None:
            state = RunStateTable.for_plan(plan)
        self._plan = plan
        self._state = state
        self._position = {inst.instance_id: i for i, inst in enumerate(plan.instances)}
        self._ready = []
        self.results = {}

        running: Dict[asyncio.Task, str] = {}

        with log_context(run_id=plan.run_id, workflow=plan.workflow.name, trigger=plan.trigger):
            log_checkpoint("run_started", {
                "instances": len(plan.instances),
                "max_parallel": self.max_parallel,
            }, logger=logger.logger)

            for instance in plan.instances:
                if state.status(instance.instance_id) == RunStatus.PENDING and instance.needs:
                    state.mark_blocked(instance.instance_id)

            self._evaluate(self._position.keys())

            try:
                while True:
                    while self._ready and len(running) < self.max_parallel:
                        instance_id = self._pop_ready()
                        running[self._dispatch(instance_id)] = instance_id

                    if not running:
                        break

                    done, _ = await asyncio.wait(running.keys(), return_when=asyncio.FIRST_COMPLETED)
                    for task in sorted(done, key=lambda t: self._position[running[t]]):
                        instance_id = running.pop(task)
                        self._record(instance_id, task)
                        self._evaluate(plan.graph.get_dependents(instance_id))
            finally:
                if running:
                    logger.warning(f"Run interrupted; cancelling {len(running)} running instance(s)")
                    for task in running:
                        task.cancel()
                    await asyncio.gather(*running, return_exceptions=True)

            leftover = state.non_terminal()
            if leftover:
                raise AggregationError(f"Instances left non-terminal after run: {leftover}")

            log_checkpoint("run_finished", state.counts(), logger=logger.logger)

        return state

    # ------------------------------------------------------------------
    # Ready set
    # ------------------------------------------------------------------

    def _evaluate(self, candidates: Iterable[str]) -> None:
        """Skip or ready each candidate whose prerequisites allow a decision."""
        plan, state = self._plan, self._state
        queue = deque(sorted(candidates, key=self._position.get))

        while queue:
            instance_id = queue.popleft()
            if state.status(instance_id) not in (RunStatus.PENDING, RunStatus.BLOCKED):
                continue
            if self._position[instance_id] in self._ready:
                continue

            needs = plan.graph.get_dependencies(instance_id)
            blocker = self._blocking_prerequisite(needs)
            if blocker is not None:
                reason = f"prerequisite '{blocker}' {state.status(blocker).value}"
                state.mark_skipped(instance_id, reason)
                logger.info(f"Skipping {instance_id}: {reason}")
                queue.extend(plan.graph.get_dependents(instance_id))
            elif all(state.status(dep).is_terminal() for dep in needs):
                bisect.insort(self._ready, self._position[instance_id])

    def _blocking_prerequisite(self, needs: List[str]) -> Optional[str]:
        for dep in needs:
            status = self._state.status(dep)
            if status == RunStatus.SKIPPED:
                return dep
            if status == RunStatus.FAILED and not self._plan.instances[self._position[dep]].allow_failure:
                return dep
        return None

    def _pop_ready(self) -> str:
        return self._plan.instances[self._ready.pop(0)].instance_id

    # ------------------------------------------------------------------
    # Dispatch / results
    # ------------------------------------------------------------------

    def _dispatch(self, instance_id: str) -> asyncio.Task:
        instance = self._plan.instances[self._position[instance_id]]
        self._state.mark_running(instance_id)
        with log_context(job_id=instance.job_id, instance_id=instance_id):
            log_checkpoint("instance_dispatched", {"display_name": instance.display_name}, logger=logger.logger)
            return asyncio.create_task(self.executor.execute(instance), name=instance_id)

    def _record(self, instance_id: str, task: asyncio.Task) -> None:
        state = self._state
        try:
            result = task.result()
        except Exception as e:
            logger.exception(f"Executor raised for {instance_id}")
            state.mark_failed(instance_id, f"executor error: {type(e).__name__}: {e}")
        else:
            self.results[instance_id] = result
            if result.success:
                state.mark_succeeded(instance_id)
            else:
                state.mark_failed(
                    instance_id,
                    result.error_message or "instance failed",
                    exit_code=result.exit_code,
                    failed_step=result.failed_step,
                )

        record = state.get(instance_id)
        with log_context(instance_id=instance_id, job_id=record.job_id):
            log_checkpoint("instance_finished", {
                "status": record.status.value,
                "exit_code": record.exit_code,
            }, logger=logger.logger)


__all__ = ["Scheduler"]
