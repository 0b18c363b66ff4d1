# ============================================================================
# RESULT AGGREGATOR / GATE
# ============================================================================
# STATUS: Core - Overall run verdict
# PURPOSE: Fold per-instance outcomes into a RunReport
# CREATED: 19 OCT 2026
# ============================================================================
"""
Result Aggregator / Gate

Gate policy:
    overall = FAILED if any instance with allow_failure = false FAILED
              or was SKIPPED, else SUCCEEDED

Skips only come from required failures upstream, so counting a skipped
required instance never changes the verdict.

The verdict depends only on the final state table, not on the order in
which instances finished.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.contracts import OverallStatus, RunStatus
from core.errors import AggregationError
from core.logging import ComponentType, get_logger
from core.models.report import InstanceReport, RunReport
from orchestrator.engine.planner import ExecutionPlan
from orchestrator.state import RunStateTable
from worker.contracts import InstanceResult

logger = get_logger(__name__, ComponentType.GATE)


class ResultAggregator:
    """Computes the RunReport of a finished run."""

    def aggregate(
        self,
        plan: ExecutionPlan,
        state: RunStateTable,
        started_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
        results: Optional[Dict[str, InstanceResult]] = None,
    ) -> RunReport:
        """
        Build the report of a run.

        Executor results, keyed by instance id, contribute the output
        tail, log file and workspace of each instance that ran.

        Raises:
            AggregationError: an instance is unknown to the state table
                or still non-terminal
        """
        reports: List[InstanceReport] = []
        blocking: List[str] = []

        for instance in plan.instances:
            if instance.instance_id not in state:
                raise AggregationError(f"Instance '{instance.instance_id}' has no recorded state")
            record = state.get(instance.instance_id)
            if not record.status.is_terminal():
                raise AggregationError(
                    f"Instance '{instance.instance_id}' is still {record.status.value}"
                )

            result = (results or {}).get(instance.instance_id)

            if not instance.allow_failure and record.status in (RunStatus.FAILED, RunStatus.SKIPPED):
                blocking.append(instance.instance_id)

            reports.append(InstanceReport(
                instance_id=instance.instance_id,
                job_id=instance.job_id,
                display_name=instance.display_name,
                status=record.status,
                allow_failure=instance.allow_failure,
                exit_code=record.exit_code,
                failed_step=record.failed_step,
                error_message=record.error_message,
                skip_reason=record.skip_reason,
                duration_seconds=record.duration_seconds,
                output_tail=list(result.output_tail) if result else [],
                log_file=result.log_file if result else None,
                workspace=result.workspace if result else None,
            ))

        overall = OverallStatus.FAILED if blocking else OverallStatus.SUCCEEDED
        if blocking:
            logger.info(f"Gate: FAILED by {len(blocking)} required instance(s): {blocking}")
        else:
            logger.info("Gate: SUCCEEDED")

        return RunReport(
            run_id=plan.run_id,
            workflow=plan.workflow.name,
            trigger=plan.trigger,
            overall_status=overall,
            instances=reports,
            warnings=list(plan.warnings),
            started_at=started_at,
            finished_at=finished_at or datetime.now(timezone.utc),
        )


__all__ = ["ResultAggregator"]
