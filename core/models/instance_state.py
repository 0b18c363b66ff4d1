# ============================================================================
# INSTANCE STATE MODEL
# ============================================================================
# STATUS: Core model - Instance runtime state
# PURPOSE: Track state of each job instance within a run
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: InstanceState
# DEPENDENCIES: pydantic
# ============================================================================
"""
Instance State Model

InstanceState tracks the runtime state of a single job instance.

Key concept:
- JobInstance = what runs (immutable)
- InstanceState = how far it got in this run (mutable, scheduler-owned)
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import RunStatus
from core.errors import InvalidTransition


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InstanceState(BaseModel):
    """
    Runtime state of a job instance within a run.

    Lifecycle:
        1. Created with status=PENDING when the graph is built
        2. BLOCKED while prerequisites are unresolved
        3. RUNNING when dispatched to the executor
        4. SUCCEEDED/FAILED when the executor reports
        5. SKIPPED instead of 3-4 if a required prerequisite did not pass
    """

    instance_id: str
    job_id: str
    status: RunStatus = Field(default=RunStatus.PENDING)

    exit_code: Optional[int] = None
    failed_step: Optional[str] = None
    error_message: Optional[str] = Field(default=None, max_length=2000)
    skip_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def is_terminal(self) -> bool:
        """Check if instance is in a terminal state."""
        return self.status.is_terminal()

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        """Execution duration if started."""
        if not self.started_at:
            return None
        end_time = self.completed_at or _now()
        return (end_time - self.started_at).total_seconds()

    def can_transition_to(self, new_status: RunStatus) -> bool:
        """
        Validate if a status transition is allowed.

        Valid transitions:
            PENDING -> BLOCKED, RUNNING, SKIPPED
            BLOCKED -> RUNNING, SKIPPED
            RUNNING -> SUCCEEDED, FAILED
            SUCCEEDED, FAILED, SKIPPED -> (none, terminal)
        """
        allowed = {
            RunStatus.PENDING: {RunStatus.BLOCKED, RunStatus.RUNNING, RunStatus.SKIPPED},
            RunStatus.BLOCKED: {RunStatus.RUNNING, RunStatus.SKIPPED},
            RunStatus.RUNNING: {RunStatus.SUCCEEDED, RunStatus.FAILED},
            RunStatus.SUCCEEDED: set(),
            RunStatus.FAILED: set(),
            RunStatus.SKIPPED: set(),
        }
        return new_status in allowed[self.status]

    def _transition(self, new_status: RunStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidTransition(self.instance_id, self.status.value, new_status.value)
        self.status = new_status

    def mark_blocked(self) -> None:
        """Mark instance as waiting on prerequisites."""
        self._transition(RunStatus.BLOCKED)

    def mark_running(self) -> None:
        """Mark instance as dispatched to the executor."""
        self._transition(RunStatus.RUNNING)
        self.started_at = _now()

    def mark_succeeded(self) -> None:
        """Mark instance as completed successfully."""
        self._transition(RunStatus.SUCCEEDED)
        self.exit_code = 0
        self.completed_at = _now()

    def mark_failed(
        self,
        error_message: str,
        exit_code: Optional[int] = None,
        failed_step: Optional[str] = None,
    ) -> None:
        """Mark instance as failed."""
        self._transition(RunStatus.FAILED)
        self.error_message = error_message[:2000]
        self.exit_code = exit_code
        self.failed_step = failed_step
        self.completed_at = _now()

    def mark_skipped(self, reason: str) -> None:
        """Mark instance as skipped (required prerequisite did not pass)."""
        self._transition(RunStatus.SKIPPED)
        self.skip_reason = reason
        self.completed_at = _now()


__all__ = ["InstanceState"]
