# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# STATUS: Foundation - Core enums for run and instance lifecycle
# PURPOSE: Define status enums shared by scheduler, executor and gate
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: RunStatus, OverallStatus
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the workflow orchestration engine.

RunStatus is the per-instance lifecycle owned by the scheduler.
OverallStatus is the single gate verdict computed after a run.
"""

from enum import Enum


# ============================================================================
# STATUS ENUMS
# ============================================================================

class RunStatus(str, Enum):
    """
    Job instance lifecycle states within a run.

    State transitions:
        PENDING -> BLOCKED -> RUNNING -> SUCCEEDED
                                     -> FAILED
                -> RUNNING (no prerequisites)
                -> SKIPPED (required prerequisite failed or was skipped)
        BLOCKED -> SKIPPED
    """
    PENDING = "pending"          # Created at graph-build time
    BLOCKED = "blocked"          # Waiting on prerequisites
    RUNNING = "running"          # Dispatched to the executor
    SUCCEEDED = "succeeded"      # All steps exited 0
    FAILED = "failed"            # A step failed or timed out
    SKIPPED = "skipped"          # A required prerequisite did not pass

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.SKIPPED)

    def is_active(self) -> bool:
        """Check if the instance still has work ahead of it."""
        return self in (RunStatus.PENDING, RunStatus.BLOCKED, RunStatus.RUNNING)


class OverallStatus(str, Enum):
    """Gate verdict for a whole run."""
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def exit_code(self) -> int:
        """Process exit code for this verdict."""
        return 0 if self is OverallStatus.SUCCEEDED else 1
