# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Separate fatal configuration errors from contained execution errors
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================
"""
Exception hierarchy for ciflow.

Fatal before execution:
    ConfigurationError, UnknownJob, CyclicDependency

Contained per instance (never escapes the scheduler):
    StepExecutionError

Programming defects:
    AggregationError, InvalidTransition
"""

from typing import List, Optional


class CiflowError(Exception):
    """Base exception for all ciflow errors."""
    pass


class ConfigurationError(CiflowError):
    """Raised when the workflow definition cannot produce a valid run."""

    def __init__(
        self,
        message: str,
        job_id: Optional[str] = None,
        field: Optional[str] = None,
    ):
        self.job_id = job_id
        self.field = field
        super().__init__(message)


class UnknownJob(ConfigurationError):
    """Raised when a `needs` entry names a job that does not exist."""

    def __init__(self, job_id: str, missing: str, known: List[str]):
        self.missing = missing
        self.known = known
        super().__init__(
            f"Job '{job_id}' needs unknown job '{missing}'. Known jobs: {sorted(known)}",
            job_id=job_id,
            field="needs",
        )


class CyclicDependency(CiflowError):
    """Raised when `needs` declarations form a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Cyclic dependency: {' -> '.join(cycle)}")


class StepExecutionError(CiflowError):
    """A step exited non-zero or the instance timed out."""

    def __init__(
        self,
        instance_id: str,
        step: str,
        exit_code: Optional[int] = None,
        timed_out: bool = False,
        message: Optional[str] = None,
    ):
        self.instance_id = instance_id
        self.step = step
        self.exit_code = exit_code
        self.timed_out = timed_out
        if message is None:
            if timed_out:
                message = f"[{instance_id}] step '{step}' timed out"
            else:
                message = f"[{instance_id}] step '{step}' failed (exit={exit_code})"
        super().__init__(message)


class AggregationError(CiflowError):
    """Internal invariant violation detected while computing results."""
    pass


class InvalidTransition(CiflowError):
    """Raised on an illegal RunStatus transition."""

    def __init__(self, instance_id: str, current: str, target: str):
        self.instance_id = instance_id
        self.current = current
        self.target = target
        super().__init__(f"Instance '{instance_id}': cannot transition from {current} to {target}")


__all__ = [
    "CiflowError",
    "ConfigurationError",
    "UnknownJob",
    "CyclicDependency",
    "StepExecutionError",
    "AggregationError",
    "InvalidTransition",
]
