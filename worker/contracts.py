# ============================================================================
# WORKER CONTRACTS
# ============================================================================
# STATUS: Core - Executor result contracts
# PURPOSE: Results reported by the executor back to the scheduler
# CREATED: 19 OCT 2026
# ============================================================================
"""
Worker Contracts

Result format of one instance execution:

{
    "instance_id": "build[rust=beta, os=ubuntu-latest]",
    "job_id": "build",
    "success": false,
    "exit_code": 101,
    "failed_step": "Run tests",
    "timed_out": false,
    "error_message": "[build[...]] step 'Run tests' failed (exit=101)",
    "steps": [{"name": "Build", "exit_code": 0, ...}, ...],
    "output_tail": ["...", "test result: FAILED"],
    "duration_ms": 48210
}

A failing step stops the instance; the steps after it do not appear.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from core.errors import StepExecutionError


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StepResult(BaseModel):
    """Outcome of one step."""
    name: str
    exit_code: Optional[int] = None
    timed_out: bool = False
    duration_ms: Optional[int] = Field(default=None, ge=0)

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class InstanceResult(BaseModel):
    """
    Result reported by the executor after running an instance.
    """

    # Identity
    instance_id: str
    job_id: str

    # Result
    success: bool
    exit_code: Optional[int] = None
    failed_step: Optional[str] = None
    timed_out: bool = False
    error_message: Optional[str] = Field(default=None, max_length=2000)

    # Execution detail
    steps: List[StepResult] = Field(default_factory=list)
    output_tail: List[str] = Field(default_factory=list)
    workspace: Optional[str] = None
    log_file: Optional[str] = None
    duration_ms: Optional[int] = Field(default=None, ge=0)

    reported_at: datetime = Field(default_factory=_now)

    @classmethod
    def succeeded(
        cls,
        instance_id: str,
        job_id: str,
        steps: Optional[List[StepResult]] = None,
        output_tail: Optional[List[str]] = None,
        duration_ms: Optional[int] = None,
        **kwargs,
    ) -> "InstanceResult":
        """Create a success result."""
        return cls(
            instance_id=instance_id,
            job_id=job_id,
            success=True,
            exit_code=0,
            steps=steps or [],
            output_tail=output_tail or [],
            duration_ms=duration_ms,
            **kwargs,
        )

    @classmethod
    def failed(
        cls,
        instance_id: str,
        job_id: str,
        error_message: str,
        exit_code: Optional[int] = None,
        failed_step: Optional[str] = None,
        timed_out: bool = False,
        steps: Optional[List[StepResult]] = None,
        output_tail: Optional[List[str]] = None,
        duration_ms: Optional[int] = None,
        **kwargs,
    ) -> "InstanceResult":
        """Create a failure result."""
        return cls(
            instance_id=instance_id,
            job_id=job_id,
            success=False,
            exit_code=exit_code,
            failed_step=failed_step,
            timed_out=timed_out,
            error_message=error_message[:2000] if error_message else None,
            steps=steps or [],
            output_tail=output_tail or [],
            duration_ms=duration_ms,
            **kwargs,
        )

    @classmethod
    def from_error(
        cls,
        job_id: str,
        error: StepExecutionError,
        **kwargs,
    ) -> "InstanceResult":
        """Failure result for a contained StepExecutionError."""
        return cls.failed(
            instance_id=error.instance_id,
            job_id=job_id,
            error_message=str(error),
            exit_code=error.exit_code,
            failed_step=error.step,
            timed_out=error.timed_out,
            **kwargs,
        )


__all__ = ["StepResult", "InstanceResult"]
