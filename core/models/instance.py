# ============================================================================
# JOB INSTANCE MODEL
# ============================================================================
# STATUS: Core model - Concrete runnable expansion of a job
# PURPOSE: Carry resolved parameters, commands and dependencies per matrix cell
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: CommandSpec, ResolvedStep, JobInstance
# DEPENDENCIES: pydantic
# ============================================================================
"""
Job Instance Model

Key concept:
- JobDefinition = TEMPLATE (what to do)
- JobInstance = one concrete expansion for a single matrix cell

Instances are produced by the matrix expander with all templates
already rendered, so nothing left to resolve can fail mid-run.
They are frozen; runtime status lives in the RunStateTable.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CommandSpec(BaseModel):
    """A single external program invocation."""
    model_config = ConfigDict(frozen=True)

    argv: Optional[List[str]] = None
    shell: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_form(self) -> "CommandSpec":
        if (self.argv is None) == (self.shell is None):
            raise ValueError("CommandSpec needs exactly one of argv or shell")
        if self.argv is not None and not self.argv:
            raise ValueError("CommandSpec argv must not be empty")
        return self

    def describe(self) -> str:
        """Printable form for logs."""
        if self.shell is not None:
            return self.shell
        return " ".join(self.argv)


class ResolvedStep(BaseModel):
    """A step with its commands fully resolved for one instance."""
    model_config = ConfigDict(frozen=True)

    name: str
    commands: List[CommandSpec] = Field(..., min_length=1)
    env: Dict[str, str] = Field(default_factory=dict)
    working_directory: Optional[str] = None


class JobInstance(BaseModel):
    """
    One concrete, runnable expansion of a job for a specific matrix cell.

    `needs` holds instance ids, not job ids: every instance of each
    prerequisite job.
    """
    model_config = ConfigDict(frozen=True)

    instance_id: str = Field(..., description="job id + cell coordinates")
    job_id: str
    display_name: str
    cell_index: int = Field(default=0, ge=0)
    params: Dict[str, Any] = Field(default_factory=dict)
    allow_failure: bool = False
    runs_on: str = "local"
    env: Dict[str, str] = Field(default_factory=dict)
    timeout_seconds: Optional[int] = None
    steps: List[ResolvedStep] = Field(default_factory=list)
    needs: List[str] = Field(default_factory=list)

    def with_needs(self, needs: List[str]) -> "JobInstance":
        """Return a copy carrying resolved instance dependencies."""
        return self.model_copy(update={"needs": list(needs)})


__all__ = ["CommandSpec", "ResolvedStep", "JobInstance"]
