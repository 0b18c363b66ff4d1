# ============================================================================
# WORKFLOW DEFINITION MODEL
# ============================================================================
# STATUS: Core model - Workflow template/blueprint
# PURPOSE: Define workflow structure loaded from YAML
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: WorkflowDefinition, JobDefinition, StepDefinition, MatrixDefinition,
#          TriggerDefinition
# DEPENDENCIES: pydantic
# ============================================================================
"""
Workflow Definition Models

A WorkflowDefinition is the template for a run.
It defines:
- Which triggers the workflow declares
- What jobs exist and which jobs they need
- How a job is parameterized (matrix)
- The ordered steps each job executes

Definitions are immutable once loaded. Each run expands them into
JobInstances (see instance.py).

Keys may be written in dashed form (`runs-on`, `continue-on-error`,
`working-directory`) or underscore form.
"""

import re
from fnmatch import fnmatch
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# Reserved keys inside a matrix block and inside include entries
MATRIX_RESERVED_KEYS = ("include", "exclude")
CELL_ALLOW_FAILURE_KEY = "allow_failure"

_JOB_ID_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


def _normalize_keys(data: Any) -> Any:
    """Replace dashes in top-level mapping keys with underscores."""
    if not isinstance(data, dict):
        return data
    return {
        (k.replace("-", "_") if isinstance(k, str) else k): v
        for k, v in data.items()
    }


class TriggerDefinition(BaseModel):
    """An event that may start a run (e.g. pull_request, push to master)."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    event: str = Field(..., min_length=1)
    branches: List[str] = Field(default_factory=list)

    def matches(self, event: str, ref: Optional[str] = None) -> bool:
        """Check whether an incoming event/ref is covered by this trigger."""
        if event != self.event:
            return False
        if not self.branches or ref is None:
            return True
        branch = ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref
        return any(fnmatch(branch, pattern) for pattern in self.branches)


class StepDefinition(BaseModel):
    """
    One unit of work inside a job.

    Exactly one of:
    - run: shell command string
    - command (+ args): program and argument list, executed without a shell
    - uses (+ with): named action from the action registry
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: Optional[str] = None
    run: Optional[str] = None
    command: Optional[str] = None
    args: Union[str, List[Any], None] = None
    uses: Optional[str] = None
    with_: Dict[str, Any] = Field(default_factory=dict, alias="with")
    env: Dict[str, Any] = Field(default_factory=dict)
    working_directory: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = _normalize_keys(data)
            if "with_" in data and "with" not in data:
                data["with"] = data.pop("with_")
        return data

    @model_validator(mode="after")
    def check_kind(self) -> "StepDefinition":
        kinds = [k for k in ("run", "command", "uses") if getattr(self, k)]
        if len(kinds) != 1:
            raise ValueError(
                f"step must define exactly one of run/command/uses, got {kinds or 'none'}"
            )
        if self.args is not None and not self.command:
            raise ValueError("'args' is only valid together with 'command'")
        if self.with_ and not self.uses:
            raise ValueError("'with' is only valid together with 'uses'")
        return self

    @property
    def display_name(self) -> str:
        """Step name, falling back to what the step runs."""
        if self.name:
            return self.name
        if self.uses:
            return self.uses
        if self.command:
            return self.command
        lines = self.run.strip().splitlines()
        return lines[0] if lines else "run"


class MatrixDefinition(BaseModel):
    """
    Parameter matrix for a job.

    YAML form:
        matrix:
          os: [linux, windows]
          rust: [stable, beta]
          include:
            - os: windows
              target: x86_64-pc-windows-gnu
            - rust: nightly
              allow_failure: true
          exclude:
            - os: windows
              rust: beta
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    axes: Dict[str, List[Any]] = Field(default_factory=dict)
    include: List[Dict[str, Any]] = Field(default_factory=list)
    exclude: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def split_axes(cls, data: Any) -> Any:
        """Accept the flat YAML form (axes next to include/exclude)."""
        if not isinstance(data, dict) or "axes" in data:
            return data
        axes = {k: v for k, v in data.items() if k not in MATRIX_RESERVED_KEYS}
        result: Dict[str, Any] = {"axes": axes}
        for key in MATRIX_RESERVED_KEYS:
            if key in data:
                result[key] = data[key]
        return result

    @field_validator("axes", mode="before")
    @classmethod
    def axes_are_lists(cls, v: Any) -> Any:
        if isinstance(v, dict):
            for axis, values in v.items():
                if not isinstance(values, list):
                    raise ValueError(f"matrix axis '{axis}' must be a list of values")
                if axis == CELL_ALLOW_FAILURE_KEY:
                    raise ValueError(
                        f"'{CELL_ALLOW_FAILURE_KEY}' is reserved for include entries"
                    )
        return v

    @field_validator("include", "exclude")
    @classmethod
    def entries_not_empty(cls, v: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        for entry in v:
            if not entry:
                raise ValueError("include/exclude entries must not be empty")
        return v

    @property
    def axis_names(self) -> List[str]:
        return list(self.axes.keys())

    @property
    def is_empty(self) -> bool:
        return not self.axes and not self.include


class JobDefinition(BaseModel):
    """
    Definition of a single job in a workflow.

    This is the TEMPLATE - what the job does.
    JobInstance (in instance.py) is one concrete expansion of it.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Optional[str] = Field(
        default=None,
        description="Display name template, e.g. 'Minimum version {{ matrix.rust }}'"
    )
    needs: List[str] = Field(default_factory=list)
    matrix: Optional[MatrixDefinition] = None
    allow_failure: bool = False
    runs_on: str = Field(default="local", description="Opaque runner label template")
    env: Dict[str, Any] = Field(default_factory=dict)
    timeout_seconds: Optional[int] = Field(default=None, ge=1, le=7 * 86400)
    steps: List[StepDefinition] = Field(..., min_length=1)
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = _normalize_keys(data)

        # GitHub-style `strategy: {matrix: ...}`
        strategy = data.pop("strategy", None)
        if strategy is not None:
            if not isinstance(strategy, dict) or set(strategy) - {"matrix"}:
                raise ValueError("'strategy' only supports a 'matrix' key")
            if "matrix" in data:
                raise ValueError("define the matrix either at job level or under strategy, not both")
            data["matrix"] = strategy.get("matrix")

        if "continue_on_error" in data:
            if "allow_failure" in data:
                raise ValueError("use either allow_failure or continue-on-error, not both")
            data["allow_failure"] = data.pop("continue_on_error")

        return data

    @field_validator("needs", mode="before")
    @classmethod
    def handle_string_input(cls, v):
        """Allow single string as shorthand for single-item list."""
        if isinstance(v, str):
            return [v]
        return v


class WorkflowDefinition(BaseModel):
    """
    Complete workflow definition loaded from YAML.

    Immutable once loaded.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str = Field(default="workflow", max_length=128)
    triggers: List[TriggerDefinition] = Field(default_factory=list, alias="on")
    env: Dict[str, Any] = Field(default_factory=dict)
    jobs: Dict[str, JobDefinition] = Field(..., description="Map of job_id -> JobDefinition")
    description: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        # YAML 1.1 reads a bare `on:` key as boolean True
        if True in data and "on" not in data:
            data = dict(data)
            data["on"] = data.pop(True)
        return data

    @field_validator("triggers", mode="before")
    @classmethod
    def parse_triggers(cls, v: Any) -> Any:
        """Accept `on: push`, `on: [push, pull_request]` or the mapping form."""
        if v is None:
            return []
        if isinstance(v, str):
            return [{"event": v}]
        if isinstance(v, list):
            return [{"event": e} if isinstance(e, str) else e for e in v]
        if isinstance(v, dict):
            triggers = []
            for event, options in v.items():
                options = options or {}
                if not isinstance(options, dict):
                    raise ValueError(f"trigger '{event}' options must be a mapping")
                triggers.append({"event": event, "branches": options.get("branches", [])})
            return triggers
        return v

    def get_job(self, job_id: str) -> JobDefinition:
        """Get a job definition by ID."""
        if job_id not in self.jobs:
            raise KeyError(f"Job '{job_id}' not found in workflow '{self.name}'")
        return self.jobs[job_id]

    def accepts_trigger(self, event: str, ref: Optional[str] = None) -> bool:
        """Check whether any declared trigger covers the event (True if none declared)."""
        if not self.triggers:
            return True
        return any(t.matches(event, ref) for t in self.triggers)

    def validate_structure(self) -> List[str]:
        """
        Validate workflow structure.

        Returns list of validation errors (empty if valid).
        Unknown `needs` and cycles are reported by the graph builder.
        """
        errors = []

        if not self.jobs:
            errors.append("Workflow must define at least one job")

        for job_id, job in self.jobs.items():
            if not _JOB_ID_PATTERN.match(job_id):
                errors.append(
                    f"Job id '{job_id}' must start with a letter or '_' and contain "
                    f"only letters, digits, '-' or '_'"
                )
            if len(set(job.needs)) != len(job.needs):
                errors.append(f"Job '{job_id}' lists a prerequisite more than once: {job.needs}")

        return errors


__all__ = [
    "TriggerDefinition",
    "StepDefinition",
    "MatrixDefinition",
    "JobDefinition",
    "WorkflowDefinition",
    "MATRIX_RESERVED_KEYS",
    "CELL_ALLOW_FAILURE_KEY",
]
