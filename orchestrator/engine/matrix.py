# ============================================================================
# MATRIX EXPANDER
# ============================================================================
# STATUS: Core - Parameterized job expansion
# PURPOSE: Turn one job declaration into one JobInstance per matrix cell
# CREATED: 19 OCT 2026
# ============================================================================
"""
Matrix Expander

Expands a JobDefinition into concrete JobInstances.

Rules:
- No matrix: exactly one instance, instance_id == job_id
- Cells are the Cartesian product of the axes, first axis varying slowest
- An empty axis yields zero cells; this is reported as a warning
  (or a ConfigurationError when fail_on_empty is set) and the job does
  not run
- `exclude` entries drop every cell matching all of their keys
- `include` entries whose axis keys match existing cells add their other
  fields to those cells; entries that match nothing become new cells
- Extra include fields (target, features, ...) are opaque pass-through
- `allow_failure` in an include entry overrides the job flag for the
  cells it applies to

All templates of the instance (name, runs-on, env, steps) are rendered
here, and `uses:` steps are resolved to commands, so configuration
mistakes surface before anything runs.
"""

import itertools
import shlex
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from core.errors import ConfigurationError
from core.logging import get_logger
from core.models.instance import CommandSpec, JobInstance, ResolvedStep
from core.models.workflow import (
    CELL_ALLOW_FAILURE_KEY,
    JobDefinition,
    MatrixDefinition,
    StepDefinition,
    WorkflowDefinition,
)
from handlers import ActionContext, ActionError, resolve_action
from orchestrator.engine.templates import (
    TemplateContext,
    TemplateResolutionError,
    TemplateResolver,
    get_resolver,
)

logger = get_logger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class MatrixCell:
    """One point of a job's matrix."""
    # Every field visible as {{ matrix.* }}: axis values plus include fields
    values: Dict[str, Any] = field(default_factory=dict)
    # Fields identifying the cell (axis values, or all fields of an added include)
    coordinates: Dict[str, Any] = field(default_factory=dict)
    allow_failure: Optional[bool] = None


@dataclass
class ExpansionResult:
    """Instances produced for one job, plus anything worth reporting."""
    job_id: str
    instances: List[JobInstance] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _env_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def _cell_matches(cell: Dict[str, Any], entry: Dict[str, Any]) -> bool:
    return all(k in cell and cell[k] == v for k, v in entry.items())


# ============================================================================
# EXPANDER
# ============================================================================

class MatrixExpander:
    """Expands job definitions into concrete job instances."""

    def __init__(
        self,
        max_cells: int = 256,
        fail_on_empty: bool = False,
        source_dir: Optional[str] = None,
        resolver: Optional[TemplateResolver] = None,
    ):
        """
        Args:
            max_cells: Upper bound on cells per job
            fail_on_empty: Raise instead of warning on an empty axis
            source_dir: Repository cloned by the `checkout` action
            resolver: Template resolver (shared instance by default)
        """
        self.max_cells = max_cells
        self.fail_on_empty = fail_on_empty
        self.source_dir = source_dir
        self.resolver = resolver or get_resolver()

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------

    def cells(
        self,
        job_id: str,
        matrix: Optional[MatrixDefinition],
    ) -> Tuple[List[MatrixCell], List[str]]:
        """
        Compute the cells of a matrix.

        Returns:
            (cells, warnings)
        """
        if matrix is None or matrix.is_empty:
            return [MatrixCell()], []

        empty_axes = [axis for axis, values in matrix.axes.items() if not values]
        if empty_axes:
            message = (
                f"matrix axis {', '.join(repr(a) for a in empty_axes)} of job "
                f"'{job_id}' has no values; job will not run"
            )
            if self.fail_on_empty:
                raise ConfigurationError(message, job_id=job_id, field="matrix")
            logger.warning(message)
            return [], [message]

        axis_names = matrix.axis_names
        cells: List[MatrixCell] = []
        if axis_names:
            for combo in itertools.product(*(matrix.axes[a] for a in axis_names)):
                values = dict(zip(axis_names, combo))
                cells.append(MatrixCell(values=values, coordinates=dict(values)))

        cells = [
            c for c in cells
            if not any(_cell_matches(c.values, entry) for entry in matrix.exclude)
        ]

        for entry in matrix.include:
            allow = entry.get(CELL_ALLOW_FAILURE_KEY)
            if allow is not None and not isinstance(allow, bool):
                raise ConfigurationError(
                    f"include entry {entry} of job '{job_id}': "
                    f"'{CELL_ALLOW_FAILURE_KEY}' must be a boolean",
                    job_id=job_id,
                    field="matrix.include",
                )
            fields = {k: v for k, v in entry.items() if k != CELL_ALLOW_FAILURE_KEY}
            axis_part = {k: v for k, v in fields.items() if k in matrix.axes}
            aux_part = {k: v for k, v in fields.items() if k not in matrix.axes}

            targets = [c for c in cells if _cell_matches(c.coordinates, axis_part)] if axis_names else []
            if targets:
                for cell in targets:
                    cell.values.update(aux_part)
                    if allow is not None:
                        cell.allow_failure = allow
            elif fields:
                cells.append(MatrixCell(values=dict(fields), coordinates=dict(fields), allow_failure=allow))
            else:
                logger.warning(f"include entry {entry} of job '{job_id}' matches no cell; ignored")

        if len(cells) > self.max_cells:
            raise ConfigurationError(
                f"matrix of job '{job_id}' expands to {len(cells)} cells "
                f"(limit {self.max_cells})",
                job_id=job_id,
                field="matrix",
            )

        warnings = []
        if not cells:
            message = f"matrix of job '{job_id}' has no cells left after exclude; job will not run"
            logger.warning(message)
            warnings.append(message)
        return cells, warnings

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    def expand(
        self,
        workflow: WorkflowDefinition,
        job_id: str,
        trigger_event: Optional[str] = None,
        trigger_ref: Optional[str] = None,
    ) -> ExpansionResult:
        """
        Expand one job of a workflow into instances.

        Raises:
            ConfigurationError: empty axis (strict mode), too many cells,
                template or step configuration errors
        """
        job = workflow.get_job(job_id)
        cells, warnings = self.cells(job_id, job.matrix)
        result = ExpansionResult(job_id=job_id, warnings=warnings)

        seen: Dict[str, int] = {}
        for index, cell in enumerate(cells):
            instance_id = self._instance_id(job_id, job, cell)
            if instance_id in seen:
                seen[instance_id] += 1
                instance_id = f"{instance_id}#{seen[instance_id]}"
            else:
                seen[instance_id] = 1

            context = TemplateContext(
                matrix=cell.values,
                env=self._stringify(workflow.env),
                job_id=job_id,
                workflow_name=workflow.name,
                trigger_event=trigger_event,
                trigger_ref=trigger_ref,
            )
            result.instances.append(
                self._build_instance(job_id, job, cell, index, instance_id, context, workflow)
            )

        logger.debug(f"Job '{job_id}' expanded to {len(result.instances)} instance(s)")
        return result

    def _instance_id(self, job_id: str, job: JobDefinition, cell: MatrixCell) -> str:
        if job.matrix is None or not cell.coordinates:
            return job_id
        coords = ", ".join(f"{k}={v}" for k, v in cell.coordinates.items())
        return f"{job_id}[{coords}]"

    def _build_instance(
        self,
        job_id: str,
        job: JobDefinition,
        cell: MatrixCell,
        index: int,
        instance_id: str,
        context: TemplateContext,
        workflow: WorkflowDefinition,
    ) -> JobInstance:
        # Job env may reference workflow env; steps see both
        job_env = self._render(job.env, context, job_id, "env")
        env = {**self._stringify(workflow.env), **self._stringify(job_env)}
        context.env = env

        if job.name:
            display_name = _env_str(self._render(job.name, context, job_id, "name"))
        elif job.matrix is not None and cell.coordinates:
            display_name = f"{job_id} ({', '.join(_env_str(v) for v in cell.coordinates.values())})"
        else:
            display_name = job_id

        runs_on = _env_str(self._render(job.runs_on, context, job_id, "runs_on")) or "local"
        steps = [
            self._resolve_step(job_id, step, position, context, cell)
            for position, step in enumerate(job.steps, start=1)
        ]

        return JobInstance(
            instance_id=instance_id,
            job_id=job_id,
            display_name=display_name,
            cell_index=index,
            params=dict(cell.values),
            allow_failure=job.allow_failure if cell.allow_failure is None else cell.allow_failure,
            runs_on=runs_on,
            env=env,
            timeout_seconds=job.timeout_seconds,
            steps=steps,
        )

    def _resolve_step(
        self,
        job_id: str,
        step: StepDefinition,
        position: int,
        context: TemplateContext,
        cell: MatrixCell,
    ) -> ResolvedStep:
        where = f"steps[{position}]"
        name = _env_str(self._render(step.display_name, context, job_id, where))
        env = self._stringify(self._render(step.env, context, job_id, f"{where}.env"))
        workdir = self._render(step.working_directory, context, job_id, f"{where}.working_directory")

        try:
            if step.run:
                script = _env_str(self._render(step.run, context, job_id, f"{where}.run"))
                if not script.strip():
                    raise ValueError("'run' renders to an empty command")
                commands = [CommandSpec(shell=script)]
            elif step.command:
                program = _env_str(self._render(step.command, context, job_id, f"{where}.command"))
                args = self._render(step.args, context, job_id, f"{where}.args", parse_structures=True)
                if isinstance(args, list):
                    argv = [program] + [_env_str(a) for a in args]
                else:
                    argv = [program] + shlex.split(_env_str(args))
                commands = [CommandSpec(argv=argv)]
            else:
                config = self._render(step.with_, context, job_id, f"{where}.with", parse_structures=True)
                commands = resolve_action(ActionContext(
                    action=step.uses,
                    step_name=name,
                    job_id=job_id,
                    config=config,
                    params=dict(cell.values),
                    source_dir=self.source_dir,
                ))

            return ResolvedStep(
                name=name,
                commands=commands,
                env=env,
                working_directory=_env_str(workdir) or None,
            )
        except (ActionError, ValidationError, ValueError) as e:
            raise ConfigurationError(
                f"Job '{job_id}' {where} ('{name}'): malformed step: {e}",
                job_id=job_id,
                field=where,
            ) from e

    def _render(
        self,
        value: Any,
        context: TemplateContext,
        job_id: str,
        where: str,
        parse_structures: bool = False,
    ) -> Any:
        try:
            return self.resolver.resolve(value, context, parse_structures=parse_structures)
        except TemplateResolutionError as e:
            raise ConfigurationError(
                f"Job '{job_id}' {where}: {e}",
                job_id=job_id,
                field=where,
            ) from e

    @staticmethod
    def _stringify(env: Dict[str, Any]) -> Dict[str, str]:
        return {str(k): _env_str(v) for k, v in (env or {}).items()}


__all__ = ["MatrixCell", "ExpansionResult", "MatrixExpander"]
