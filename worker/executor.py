# ============================================================================
# WORKER EXECUTOR
# ============================================================================
# STATUS: Core - Instance execution engine
# PURPOSE: Run an instance's steps as subprocesses with timeout and output capture
# CREATED: 19 OCT 2026
# ============================================================================
"""
Worker Executor

Executes one JobInstance:
- Isolated working directory per instance under the run's workspace root
- Steps in order, each step's commands in order
- Layered environment (host, workflow, job, step) plus injected CI variables
- Merged stdout/stderr streamed line by line to a tail buffer, the DEBUG
  logger and an optional per-instance log file
- Per-instance wall-clock timeout; expiry terminates the whole process group

A non-zero exit raises StepExecutionError internally, which is converted
to a failed InstanceResult. Nothing raised by a step escapes execute().

Process groups (start_new_session / killpg) make this executor POSIX-only.
"""

import asyncio
import hashlib
import os
import re
import signal
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, TextIO

from core.config import ExecutorDefaults, get_defaults
from core.errors import StepExecutionError
from core.logging import ComponentType, get_logger, log_context
from core.models.instance import CommandSpec, JobInstance, ResolvedStep
from worker.contracts import InstanceResult, StepResult

logger = get_logger(__name__, ComponentType.EXECUTOR)

# Output is read in chunks of this size
_READ_CHUNK = 64 * 1024

# Longer output lines are emitted in pieces of this size
_MAX_LINE = 1024 * 1024


def safe_name(instance_id: str) -> str:
    """Filesystem-safe, collision-free directory name for an instance."""
    readable = re.sub(r"[^A-Za-z0-9._-]+", "_", instance_id).strip("_") or "instance"
    digest = hashlib.sha1(instance_id.encode("utf-8")).hexdigest()[:8]
    return f"{readable[:80]}-{digest}"


def _env_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def matrix_env_name(axis: str) -> str:
    """MATRIX_<AXIS> variable name for a matrix field."""
    return "MATRIX_" + re.sub(r"[^A-Za-z0-9]", "_", axis).upper()


# ============================================================================
# EXECUTION CONTEXT
# ============================================================================

@dataclass
class ExecutionContext:
    """Mutable bookkeeping for a single instance execution."""
    instance: JobInstance
    workspace: str
    env: Dict[str, str]
    output: Deque[str]
    start_time: float
    log_file: Optional[TextIO] = None
    log_path: Optional[str] = None
    steps: List[StepResult] = field(default_factory=list)
    current_step: Optional[str] = None

    @property
    def elapsed_ms(self) -> int:
        """Elapsed time in milliseconds."""
        return int((time.monotonic() - self.start_time) * 1000)


# ============================================================================
# EXECUTOR
# ============================================================================

class InstanceExecutor:
    """
    Executes job instances as local subprocesses.

    One executor serves one run; instances share nothing but the
    read-only configuration held here.
    """

    def __init__(
        self,
        run_id: str,
        trigger: Optional[str] = None,
        config: Optional[ExecutorDefaults] = None,
        base_env: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize executor.

        Args:
            run_id: Run identifier (workspace and log directories are keyed on it)
            trigger: Opaque trigger label exported as CIFLOW_TRIGGER
            config: Executor settings (global defaults if omitted)
            base_env: Environment the layers start from (host env if omitted)
        """
        self.run_id = run_id
        self.trigger = trigger
        self.config = config or get_defaults().executor
        self.base_env = dict(os.environ if base_env is None else base_env)

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def workspace_for(self, instance: JobInstance) -> str:
        return os.path.join(self.config.workspace_dir, self.run_id, safe_name(instance.instance_id))

    def log_path_for(self, instance: JobInstance) -> Optional[str]:
        if not self.config.logs_dir:
            return None
        return os.path.join(self.config.logs_dir, self.run_id, f"{safe_name(instance.instance_id)}.log")

    def build_env(self, instance: JobInstance) -> Dict[str, str]:
        """Host env, then workflow + job env, then injected variables."""
        env = dict(self.base_env)
        env.update(instance.env)
        env.update(self.injected_env(instance))
        return env

    def injected_env(self, instance: JobInstance) -> Dict[str, str]:
        injected = {
            "CI": "true",
            "CIFLOW_RUN_ID": self.run_id,
            "CIFLOW_JOB": instance.job_id,
            "CIFLOW_INSTANCE": instance.instance_id,
            "CIFLOW_RUNS_ON": instance.runs_on,
            "CIFLOW_TRIGGER": self.trigger or "",
        }
        for key, value in instance.params.items():
            injected[matrix_env_name(key)] = _env_value(value)
        return injected

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(self, instance: JobInstance) -> InstanceResult:
        """
        Execute an instance.

        Args:
            instance: Instance to execute

        Returns:
            InstanceResult with success or failure
        """
        timeout = instance.timeout_seconds or self.config.default_timeout_seconds or None

        with log_context(job_id=instance.job_id, instance_id=instance.instance_id):
            workspace = self.workspace_for(instance)
            os.makedirs(workspace, exist_ok=True)

            ctx = ExecutionContext(
                instance=instance,
                workspace=workspace,
                env=self.build_env(instance),
                output=deque(maxlen=max(1, self.config.output_tail_lines)),
                start_time=time.monotonic(),
                log_path=self.log_path_for(instance),
            )
            logger.info(f"Executing {instance.display_name} ({len(instance.steps)} step(s)) in {workspace}")

            if ctx.log_path:
                os.makedirs(os.path.dirname(ctx.log_path), exist_ok=True)
                ctx.log_file = open(ctx.log_path, "w", encoding="utf-8")

            try:
                await asyncio.wait_for(self._run_steps(ctx), timeout=timeout)

            except asyncio.TimeoutError:
                step = ctx.current_step or "<none>"
                if ctx.steps and ctx.steps[-1].name == step:
                    ctx.steps[-1] = ctx.steps[-1].model_copy(update={"timed_out": True})
                error = StepExecutionError(
                    instance.instance_id,
                    step,
                    timed_out=True,
                    message=f"[{instance.instance_id}] step '{step}' timed out after {timeout}s",
                )
                logger.error(str(error))
                return self._failure(ctx, error)

            except StepExecutionError as e:
                logger.error(str(e))
                return self._failure(ctx, e)

            finally:
                if ctx.log_file:
                    ctx.log_file.close()

            logger.info(f"Instance {instance.instance_id} completed in {ctx.elapsed_ms}ms")
            return InstanceResult.succeeded(
                instance_id=instance.instance_id,
                job_id=instance.job_id,
                steps=ctx.steps,
                output_tail=list(ctx.output),
                duration_ms=ctx.elapsed_ms,
                workspace=ctx.workspace,
                log_file=ctx.log_path,
            )

    def _failure(self, ctx: ExecutionContext, error: StepExecutionError) -> InstanceResult:
        return InstanceResult.from_error(
            ctx.instance.job_id,
            error,
            steps=ctx.steps,
            output_tail=list(ctx.output),
            duration_ms=ctx.elapsed_ms,
            workspace=ctx.workspace,
            log_file=ctx.log_path,
        )

    async def _run_steps(self, ctx: ExecutionContext) -> None:
        for step in ctx.instance.steps:
            ctx.current_step = step.name
            with log_context(step=step.name):
                await self._run_step(ctx, step)

    async def _run_step(self, ctx: ExecutionContext, step: ResolvedStep) -> None:
        started = time.monotonic()
        ctx.steps.append(StepResult(name=step.name))
        self._emit(ctx, f"##[step] {step.name}")

        cwd = ctx.workspace
        if step.working_directory:
            cwd = os.path.join(ctx.workspace, step.working_directory)

        exit_code = 0
        for command in step.commands:
            env = {**ctx.env, **step.env, **command.env}
            env.update(self.injected_env(ctx.instance))
            exit_code = await self._run_command(ctx, step, command, cwd, env)
            if exit_code != 0:
                break

        ctx.steps[-1] = StepResult(
            name=step.name,
            exit_code=exit_code,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        if exit_code != 0:
            raise StepExecutionError(ctx.instance.instance_id, step.name, exit_code=exit_code)

    async def _run_command(
        self,
        ctx: ExecutionContext,
        step: ResolvedStep,
        command: CommandSpec,
        cwd: str,
        env: Dict[str, str],
    ) -> int:
        self._emit(ctx, f"$ {command.describe()}")
        common = dict(
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env=env,
            start_new_session=True,
        )
        try:
            if command.shell is not None:
                proc = await asyncio.create_subprocess_shell(command.shell, **common)
            else:
                proc = await asyncio.create_subprocess_exec(*command.argv, **common)
        except OSError as e:
            # Missing program or working directory
            self._emit(ctx, f"ciflow: cannot start '{command.describe()}': {e}")
            ctx.steps[-1] = StepResult(name=step.name, exit_code=127)
            raise StepExecutionError(
                ctx.instance.instance_id,
                step.name,
                exit_code=127,
                message=f"[{ctx.instance.instance_id}] step '{step.name}' could not start: {e}",
            ) from e

        try:
            await self._stream_output(ctx, proc.stdout)
            return await proc.wait()
        except BaseException:
            await self._kill(proc)
            raise

    async def _stream_output(self, ctx: ExecutionContext, stream: asyncio.StreamReader) -> None:
        """Emit output line by line; lines longer than _MAX_LINE are split."""
        pending = b""
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                break
            pending += chunk
            *lines, pending = pending.split(b"\n")
            for raw in lines:
                self._emit_bytes(ctx, raw)
            while len(pending) > _MAX_LINE:
                self._emit_bytes(ctx, pending[:_MAX_LINE])
                pending = pending[_MAX_LINE:]
        if pending:
            self._emit_bytes(ctx, pending)

    async def _kill(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, SIGKILL it after the grace period."""
        if proc.returncode is not None:
            return
        try:
            os.killpg(proc.pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), timeout=self.config.kill_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Process group {proc.pid} ignored SIGTERM; sending SIGKILL")
            try:
                os.killpg(proc.pid, signal.SIGKILL)
            except ProcessLookupError:
                return
            await proc.wait()

    def _emit_bytes(self, ctx: ExecutionContext, raw: bytes) -> None:
        self._emit(ctx, raw.decode("utf-8", errors="replace").rstrip("\r"))

    def _emit(self, ctx: ExecutionContext, line: str) -> None:
        ctx.output.append(line)
        logger.debug(line)
        if ctx.log_file:
            ctx.log_file.write(line + "\n")
            ctx.log_file.flush()


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ExecutionContext",
    "InstanceExecutor",
    "safe_name",
    "matrix_env_name",
]
