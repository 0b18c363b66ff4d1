# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for scheduling, execution and matrix limits
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for scheduling and execution.
These can be overridden via CIFLOW_* environment variables or CLI flags.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional

from core.errors import ConfigurationError


ENV_PREFIX = "CIFLOW_"


def _env(name: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_number(name: str, default, kind=int, minimum=1):
    """Read a numeric variable; invalid or too-small values are configuration errors."""
    raw = os.getenv(f"{ENV_PREFIX}{name}")
    if raw is None:
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got '{raw}'") from None
    if value < minimum:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be at least {minimum}, got '{raw}'")
    return value


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _default_parallelism() -> int:
    return max(1, os.cpu_count() or 1)


@dataclass(frozen=True)
class SchedulerDefaults:
    """
    Defaults for the scheduler.

    max_parallel bounds the number of instances executing at once.
    """
    max_parallel: int = field(default_factory=_default_parallelism)

    @classmethod
    def from_env(cls) -> "SchedulerDefaults":
        """Create from environment variables."""
        return cls(
            max_parallel=_env_number("MAX_PARALLEL", _default_parallelism()),
        )


@dataclass(frozen=True)
class ExecutorDefaults:
    """
    Defaults for instance execution.

    Controls timeouts, workspace placement and output retention.
    """
    # Wall-clock limit per instance (seconds)
    default_timeout_seconds: int = 3600  # 1 hour

    # Root under which each run gets its own directory of instance workspaces
    workspace_dir: str = field(
        default_factory=lambda: os.path.join(tempfile.gettempdir(), "ciflow")
    )

    # Per-instance log files are written here when set
    logs_dir: Optional[str] = None

    # Lines of output kept in each InstanceResult
    output_tail_lines: int = 200

    # Seconds between SIGTERM and SIGKILL when a timeout fires
    kill_grace_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "ExecutorDefaults":
        """Create from environment variables."""
        base = cls()
        return cls(
            default_timeout_seconds=_env_number("DEFAULT_TIMEOUT_SECONDS", 3600),
            workspace_dir=_env("WORKSPACE_DIR", base.workspace_dir),
            logs_dir=os.getenv(f"{ENV_PREFIX}LOGS_DIR") or None,
            output_tail_lines=_env_number("OUTPUT_TAIL_LINES", 200),
            kill_grace_seconds=_env_number("KILL_GRACE_SECONDS", 5.0, kind=float, minimum=0),
        )


@dataclass(frozen=True)
class MatrixDefaults:
    """
    Defaults for matrix expansion.

    An empty axis is a warning unless fail_on_empty_matrix is set.
    """
    max_cells: int = 256
    fail_on_empty_matrix: bool = False

    @classmethod
    def from_env(cls) -> "MatrixDefaults":
        """Create from environment variables."""
        return cls(
            max_cells=_env_number("MAX_MATRIX_CELLS", 256),
            fail_on_empty_matrix=_env_bool("FAIL_ON_EMPTY_MATRIX", False),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    scheduler: SchedulerDefaults = field(default_factory=SchedulerDefaults)
    executor: ExecutorDefaults = field(default_factory=ExecutorDefaults)
    matrix: MatrixDefaults = field(default_factory=MatrixDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            scheduler=SchedulerDefaults.from_env(),
            executor=ExecutorDefaults.from_env(),
            matrix=MatrixDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ENV_PREFIX",
    "SchedulerDefaults",
    "ExecutorDefaults",
    "MatrixDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
