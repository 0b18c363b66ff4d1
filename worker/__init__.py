# ============================================================================
# WORKER MODULE
# ============================================================================
# STATUS: Core - Instance execution components
# PURPOSE: Run job instances as local subprocesses
# CREATED: 19 OCT 2026
# ============================================================================
"""
Worker Module

Components for instance execution:
- contracts: StepResult / InstanceResult reported to the scheduler
- executor: subprocess execution engine
"""

from worker.contracts import InstanceResult, StepResult
from worker.executor import (
    ExecutionContext,
    InstanceExecutor,
    matrix_env_name,
    safe_name,
)

__all__ = [
    # Contracts
    "InstanceResult",
    "StepResult",
    # Executor
    "ExecutionContext",
    "InstanceExecutor",
    "matrix_env_name",
    "safe_name",
]
