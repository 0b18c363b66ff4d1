# ============================================================================
# CORE MODULE
# ============================================================================
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.contracts import RunStatus, OverallStatus
from core.errors import (
    CiflowError,
    ConfigurationError,
    UnknownJob,
    CyclicDependency,
    StepExecutionError,
    AggregationError,
    InvalidTransition,
)
from core.models import (
    WorkflowDefinition,
    JobDefinition,
    StepDefinition,
    MatrixDefinition,
    TriggerDefinition,
    JobInstance,
    InstanceState,
    RunReport,
)

__all__ = [
    # Enums
    "RunStatus",
    "OverallStatus",
    # Errors
    "CiflowError",
    "ConfigurationError",
    "UnknownJob",
    "CyclicDependency",
    "StepExecutionError",
    "AggregationError",
    "InvalidTransition",
    # Models
    "WorkflowDefinition",
    "JobDefinition",
    "StepDefinition",
    "MatrixDefinition",
    "TriggerDefinition",
    "JobInstance",
    "InstanceState",
    "RunReport",
]
