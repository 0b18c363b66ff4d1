# ============================================================================
# MODELS MODULE
# ============================================================================
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Definitions (immutable, loaded once):
    WorkflowDefinition, JobDefinition, StepDefinition, MatrixDefinition,
    TriggerDefinition

Run-time:
    JobInstance (frozen expansion), InstanceState (scheduler-owned),
    RunReport (gate output)
"""

from core.models.workflow import (
    WorkflowDefinition,
    JobDefinition,
    StepDefinition,
    MatrixDefinition,
    TriggerDefinition,
)
from core.models.instance import CommandSpec, ResolvedStep, JobInstance
from core.models.instance_state import InstanceState
from core.models.report import InstanceReport, RunReport

__all__ = [
    # Workflow
    "WorkflowDefinition",
    "JobDefinition",
    "StepDefinition",
    "MatrixDefinition",
    "TriggerDefinition",
    # Instance
    "CommandSpec",
    "ResolvedStep",
    "JobInstance",
    "InstanceState",
    # Report
    "InstanceReport",
    "RunReport",
]
