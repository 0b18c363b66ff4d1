# ============================================================================
# SERVICES MODULE
# ============================================================================
# STATUS: Core - Business logic layer
# PURPOSE: Workflow loading and run lifecycle services
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services Module

Usage:
    from services import RunService

    service = RunService()
    workflow = service.load("workflows/ci.yaml")
    report = service.run(workflow, trigger_event="pull_request")
"""

from .workflow_service import WorkflowService
from .run_service import RunService

__all__ = [
    "WorkflowService",
    "RunService",
]
