# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# STATUS: Core - Run coordination
# PURPOSE: Schedule job instances and own their run state
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import Scheduler, RunStateTable

    state = RunStateTable.for_plan(plan)
    await Scheduler(executor, max_parallel=4).run(plan, state)
"""

from .scheduler import Scheduler
from .state import RunStateTable

__all__ = ["Scheduler", "RunStateTable"]
