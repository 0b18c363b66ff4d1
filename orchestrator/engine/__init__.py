# ============================================================================
# ORCHESTRATOR ENGINE
# ============================================================================
# STATUS: Core - Engine components
# PURPOSE: Template resolution, matrix expansion, graph building, gating
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Engine Components

- templates: Jinja2-based template resolution
- matrix: matrix expansion into job instances
- graph: `needs` resolution, fan-out gate policy, cycle detection
- planner: expansion + graph into an ExecutionPlan
- gate: overall verdict and RunReport
"""

from orchestrator.engine.templates import (
    TemplateResolver,
    TemplateContext,
    TemplateResolutionError,
    get_resolver,
)
from orchestrator.engine.matrix import ExpansionResult, MatrixCell, MatrixExpander
from orchestrator.engine.graph import (
    DependencyGraph,
    FanOutGatePolicy,
    GraphBuilder,
    TopologicalSorter,
)
from orchestrator.engine.planner import ExecutionPlan, build_plan
from orchestrator.engine.gate import ResultAggregator

__all__ = [
    # Templates
    "TemplateResolver",
    "TemplateContext",
    "TemplateResolutionError",
    "get_resolver",
    # Matrix
    "ExpansionResult",
    "MatrixCell",
    "MatrixExpander",
    # Graph
    "DependencyGraph",
    "FanOutGatePolicy",
    "GraphBuilder",
    "TopologicalSorter",
    # Planning / gate
    "ExecutionPlan",
    "build_plan",
    "ResultAggregator",
]
