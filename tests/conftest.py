# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# STATUS: Tests - Fixtures shared across the suite
# PURPOSE: Scripted executor and sample workflows
# CREATED: 19 OCT 2026
# ============================================================================
"""
Shared fixtures.

ScriptedExecutor stands in for the subprocess executor: outcomes are
looked up by instance id, then by job id, and default to success. It
records dispatch order, completion order and peak concurrency.
"""

import asyncio
import os
from typing import Dict, List, Optional, Set

import pytest

from core.config import reset_defaults
from core.models import JobInstance, WorkflowDefinition
from orchestrator.engine.matrix import MatrixExpander
from orchestrator.engine.planner import build_plan
from services.workflow_service import WorkflowService
from worker.contracts import InstanceResult


# ============================================================================
# SCRIPTED EXECUTOR
# ============================================================================

class ScriptedExecutor:
    """Fake executor with scripted outcomes."""

    def __init__(
        self,
        outcomes: Optional[Dict[str, bool]] = None,
        delays: Optional[Dict[str, float]] = None,
        raises: Optional[Set[str]] = None,
        default_delay: float = 0.0,
    ):
        self.outcomes = outcomes or {}
        self.delays = delays or {}
        self.raises = raises or set()
        self.default_delay = default_delay

        self.started: List[str] = []
        self.finished: List[str] = []
        self.active = 0
        self.max_active = 0

    def _lookup(self, table: Dict, instance: JobInstance, default):
        if instance.instance_id in table:
            return table[instance.instance_id]
        return table.get(instance.job_id, default)

    async def execute(self, instance: JobInstance) -> InstanceResult:
        self.started.append(instance.instance_id)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self._lookup(self.delays, instance, self.default_delay))
            if instance.instance_id in self.raises or instance.job_id in self.raises:
                raise RuntimeError(f"executor crashed on {instance.instance_id}")
        finally:
            self.active -= 1
            self.finished.append(instance.instance_id)

        if self._lookup(self.outcomes, instance, True):
            return InstanceResult.succeeded(instance.instance_id, instance.job_id)
        return InstanceResult.failed(
            instance.instance_id,
            instance.job_id,
            error_message=f"[{instance.instance_id}] step 'Build' failed (exit=1)",
            exit_code=1,
            failed_step="Build",
        )


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def _clean_defaults(monkeypatch):
    """Keep CIFLOW_* settings from the host out of the tests."""
    for key in list(os.environ):
        if key.startswith("CIFLOW_"):
            monkeypatch.delenv(key, raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def make_workflow():
    """Build a validated WorkflowDefinition from a plain dict."""
    service = WorkflowService()

    def _make(data: dict) -> WorkflowDefinition:
        return service.from_dict(data, source="<test>")
    return _make


@pytest.fixture
def make_plan():
    """Plan a workflow with a local expander."""
    def _make(workflow: WorkflowDefinition, **kwargs):
        expander = kwargs.pop("expander", None) or MatrixExpander(source_dir="/src/repo")
        return build_plan(workflow, expander=expander, **kwargs)
    return _make


@pytest.fixture
def scripted_executor():
    return ScriptedExecutor


BUILD_CELLS = [
    "linux / stable",
    "linux / beta",
    "macOS / stable",
    "windows / stable-x86_64-msvc",
    "windows / stable-i686-msvc",
    "windows / stable-x86_64-gnu",
    "windows / stable-i686-gnu",
]


@pytest.fixture
def rust_ci_data():
    """style -> {build x7, nightly (allow failure), minversion}."""
    return {
        "name": "CI",
        "on": {"pull_request": None, "push": {"branches": ["master"]}},
        "env": {"RUST_BACKTRACE": 1},
        "jobs": {
            "style": {
                "name": "Check Style",
                "steps": [{"name": "cargo fmt -- --check", "run": "cargo fmt --all -- --check"}],
            },
            "build": {
                "name": "{{ matrix.name }}",
                "needs": ["style"],
                "runs-on": "{{ matrix.os or 'ubuntu-latest' }}",
                "strategy": {
                    "matrix": {
                        "name": list(BUILD_CELLS),
                        "include": [
                            {"name": "linux / beta", "rust": "beta"},
                            {"name": "macOS / stable", "os": "macOS-latest"},
                        ],
                    },
                },
                "steps": [
                    {"name": "Build", "command": "cargo", "args": ["build"]},
                ],
            },
            "nightly": {
                "name": "linux / nightly",
                "needs": ["style"],
                "allow_failure": True,
                "steps": [{"name": "Build", "run": "cargo +nightly build"}],
            },
            "minversion": {
                "name": "Minimum version {{ matrix.rust }}",
                "needs": "style",
                "matrix": {"rust": ["1.39.0"]},
                "steps": [{"name": "Check", "run": "cargo +{{ matrix.rust }} check"}],
            },
        },
    }


@pytest.fixture
def rust_ci_workflow(make_workflow, rust_ci_data):
    return make_workflow(rust_ci_data)
