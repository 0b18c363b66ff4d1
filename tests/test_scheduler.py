# ============================================================================
# SCHEDULER TESTS
# ============================================================================
# STATUS: Tests - asyncio coordinator
# PURPOSE: Verify ordering, skipping, concurrency bound and failure isolation
# CREATED: 19 OCT 2026
# ============================================================================
"""
Scheduler Tests

Uses the ScriptedExecutor from conftest, so no subprocesses run.

Covers:
1. The style -> build matrix scenario (style fails / nightly fails / a cell fails)
2. Prerequisites finish before dependents start
3. max_parallel is respected
4. Transitive skips, allowed failures, executor crashes
5. Final statuses do not depend on the concurrency bound
6. Cancelling the run cancels running instances

Run with:
    pytest tests/test_scheduler.py -v
"""

import asyncio

import pytest

from core.contracts import OverallStatus, RunStatus
from orchestrator import Scheduler
from orchestrator.engine.gate import ResultAggregator

from conftest import BUILD_CELLS


STEPS = [{"run": "true"}]
BUILD_IDS = [f"build[name={cell}]" for cell in BUILD_CELLS]
DEPENDENT_IDS = BUILD_IDS + ["nightly", "minversion[rust=1.39.0]"]


def _run(plan, executor, max_parallel=4):
    scheduler = Scheduler(executor, max_parallel=max_parallel)
    state = asyncio.run(scheduler.run(plan))
    return scheduler, state


def _statuses(state):
    return {s.instance_id: s.status for s in state.states()}


# ============================================================================
# CI SCENARIO
# ============================================================================

class TestRustCiScenario:

    def test_style_failure_skips_everything(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        executor = scripted_executor(outcomes={"style": False})
        _, state = _run(plan, executor)

        assert executor.started == ["style"]
        assert state.status("style") == RunStatus.FAILED
        for instance_id in DEPENDENT_IDS:
            record = state.get(instance_id)
            assert record.status == RunStatus.SKIPPED
            assert record.skip_reason == "prerequisite 'style' failed"

        report = ResultAggregator().aggregate(plan, state)
        assert report.overall_status == OverallStatus.FAILED
        assert report.status_counts() == {"failed": 1, "skipped": 9}

    def test_nightly_failure_is_allowed(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        _, state = _run(plan, scripted_executor(outcomes={"nightly": False}))

        assert state.status("nightly") == RunStatus.FAILED
        assert len(state.with_status(RunStatus.SUCCEEDED)) == 9

        report = ResultAggregator().aggregate(plan, state)
        assert report.overall_status == OverallStatus.SUCCEEDED
        assert report.get("nightly").is_allowed_failure

    def test_one_failing_cell_fails_the_run(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        failing = "build[name=windows / stable-i686-gnu]"
        executor = scripted_executor(outcomes={failing: False})
        _, state = _run(plan, executor)

        assert state.status(failing) == RunStatus.FAILED
        assert state.get(failing).failed_step == "Build"
        assert state.get(failing).exit_code == 1
        # Sibling cells are unaffected
        assert len(state.with_status(RunStatus.SUCCEEDED)) == 9
        assert sorted(executor.started) == sorted(["style"] + DEPENDENT_IDS)

        report = ResultAggregator().aggregate(plan, state)
        assert report.overall_status == OverallStatus.FAILED
        assert report.exit_code == 1

    def test_all_pass(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        scheduler, state = _run(plan, scripted_executor())
        assert state.all_terminal()
        assert state.counts() == {"succeeded": 10}
        assert set(scheduler.results) == {i.instance_id for i in plan.instances}


# ============================================================================
# ORDERING / CONCURRENCY
# ============================================================================

class TestOrdering:

    def test_prerequisite_finishes_before_dependents_start(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        executor = scripted_executor(default_delay=0.01)
        _run(plan, executor, max_parallel=8)

        assert executor.started[0] == "style"
        assert executor.finished[0] == "style"
        assert set(executor.started[1:]) == set(DEPENDENT_IDS)

    def test_serial_dispatch_follows_plan_order(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        executor = scripted_executor()
        _run(plan, executor, max_parallel=1)
        assert executor.started == [i.instance_id for i in plan.instances]

    def test_diamond_waits_for_both_branches(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "a": {"steps": STEPS},
            "b": {"needs": "a", "steps": STEPS},
            "c": {"needs": "a", "steps": STEPS},
            "d": {"needs": ["b", "c"], "steps": STEPS},
        }})
        executor = scripted_executor(delays={"b": 0.05, "c": 0.0})
        _run(make_plan(workflow), executor)
        assert executor.started[-1] == "d"
        assert executor.finished.index("b") < executor.started.index("d")


class TestConcurrencyBound:

    @pytest.mark.parametrize("max_parallel", [1, 3])
    def test_bound_respected(self, rust_ci_workflow, make_plan, scripted_executor, max_parallel):
        executor = scripted_executor(default_delay=0.02)
        _run(make_plan(rust_ci_workflow), executor, max_parallel=max_parallel)
        assert executor.max_active == max_parallel

    def test_invalid_bound(self, scripted_executor):
        with pytest.raises(ValueError, match="max_parallel"):
            Scheduler(scripted_executor(), max_parallel=0)


# ============================================================================
# FAILURE HANDLING
# ============================================================================

class TestFailureHandling:

    def test_skips_propagate_transitively(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "a": {"steps": STEPS},
            "b": {"needs": "a", "steps": STEPS},
            "c": {"needs": "b", "steps": STEPS},
        }})
        _, state = _run(make_plan(workflow), scripted_executor(outcomes={"a": False}))
        assert state.get("b").skip_reason == "prerequisite 'a' failed"
        assert state.get("c").skip_reason == "prerequisite 'b' skipped"

    def test_allowed_failure_does_not_skip_dependents(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "a": {"allow_failure": True, "steps": STEPS},
            "b": {"needs": "a", "steps": STEPS},
        }})
        _, state = _run(make_plan(workflow), scripted_executor(outcomes={"a": False}))
        assert state.status("a") == RunStatus.FAILED
        assert state.status("b") == RunStatus.SUCCEEDED

    def test_independent_instances_keep_running(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "fast": {"steps": STEPS},
            "slow": {"steps": STEPS},
        }})
        executor = scripted_executor(outcomes={"fast": False}, delays={"slow": 0.05})
        _, state = _run(make_plan(workflow), executor)
        assert state.status("fast") == RunStatus.FAILED
        assert state.status("slow") == RunStatus.SUCCEEDED

    def test_executor_exception_is_contained(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "a": {"steps": STEPS},
            "b": {"needs": "a", "steps": STEPS},
            "c": {"steps": STEPS},
        }})
        _, state = _run(make_plan(workflow), scripted_executor(raises={"a"}))
        assert state.status("a") == RunStatus.FAILED
        assert state.get("a").error_message.startswith("executor error: RuntimeError")
        assert state.status("b") == RunStatus.SKIPPED
        assert state.status("c") == RunStatus.SUCCEEDED

    def test_statuses_independent_of_bound(self, rust_ci_workflow, make_plan, scripted_executor):
        plan = make_plan(rust_ci_workflow)
        outcomes = {"build[name=linux / beta]": False, "nightly": False}
        _, serial = _run(plan, scripted_executor(outcomes=outcomes), max_parallel=1)
        _, wide = _run(plan, scripted_executor(outcomes=outcomes, default_delay=0.001), max_parallel=16)
        assert _statuses(serial) == _statuses(wide)

    def test_empty_plan(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {"a": {"matrix": {"os": []}, "steps": STEPS}}})
        plan = make_plan(workflow)
        _, state = _run(plan, scripted_executor())
        assert len(state) == 0
        assert ResultAggregator().aggregate(plan, state).overall_status == OverallStatus.SUCCEEDED


class TestCancellation:

    def test_cancelling_run_cancels_instances(self, make_workflow, make_plan, scripted_executor):
        workflow = make_workflow({"jobs": {
            "a": {"steps": STEPS},
            "b": {"steps": STEPS},
        }})
        plan = make_plan(workflow)
        executor = scripted_executor(default_delay=10)

        async def main():
            task = asyncio.create_task(Scheduler(executor, max_parallel=2).run(plan))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(main())
        assert sorted(executor.started) == ["a", "b"]
        assert executor.active == 0
