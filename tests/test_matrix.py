# ============================================================================
# MATRIX EXPANDER TESTS
# ============================================================================
# STATUS: Tests - Matrix expansion
# PURPOSE: Verify cells, include/exclude, per-cell overrides and rendering
# CREATED: 19 OCT 2026
# ============================================================================
"""
Matrix Expander Tests

Covers:
1. Instance count equals the Cartesian product (1 without a matrix)
2. Empty axes: zero instances plus a warning, or an error in strict mode
3. include / exclude semantics and pass-through fields
4. Per-cell allow_failure override
5. Instance ids, display names, runs_on, env and step rendering
6. Configuration errors surface as ConfigurationError

Run with:
    pytest tests/test_matrix.py -v
"""

import pytest

from core.errors import ConfigurationError
from orchestrator.engine.matrix import MatrixExpander

from conftest import BUILD_CELLS


def _workflow(make_workflow, job, env=None, **jobs):
    data = {"name": "T", "jobs": {"j": job, **jobs}}
    if env is not None:
        data["env"] = env
    return make_workflow(data)


def _job(matrix=None, **extra):
    job = {"steps": [{"run": "echo {{ matrix.os }}"}]}
    if matrix is not None:
        job["matrix"] = matrix
    job.update(extra)
    return job


@pytest.fixture
def expander():
    return MatrixExpander(source_dir="/src/repo")


# ============================================================================
# CELLS
# ============================================================================

class TestCellCount:

    def test_no_matrix_single_instance(self, make_workflow, expander):
        result = expander.expand(_workflow(make_workflow, _job()), "j")
        assert [i.instance_id for i in result.instances] == ["j"]
        assert result.instances[0].display_name == "j"
        assert result.warnings == []

    def test_cartesian_product(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux", "mac", "win"], "rust": ["stable", "beta"]}))
        result = expander.expand(workflow, "j")
        assert len(result.instances) == 6
        assert [i.params for i in result.instances[:3]] == [
            {"os": "linux", "rust": "stable"},
            {"os": "linux", "rust": "beta"},
            {"os": "mac", "rust": "stable"},
        ]
        assert [i.cell_index for i in result.instances] == list(range(6))

    def test_seven_cell_build(self, rust_ci_workflow, expander):
        result = expander.expand(rust_ci_workflow, "build")
        assert [i.display_name for i in result.instances] == BUILD_CELLS

    def test_empty_axis_warns(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": [], "rust": ["stable"], "include": [{"os": "x"}]}))
        result = expander.expand(workflow, "j")
        assert result.instances == []
        assert len(result.warnings) == 1
        assert "'os'" in result.warnings[0] and "no values" in result.warnings[0]

    def test_empty_axis_strict(self, make_workflow):
        workflow = _workflow(make_workflow, _job({"os": []}))
        with pytest.raises(ConfigurationError, match="has no values") as exc:
            MatrixExpander(fail_on_empty=True).expand(workflow, "j")
        assert exc.value.job_id == "j"

    def test_cell_limit(self, make_workflow):
        workflow = _workflow(make_workflow, _job({"a": list(range(5)), "b": list(range(5))}))
        with pytest.raises(ConfigurationError, match="25 cells"):
            MatrixExpander(max_cells=24).expand(workflow, "j")


class TestIncludeExclude:

    def test_exclude_drops_matching_cells(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({
            "os": ["linux", "win"],
            "rust": ["stable", "beta"],
            "exclude": [{"os": "win", "rust": "beta"}],
        }))
        ids = [i.instance_id for i in expander.expand(workflow, "j").instances]
        assert ids == ["j[os=linux, rust=stable]", "j[os=linux, rust=beta]", "j[os=win, rust=stable]"]

    def test_exclude_everything_warns(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux"], "exclude": [{"os": "linux"}]}))
        result = expander.expand(workflow, "j")
        assert result.instances == []
        assert "no cells left" in result.warnings[0]

    def test_include_extends_matching_cells(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({
            "os": ["linux", "win"],
            "include": [{"os": "win", "target": "x86_64-pc-windows-gnu"}],
        }))
        instances = expander.expand(workflow, "j").instances
        assert len(instances) == 2
        assert instances[0].params == {"os": "linux"}
        assert instances[1].params == {"os": "win", "target": "x86_64-pc-windows-gnu"}
        # Pass-through fields do not change identity
        assert instances[1].instance_id == "j[os=win]"

    def test_include_without_axis_keys_applies_to_all(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux", "win"], "include": [{"features": "--all"}]}))
        instances = expander.expand(workflow, "j").instances
        assert all(i.params["features"] == "--all" for i in instances)

    def test_unmatched_include_adds_cell(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux"], "include": [{"os": "bsd", "rust": "nightly"}]}))
        instances = expander.expand(workflow, "j").instances
        assert [i.instance_id for i in instances] == ["j[os=linux]", "j[os=bsd, rust=nightly]"]

    def test_include_only_matrix(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"include": [{"os": "a"}, {"os": "b"}]}))
        assert [i.params for i in expander.expand(workflow, "j").instances] == [{"os": "a"}, {"os": "b"}]

    def test_duplicate_cells_get_unique_ids(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux", "linux"]}))
        ids = [i.instance_id for i in expander.expand(workflow, "j").instances]
        assert ids == ["j[os=linux]", "j[os=linux]#2"]


class TestAllowFailure:

    def test_job_level_flag(self, rust_ci_workflow, expander):
        assert expander.expand(rust_ci_workflow, "nightly").instances[0].allow_failure is True
        assert not any(i.allow_failure for i in expander.expand(rust_ci_workflow, "build").instances)

    def test_per_cell_override(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({
            "rust": ["stable", "beta", "nightly"],
            "include": [{"rust": "nightly", "allow_failure": True}],
        }))
        instances = expander.expand(workflow, "j").instances
        assert [i.allow_failure for i in instances] == [False, False, True]
        assert "allow_failure" not in instances[2].params

    def test_override_can_make_cell_required(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job(
            {"rust": ["stable", "nightly"], "include": [{"rust": "stable", "allow_failure": False}]},
            allow_failure=True,
        ))
        assert [i.allow_failure for i in expander.expand(workflow, "j").instances] == [False, True]

    def test_new_cell_with_override(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({
            "name": ["linux / stable"],
            "include": [{"name": "linux / nightly", "rust": "nightly", "allow_failure": True}],
        }))
        instances = expander.expand(workflow, "j").instances
        assert instances[1].instance_id == "j[name=linux / nightly, rust=nightly]"
        assert instances[1].allow_failure is True

    def test_override_must_be_boolean(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"rust": ["nightly"], "include": [{"rust": "nightly", "allow_failure": "yes"}]}))
        with pytest.raises(ConfigurationError, match="must be a boolean"):
            expander.expand(workflow, "j")


# ============================================================================
# RENDERING
# ============================================================================

class TestRendering:

    def test_runs_on_and_names(self, rust_ci_workflow, expander):
        instances = {i.display_name: i for i in expander.expand(rust_ci_workflow, "build").instances}
        assert instances["macOS / stable"].runs_on == "macOS-latest"
        assert instances["linux / stable"].runs_on == "ubuntu-latest"
        assert instances["linux / beta"].params["rust"] == "beta"

    def test_templated_name(self, rust_ci_workflow, expander):
        instance = expander.expand(rust_ci_workflow, "minversion").instances[0]
        assert instance.display_name == "Minimum version 1.39.0"
        assert instance.instance_id == "minversion[rust=1.39.0]"
        assert instance.steps[0].commands[0].shell == "cargo +1.39.0 check"

    def test_default_display_name_from_coordinates(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job({"os": ["linux"], "rust": ["beta"]}))
        assert expander.expand(workflow, "j").instances[0].display_name == "j (linux, beta)"

    def test_env_layering(self, make_workflow, expander):
        workflow = _workflow(
            make_workflow,
            _job(env={"LEVEL": "job-{{ env.BASE }}", "FLAG": True}),
            env={"BASE": 1, "LEVEL": "workflow"},
        )
        instance = expander.expand(workflow, "j").instances[0]
        assert instance.env == {"BASE": "1", "LEVEL": "job-1", "FLAG": "true"}

    def test_trigger_in_templates(self, make_workflow, expander):
        workflow = _workflow(make_workflow, {"steps": [{"run": "echo {{ trigger.event }}"}]})
        instance = expander.expand(workflow, "j", trigger_event="push").instances[0]
        assert instance.steps[0].commands[0].shell == "echo push"

    def test_command_step(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job(
            {"features": ["", "--all-features"]},
            steps=[{"name": "Test", "command": "cargo", "args": "test {{ matrix.features }}"}],
        ))
        instances = expander.expand(workflow, "j").instances
        assert instances[0].steps[0].commands[0].argv == ["cargo", "test"]
        assert instances[1].steps[0].commands[0].argv == ["cargo", "test", "--all-features"]

    def test_bracketed_values_stay_text(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job(
            {"channel": ["[beta]"]},
            name="build {{ matrix.channel }}",
            runs_on="{{ matrix.channel }}",
            steps=[{"run": "{{ matrix.channel }}"}],
        ))
        instance = expander.expand(workflow, "j").instances[0]
        assert instance.display_name == "build [beta]"
        assert instance.runs_on == "[beta]"
        assert instance.steps[0].commands[0].shell == "[beta]"

    def test_lone_list_args(self, make_workflow, expander):
        workflow = _workflow(make_workflow, _job(
            {"flags": [["--all", "--release"]]},
            steps=[{"command": "cargo", "args": "{{ matrix.flags }}"}],
        ))
        instance = expander.expand(workflow, "j").instances[0]
        assert instance.steps[0].commands[0].argv == ["cargo", "--all", "--release"]

    def test_uses_step_resolved(self, rust_ci_data, make_workflow, expander):
        rust_ci_data["jobs"]["build"]["steps"] = [
            {"name": "Checkout", "uses": "checkout"},
            {
                "name": "Install rust",
                "uses": "toolchain",
                "with": {"toolchain": "{{ matrix.rust or 'stable' }}", "target": "{{ matrix.target }}"},
            },
        ]
        instance = expander.expand(make_workflow(rust_ci_data), "build").instances[1]
        checkout, install = instance.steps
        assert checkout.commands[0].argv[-2:] == ["/src/repo", "."]
        assert install.commands[0].argv == ["rustup", "toolchain", "install", "beta"]


class TestConfigurationErrors:

    def test_unknown_action(self, make_workflow, expander):
        workflow = _workflow(make_workflow, {"steps": [{"uses": "actions/checkout@v1"}]})
        with pytest.raises(ConfigurationError, match="malformed step") as exc:
            expander.expand(workflow, "j")
        assert exc.value.field == "steps[1]"

    def test_bad_action_config(self, make_workflow, expander):
        workflow = _workflow(make_workflow, {"steps": [{"uses": "cargo", "with": {"args": "--all"}}]})
        with pytest.raises(ConfigurationError, match="missing required option 'command'"):
            expander.expand(workflow, "j")

    def test_empty_rendered_run(self, make_workflow, expander):
        workflow = _workflow(make_workflow, {"steps": [{"run": "{{ matrix.script }}"}]})
        with pytest.raises(ConfigurationError, match="empty command"):
            expander.expand(workflow, "j")

    def test_template_error(self, make_workflow, expander):
        workflow = _workflow(make_workflow, {"name": "{{ inputs.x }}", "steps": [{"run": "true"}]})
        with pytest.raises(ConfigurationError, match="Job 'j' name"):
            expander.expand(workflow, "j")
