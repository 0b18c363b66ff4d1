# ============================================================================
# ACTION REGISTRY TESTS
# ============================================================================
# STATUS: Tests - `uses:` step actions
# PURPOSE: Verify registration, lookup and the built-in actions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Action Registry Tests

Covers:
1. Registration, duplicate detection, lookup
2. checkout / toolchain / cargo command construction
3. Config validation errors

Run with:
    pytest tests/test_actions.py -v
"""

import pytest

from core.models import CommandSpec
from handlers import (
    ActionConfigError,
    ActionContext,
    ActionNotFoundError,
    DuplicateActionError,
    get_action_or_raise,
    list_actions,
    register_action,
    resolve_action,
    unregister_action,
)


def _ctx(action, source_dir="/src/repo", **config):
    return ActionContext(
        action=action,
        step_name="step",
        job_id="job",
        config=config,
        source_dir=source_dir,
    )


def _argvs(commands):
    return [c.argv for c in commands]


# ============================================================================
# REGISTRY
# ============================================================================

class TestRegistry:

    def test_builtins_registered(self):
        names = {a["name"] for a in list_actions()}
        assert {"checkout", "toolchain", "cargo"} <= names

    def test_register_and_unregister(self):
        @register_action("make", description="Run make", options=["target"])
        def make_action(ctx):
            return [CommandSpec(argv=["make", ctx.require("target")])]

        try:
            assert get_action_or_raise("make") is make_action
            assert _argvs(resolve_action(_ctx("make", target="all"))) == [["make", "all"]]
        finally:
            unregister_action("make")
        with pytest.raises(ActionNotFoundError):
            get_action_or_raise("make")

    def test_duplicate_registration(self):
        with pytest.raises(DuplicateActionError):
            @register_action("cargo")
            def again(ctx):
                return []

    def test_unknown_action(self):
        with pytest.raises(ActionNotFoundError, match="actions/checkout@v1"):
            resolve_action(_ctx("actions/checkout@v1"))

    def test_empty_command_list_rejected(self):
        @register_action("noop")
        def noop(ctx):
            return []

        try:
            with pytest.raises(ActionConfigError, match="no commands"):
                resolve_action(_ctx("noop"))
        finally:
            unregister_action("noop")


# ============================================================================
# BUILT-IN ACTIONS
# ============================================================================

class TestCheckout:

    def test_clones_source_dir(self):
        commands = resolve_action(_ctx("checkout"))
        assert _argvs(commands) == [["git", "clone", "--quiet", "--no-hardlinks", "/src/repo", "."]]

    def test_repository_ref_and_depth(self):
        commands = resolve_action(_ctx(
            "checkout",
            source_dir=None,
            repository="https://example.com/repo.git",
            ref="v1.0",
            depth=1,
        ))
        assert _argvs(commands) == [
            ["git", "clone", "--quiet", "--no-hardlinks", "--depth", "1", "https://example.com/repo.git", "."],
            ["git", "checkout", "--quiet", "v1.0"],
        ]

    def test_needs_a_repository(self):
        with pytest.raises(ActionConfigError, match="no 'repository'"):
            resolve_action(_ctx("checkout", source_dir=None))


class TestToolchain:

    def test_full_install(self):
        commands = resolve_action(_ctx(
            "toolchain",
            toolchain="stable",
            components="rustfmt clippy",
            target="i686-pc-windows-gnu",
            profile="minimal",
            override=True,
        ))
        assert _argvs(commands) == [
            [
                "rustup", "toolchain", "install", "stable",
                "--profile", "minimal",
                "--component", "rustfmt",
                "--component", "clippy",
                "--target", "i686-pc-windows-gnu",
            ],
            ["rustup", "override", "set", "stable"],
        ]

    def test_empty_target_ignored(self):
        commands = resolve_action(_ctx("toolchain", toolchain="1.39.0", target=""))
        assert _argvs(commands) == [["rustup", "toolchain", "install", "1.39.0"]]

    def test_override_from_string(self):
        commands = resolve_action(_ctx("toolchain", toolchain="beta", override="true"))
        assert commands[-1].argv == ["rustup", "override", "set", "beta"]

    def test_missing_toolchain(self):
        with pytest.raises(ActionConfigError, match="missing required option 'toolchain'"):
            resolve_action(_ctx("toolchain", profile="minimal"))

    def test_bad_override(self):
        with pytest.raises(ActionConfigError, match="must be a boolean"):
            resolve_action(_ctx("toolchain", toolchain="stable", override="maybe"))

    def test_unknown_option(self):
        with pytest.raises(ActionConfigError, match="unknown option"):
            resolve_action(_ctx("toolchain", toolchain="stable", channel="x"))


class TestCargo:

    def test_string_args_are_split(self):
        commands = resolve_action(_ctx("cargo", command="fmt", args="--all -- --check"))
        assert _argvs(commands) == [["cargo", "fmt", "--all", "--", "--check"]]

    def test_list_args_and_toolchain(self):
        commands = resolve_action(_ctx("cargo", command="build", args=["--features", "serde"], toolchain="nightly"))
        assert _argvs(commands) == [["cargo", "+nightly", "build", "--features", "serde"]]

    def test_missing_command(self):
        with pytest.raises(ActionConfigError, match="'command'"):
            resolve_action(_ctx("cargo", args="--all"))
