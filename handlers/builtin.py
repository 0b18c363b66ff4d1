# ============================================================================
# BUILT-IN ACTIONS
# ============================================================================
# STATUS: Core - Actions shipped with ciflow
# PURPOSE: checkout / toolchain / cargo steps for Rust CI workflows
# CREATED: 19 OCT 2026
# ============================================================================
"""
Built-in Actions

    checkout   - clone the source repository into the instance workspace
    toolchain  - install a Rust toolchain with rustup and pin it for the workspace
    cargo      - run a cargo subcommand

Each action only builds CommandSpecs; the executor runs them.
"""

import shlex
from typing import Any, List

from handlers.registry import ActionConfigError, ActionContext, register_action
from core.models.instance import CommandSpec


def _as_list(value: Any) -> List[str]:
    """Accept a list or a whitespace separated string."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return [str(v) for v in value]
    return shlex.split(str(value))


def _as_bool(ctx: ActionContext, key: str, default: bool) -> bool:
    value = ctx.config.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in ("true", "false"):
        return value.lower() == "true"
    raise ActionConfigError(ctx.action, f"option '{key}' must be a boolean, got {value!r}")


@register_action(
    "checkout",
    description="Clone the source repository into the instance workspace",
    options=["repository", "ref", "depth"],
)
def checkout(ctx: ActionContext) -> List[CommandSpec]:
    ctx.check_options(["repository", "ref", "depth"])
    repository = ctx.config.get("repository") or ctx.source_dir
    if not repository:
        raise ActionConfigError(ctx.action, "no 'repository' given and no source directory configured")

    argv = ["git", "clone", "--quiet", "--no-hardlinks"]
    if ctx.config.get("depth"):
        argv += ["--depth", str(ctx.config["depth"])]
    argv += [str(repository), "."]
    commands = [CommandSpec(argv=argv)]

    if ctx.config.get("ref"):
        commands.append(CommandSpec(argv=["git", "checkout", "--quiet", str(ctx.config["ref"])]))
    return commands


@register_action(
    "toolchain",
    description="Install a Rust toolchain via rustup and override it for the workspace",
    options=["toolchain", "target", "components", "profile", "override"],
)
def toolchain(ctx: ActionContext) -> List[CommandSpec]:
    ctx.check_options(["toolchain", "target", "components", "profile", "override"])
    name = str(ctx.require("toolchain"))

    install = ["rustup", "toolchain", "install", name]
    if ctx.config.get("profile"):
        install += ["--profile", str(ctx.config["profile"])]
    for component in _as_list(ctx.config.get("components")):
        install += ["--component", component]
    for target in _as_list(ctx.config.get("target")):
        install += ["--target", target]

    commands = [CommandSpec(argv=install)]
    if _as_bool(ctx, "override", False):
        commands.append(CommandSpec(argv=["rustup", "override", "set", name]))
    return commands


@register_action(
    "cargo",
    description="Run a cargo subcommand",
    options=["command", "args", "toolchain"],
)
def cargo(ctx: ActionContext) -> List[CommandSpec]:
    ctx.check_options(["command", "args", "toolchain"])
    argv = ["cargo"]
    if ctx.config.get("toolchain"):
        argv.append(f"+{ctx.config['toolchain']}")
    argv.append(str(ctx.require("command")))
    argv += _as_list(ctx.config.get("args"))
    return [CommandSpec(argv=argv)]


__all__ = ["checkout", "toolchain", "cargo"]
