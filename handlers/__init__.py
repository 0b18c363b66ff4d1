# ============================================================================
# ACTION REGISTRY
# ============================================================================
# STATUS: Core - Action registration and lookup
# PURPOSE: Register and discover step actions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Action Registry

Provides a decorator-based registration system for `uses:` step actions.

Usage:
    from handlers import register_action, ActionContext
    from core.models import CommandSpec

    @register_action("make")
    def make_action(ctx: ActionContext) -> list:
        return [CommandSpec(argv=["make", ctx.require("target")])]
"""

from handlers.registry import (
    register_action,
    get_action_or_raise,
    list_actions,
    unregister_action,
    resolve_action,
    ActionFunc,
    ActionContext,
    ActionError,
    ActionNotFoundError,
    DuplicateActionError,
    ActionConfigError,
)

# Import action modules to trigger registration
import handlers.builtin  # noqa: F401 - import for side effects (checkout, toolchain, cargo)

__all__ = [
    "register_action",
    "get_action_or_raise",
    "list_actions",
    "unregister_action",
    "resolve_action",
    "ActionFunc",
    "ActionContext",
    "ActionError",
    "ActionNotFoundError",
    "DuplicateActionError",
    "ActionConfigError",
]
