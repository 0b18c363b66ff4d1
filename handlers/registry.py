# ============================================================================
# ACTION REGISTRY
# ============================================================================
# STATUS: Core - Action registration and lookup
# PURPOSE: Register and discover `uses:` step actions by name
# CREATED: 19 OCT 2026
# ============================================================================
"""
Action Registry

Central registry for step actions. A step written as

    - uses: cargo
      with:
        command: build

is resolved at planning time by looking up the "cargo" action and
calling it with the step's `with` config. The action returns the list of
external commands the step runs; it never runs anything itself.

Design:
- Actions are registered at import time via decorator
- Registry is a simple dict (action_name -> action_func)
- Fail-fast on duplicate registration
- Actions validate their own config and raise ActionConfigError
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from core.logging import get_logger
from core.models.instance import CommandSpec

logger = get_logger(__name__)


# ============================================================================
# ACTION TYPES
# ============================================================================

@dataclass
class ActionContext:
    """
    Context passed to action functions.

    `config` is the step's `with` mapping with templates already rendered.
    """
    action: str
    step_name: str
    job_id: str
    config: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    source_dir: Optional[str] = None

    def require(self, key: str) -> Any:
        """Get a mandatory config value."""
        value = self.config.get(key)
        if value is None or value == "":
            raise ActionConfigError(self.action, f"missing required option '{key}'")
        return value

    def check_options(self, allowed: List[str]) -> None:
        """Reject config keys the action does not understand."""
        unknown = sorted(set(self.config) - set(allowed))
        if unknown:
            raise ActionConfigError(
                self.action,
                f"unknown option(s) {unknown}; allowed: {sorted(allowed)}",
            )


# Action function type
ActionFunc = Callable[[ActionContext], List[CommandSpec]]


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ActionError(Exception):
    """Base exception for action errors."""
    pass


class ActionNotFoundError(ActionError):
    """Raised when an action is not found in the registry."""
    def __init__(self, action_name: str):
        self.action_name = action_name
        super().__init__(f"Action not found: {action_name}")


class DuplicateActionError(ActionError):
    """Raised when an action name is already registered."""
    def __init__(self, action_name: str):
        self.action_name = action_name
        super().__init__(f"Action already registered: {action_name}")


class ActionConfigError(ActionError):
    """Raised when a step's `with` config is malformed for its action."""
    def __init__(self, action_name: str, message: str):
        self.action_name = action_name
        super().__init__(f"Action '{action_name}': {message}")


# ============================================================================
# REGISTRY
# ============================================================================

_actions: Dict[str, ActionFunc] = {}
_action_metadata: Dict[str, Dict[str, Any]] = {}


def register_action(
    name: str,
    *,
    description: str = "",
    options: Optional[List[str]] = None,
) -> Callable[[ActionFunc], ActionFunc]:
    """
    Decorator to register an action function.

    Args:
        name: Action name used in `uses:` (must be unique)
        description: Human-readable description
        options: Documented `with` options

    Example:
        @register_action("make", options=["target"])
        def make_action(ctx: ActionContext) -> List[CommandSpec]:
            return [CommandSpec(argv=["make", ctx.require("target")])]
    """
    def decorator(func: ActionFunc) -> ActionFunc:
        if name in _actions:
            raise DuplicateActionError(name)

        _actions[name] = func
        _action_metadata[name] = {
            "name": name,
            "description": description,
            "options": options or [],
            "function": func.__name__,
            "module": func.__module__,
            "registered_at": datetime.now(timezone.utc).isoformat(),
        }

        logger.debug(f"Registered action: {name} ({func.__module__}.{func.__name__})")
        return func

    return decorator


def get_action_or_raise(name: str) -> ActionFunc:
    """
    Get an action by name, raising if not found.

    Raises:
        ActionNotFoundError if action not found
    """
    action = _actions.get(name)
    if action is None:
        raise ActionNotFoundError(name)
    return action


def list_actions() -> List[Dict[str, Any]]:
    """List all registered actions with metadata."""
    return list(_action_metadata.values())


def unregister_action(name: str) -> None:
    """Remove an action (primarily for testing)."""
    _actions.pop(name, None)
    _action_metadata.pop(name, None)


def resolve_action(ctx: ActionContext) -> List[CommandSpec]:
    """
    Resolve a `uses:` step into its commands.

    Raises:
        ActionNotFoundError: unknown action
        ActionConfigError: malformed config, or the action produced no commands
    """
    action = get_action_or_raise(ctx.action)
    commands = action(ctx)
    if not commands:
        raise ActionConfigError(ctx.action, "action produced no commands")
    return commands


# ============================================================================
# EXPORTS
# ============================================================================

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
