# ============================================================================
# TEMPLATE RESOLUTION ENGINE
# ============================================================================
# STATUS: Core - Template resolution with Jinja2
# PURPOSE: Resolve {{ }} expressions in job names, env and step config
# CREATED: 19 OCT 2026
# ============================================================================
"""
Template Resolution Engine

Resolves template expressions in workflow job and step fields.

Supported patterns:
- {{ matrix.axis }} - Value of a matrix axis or include field for this cell
- {{ env.VAR_NAME }} - Workflow/job env, falling back to the host environment
- {{ job.id }} - Job id
- {{ workflow.name }} - Workflow name
- {{ trigger.event }}, {{ trigger.ref }} - Opaque trigger of this run

A matrix field the cell does not carry renders as an empty string, so
`{{ matrix.os or 'ubuntu-latest' }}` falls back as expected.
Unknown top-level names fail resolution.

Examples:
    name: "Minimum version {{ matrix.rust }}"
    runs-on: "{{ matrix.os or 'ubuntu-latest' }}"
    with:
      toolchain: "{{ matrix.rust or 'stable' }}"
      args: "{{ matrix.features }}"
"""

import ast
import os
import re
from typing import Any, Dict, Optional

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from core.logging import get_logger

logger = get_logger(__name__)


def _finalize(value: Any) -> Any:
    """Render None as an empty string."""
    return "" if value is None else value


class TemplateResolver:
    """
    Jinja2-based template resolver for workflow fields.

    Thread-safe, can be reused across multiple resolutions.
    """

    def __init__(self):
        """Initialize the template resolver with Jinja2 environment."""
        self._env = Environment(
            loader=BaseLoader(),
            autoescape=False,
            undefined=StrictUndefined,
            finalize=_finalize,
            keep_trailing_newline=True,
        )
        self._template_pattern = re.compile(r'\{\{.*?\}\}|\{%.*?%\}', re.DOTALL)

    def resolve(self, value: Any, context: "TemplateContext", parse_structures: bool = False) -> Any:
        """
        Resolve all template expressions in a value (str, dict or list).

        Args:
            value: Value containing template expressions
            context: Template context with matrix, env, etc.
            parse_structures: Turn a lone expression that renders as a
                list or dict literal back into that structure

        Returns:
            New value with all templates resolved

        Raises:
            TemplateResolutionError: If a template cannot be resolved
        """
        return self._resolve_value(value, context.to_dict(), parse_structures)

    def _resolve_value(self, value: Any, context: Dict[str, Any], parse: bool) -> Any:
        """Recursively resolve template expressions in a value."""
        if isinstance(value, str):
            return self._resolve_string(value, context, parse)
        elif isinstance(value, dict):
            return {k: self._resolve_value(v, context, parse) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._resolve_value(item, context, parse) for item in value]
        else:
            return value

    def _resolve_string(self, value: str, context: Dict[str, Any], parse: bool) -> Any:
        """Resolve template expressions in a string value."""
        if not self._template_pattern.search(value):
            return value

        try:
            result = self._env.from_string(value).render(context)
        except (TemplateSyntaxError, UndefinedError) as e:
            raise TemplateResolutionError(f"Failed to resolve '{value}': {e}") from e

        if not parse:
            return result

        # A lone expression may stand for a list (e.g. args: "{{ matrix.flags }}")
        stripped = value.strip()
        if stripped.startswith('{{') and stripped.endswith('}}'):
            inner = stripped[2:-2]
            if '{{' not in inner and '}}' not in inner:
                return self._maybe_parse_result(result)
        return result

    def _maybe_parse_result(self, result: str) -> Any:
        """Try to parse a rendered list or dict literal back into Python."""
        text = result.strip()
        if (text.startswith('[') and text.endswith(']')) or \
           (text.startswith('{') and text.endswith('}')):
            try:
                return ast.literal_eval(text)
            except (ValueError, SyntaxError):
                pass
        return result


class TemplateContext:
    """
    Context for template resolution of one job instance.

    Provides access to:
    - matrix: cell values (axes and include fields)
    - env: declared env, then host environment
    - job, workflow, trigger: identity fields
    """

    def __init__(
        self,
        matrix: Optional[Dict[str, Any]] = None,
        env: Optional[Dict[str, Any]] = None,
        job_id: Optional[str] = None,
        workflow_name: Optional[str] = None,
        trigger_event: Optional[str] = None,
        trigger_ref: Optional[str] = None,
    ):
        self.matrix = matrix or {}
        self.env = env or {}
        self.job_id = job_id
        self.workflow_name = workflow_name
        self.trigger_event = trigger_event
        self.trigger_ref = trigger_ref

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for Jinja2 rendering."""
        return {
            "matrix": _MatrixAccessor(self.matrix),
            "env": _EnvAccessor(self.env),
            "job": {"id": self.job_id},
            "workflow": {"name": self.workflow_name},
            "trigger": {"event": self.trigger_event, "ref": self.trigger_ref},
        }


class _MatrixAccessor(dict):
    """Matrix values; fields the cell does not carry resolve to None."""

    def __missing__(self, key: str) -> None:
        return None


class _EnvAccessor:
    """Accessor for declared env with host environment fallback."""

    def __init__(self, declared: Dict[str, Any]):
        self._declared = declared

    def __getitem__(self, name: str) -> Optional[str]:
        if name in self._declared:
            return self._declared[name]
        return os.environ.get(name)

    def __getattr__(self, name: str) -> Optional[str]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]


class TemplateResolutionError(Exception):
    """Raised when template resolution fails."""
    pass


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

_resolver: Optional[TemplateResolver] = None


def get_resolver() -> TemplateResolver:
    """Get shared template resolver instance."""
    global _resolver
    if _resolver is None:
        _resolver = TemplateResolver()
    return _resolver


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TemplateResolver",
    "TemplateContext",
    "TemplateResolutionError",
    "get_resolver",
]
