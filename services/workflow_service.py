# ============================================================================
# WORKFLOW SERVICE
# ============================================================================
# STATUS: Core - Workflow definition loading
# PURPOSE: Load and validate workflow definitions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Workflow Service

Loads workflow definitions from YAML files. A workflow file is read once
at the start of a run; every problem found while loading is reported as
a ConfigurationError naming the file:

- unreadable file or YAML syntax error
- duplicate mapping keys (e.g. the same job id twice)
- schema violations (pydantic validation)
- structural problems (WorkflowDefinition.validate_structure)
"""

from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from core.errors import ConfigurationError
from core.logging import ComponentType, get_logger
from core.models import WorkflowDefinition

logger = get_logger(__name__, ComponentType.LOADER)


class UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate keys within a mapping."""

    def construct_mapping(self, node, deep=False):
        if isinstance(node, yaml.MappingNode):
            seen = set()
            for key_node, _ in node.value:
                # Keys pulled in by a `<<` merge may be overridden
                if key_node.tag == "tag:yaml.org,2002:merge":
                    continue
                key = self.construct_object(key_node, deep=deep)
                try:
                    duplicate = key in seen
                except TypeError:
                    continue
                if duplicate:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping",
                        node.start_mark,
                        f"found duplicate key {key!r}",
                        key_node.start_mark,
                    )
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ())) or "<workflow>"
        parts.append(f"{location}: {item.get('msg')}")
    return "; ".join(parts)


class WorkflowService:
    """Service for loading workflow definitions."""

    def load_file(self, path: Union[str, Path]) -> WorkflowDefinition:
        """
        Load and validate a workflow file.

        Raises:
            ConfigurationError: unreadable, malformed or invalid workflow
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read workflow file {path}: {e}") from e

        workflow = self.load_string(text, source=str(path))
        logger.info(f"Loaded workflow '{workflow.name}' from {path} ({len(workflow.jobs)} jobs)")
        return workflow

    def load_string(self, text: str, source: str = "<string>") -> WorkflowDefinition:
        """
        Parse and validate a workflow document.

        Raises:
            ConfigurationError: malformed or invalid workflow
        """
        try:
            data = yaml.load(text, Loader=UniqueKeyLoader)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {source}: {e}") from e

        return self.from_dict(data, source=source)

    def from_dict(self, data: Any, source: str = "<dict>") -> WorkflowDefinition:
        """
        Validate an already-parsed workflow document.

        Raises:
            ConfigurationError: invalid workflow
        """
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Workflow {source} must be a mapping, got {type(data).__name__}"
            )

        try:
            workflow = WorkflowDefinition.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid workflow in {source}: {_format_validation_error(e)}"
            ) from e

        errors = workflow.validate_structure()
        if errors:
            raise ConfigurationError(f"Invalid workflow in {source}: {'; '.join(errors)}")

        return workflow


__all__ = ["UniqueKeyLoader", "WorkflowService"]
