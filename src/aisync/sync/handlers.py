"""Target handlers: how one kind of target resolves and checks its writes.

A handler is any object satisfying the ``TargetHandler`` protocol.  There
is no base class: the two concrete variants below share behaviour through
the module-level helpers instead.

- ``UniversalHandler`` -- the fallback.  Accepts every target type and is
  driven purely by the target's mapping table.
- ``ToolHandler`` -- bound to one target type.  Resolves paths and
  transforms exactly like the fallback, but additionally requires every
  mapping destination to fall under one of the tool's own directories
  (for example ``.cursor/`` for Cursor).

``KNOWN_TOOLS`` lists the destination trees of the tools aisync ships
defaults for; ``aisync.sync.dispatcher.create_dispatcher`` registers a
``ToolHandler`` for each of them when strict path checking is enabled.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from aisync.config_schema import TargetConfig
from aisync.errors import ConfigError
from aisync.sync.transforms import apply_transform_rules, find_mapping

KNOWN_TOOLS: dict[str, tuple[str, ...]] = {
    "kiro": (".kiro",),
    "cursor": (".cursor",),
    "vscode": (".vscode",),
    "claudecode": (".claudecode",),
    "gemini-cli": (".gemini",),
}


class TargetHandler(Protocol):
    """Capability contract every target handler implements."""

    def can_handle(self, target_type: str) -> bool: ...

    def get_target_path(self, target: TargetConfig, source: str) -> Path: ...

    def transform(
        self, content: str, target: TargetConfig, source: str
    ) -> str: ...

    def validate(self, target: TargetConfig) -> bool: ...

    def validation_errors(self, target: TargetConfig) -> list[str]: ...


# ------------------------------------------------------------------
# Shared helpers
# ------------------------------------------------------------------


def resolve_destination(target: TargetConfig, destination: str) -> Path:
    """Join a relative *destination* to the target's base path.

    Absolute destinations, and any destination of a target without a
    ``path``, are returned verbatim.
    """
    dest = Path(destination)
    if dest.is_absolute() or not target.path:
        return dest
    return Path(target.path) / dest


def mapped_target_path(target: TargetConfig, source: str) -> Path:
    """Resolve the destination of *source* from *target*'s mapping table.

    Raises:
        ConfigError: If no mapping matches; there is no default
            destination.
    """
    mapping = find_mapping(target, source)
    if mapping is None:
        raise ConfigError(
            f"No mapping found for source file: {Path(source).name} "
            f"in target: {target.name}. Add a mapping for this file to the "
            f"target's configuration."
        )
    return resolve_destination(target, mapping.destination)


def mapped_transform(content: str, target: TargetConfig, source: str) -> str:
    """Apply the transform rules of the mapping that matches *source*."""
    mapping = find_mapping(target, source)
    if mapping is None or not mapping.transform:
        return content
    return apply_transform_rules(content, mapping.transform)


def structural_errors(target: TargetConfig) -> list[str]:
    """Checks every handler applies: identity fields and usable mappings."""
    errors: list[str] = []
    if not target.name or not target.name.strip():
        errors.append("name is required")
    if not target.type or not target.type.strip():
        errors.append("type is required")
    if target.path is not None and not target.path.strip():
        errors.append("path cannot be empty when given")
    if not target.mapping:
        errors.append("at least one mapping is required")
    for index, mapping in enumerate(target.mapping):
        if not mapping.source or not mapping.destination:
            errors.append(
                f"mapping[{index}] requires both source and destination"
            )
    return errors


# ------------------------------------------------------------------
# Concrete handlers
# ------------------------------------------------------------------


class UniversalHandler:
    """Fallback handler for any target type, driven by the mapping table."""

    def can_handle(self, target_type: str) -> bool:
        return True

    def get_target_path(self, target: TargetConfig, source: str) -> Path:
        return mapped_target_path(target, source)

    def transform(
        self, content: str, target: TargetConfig, source: str
    ) -> str:
        return mapped_transform(content, target, source)

    def validation_errors(self, target: TargetConfig) -> list[str]:
        return structural_errors(target)

    def validate(self, target: TargetConfig) -> bool:
        return not self.validation_errors(target)


class ToolHandler:
    """Handler for one tool type whose files live under known directories.

    Args:
        tool_type: The target ``type`` this handler serves.
        destination_roots: Directories (relative to the target path) that
            mapping destinations must fall under.
    """

    def __init__(
        self, tool_type: str, destination_roots: tuple[str, ...]
    ) -> None:
        self.tool_type = tool_type
        self.destination_roots = destination_roots

    def can_handle(self, target_type: str) -> bool:
        return target_type == self.tool_type

    def get_target_path(self, target: TargetConfig, source: str) -> Path:
        return mapped_target_path(target, source)

    def transform(
        self, content: str, target: TargetConfig, source: str
    ) -> str:
        return mapped_transform(content, target, source)

    def validation_errors(self, target: TargetConfig) -> list[str]:
        errors = structural_errors(target)
        if target.type != self.tool_type:
            errors.append(
                f"type '{target.type}' is not handled by the "
                f"{self.tool_type} handler"
            )
        base = Path(target.path or ".")
        roots = [(base / root).resolve() for root in self.destination_roots]
        for mapping in target.mapping:
            if not mapping.destination:
                continue
            dest = resolve_destination(target, mapping.destination).resolve()
            if not any(dest.is_relative_to(root) for root in roots):
                allowed = ", ".join(f"{r}/" for r in self.destination_roots)
                errors.append(
                    f"destination {mapping.destination} is outside {allowed}"
                )
        return errors

    def validate(self, target: TargetConfig) -> bool:
        return not self.validation_errors(target)
