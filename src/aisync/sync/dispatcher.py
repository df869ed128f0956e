"""Route targets to handlers and run the per-pair write sequence.

``TargetDispatcher`` keeps a lookup table of handlers keyed by target
type plus at most one fallback handler.  Lookup tries the exact type
first and then the fallback.

``TargetDispatcher.sync`` writes one source into one target:

1. validate the target,
2. check the source exists,
3. read it,
4. resolve the destination,
5. transform the content,
6. stop if the caller cancelled the pair,
7. create the destination directory,
8. write.

Each step returns either its value or an ``AisyncError`` instance; the
first error ends the sequence and becomes a failed ``SyncResult``.  No
exception escapes ``sync``.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Iterable, TypeVar, Union

from aisync.config_schema import TargetConfig
from aisync.errors import AisyncError, ConfigError, FileError
from aisync.file_handler import ensure_directory, read_text, write_file
from aisync.sync.handlers import (
    KNOWN_TOOLS,
    TargetHandler,
    ToolHandler,
    UniversalHandler,
)
from aisync.sync.models import SyncResult, TargetValidation

logger = logging.getLogger(__name__)

T = TypeVar("T")
Outcome = Union[T, AisyncError]

# Types used to check that a fallback really accepts arbitrary targets
_FALLBACK_PROBES = ("universal", "custom", "__any__")


class TargetDispatcher:
    """Hold the handler table and delegate per-target operations."""

    def __init__(self) -> None:
        self._handlers: dict[str, TargetHandler] = {}
        self._fallback: TargetHandler | None = None

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self, handler: TargetHandler, types: Iterable[str] | None = None
    ) -> None:
        """Register *handler* for *types*, or as the fallback.

        Args:
            handler: Object implementing ``TargetHandler``.
            types: Target types served.  ``None`` registers the fallback.

        Raises:
            ConfigError: If a fallback is already registered, if a
                would-be fallback rejects arbitrary types, or if *types*
                is empty.
        """
        if types is None:
            if self._fallback is not None:
                raise ConfigError("A fallback handler is already registered")
            if not all(handler.can_handle(t) for t in _FALLBACK_PROBES):
                raise ConfigError(
                    "Fallback handler must accept every target type; "
                    "pass explicit types for a type-specific handler"
                )
            self._fallback = handler
            logger.debug("Registered fallback handler %s", type(handler).__name__)
            return

        type_list = list(types)
        if not type_list:
            raise ConfigError("Handler must declare at least one target type")
        for target_type in type_list:
            if target_type in self._handlers:
                logger.warning(
                    "Replacing handler for target type %s", target_type
                )
            self._handlers[target_type] = handler
        logger.debug(
            "Registered %s for %s",
            type(handler).__name__,
            ", ".join(type_list),
        )

    def unregister(self, target_type: str) -> bool:
        """Remove the handler registered for *target_type*.

        Returns:
            ``True`` if a handler was removed.
        """
        return self._handlers.pop(target_type, None) is not None

    def get_handler(self, target_type: str) -> TargetHandler | None:
        """Return the handler for *target_type*: exact match, else fallback."""
        handler = self._handlers.get(target_type)
        if handler is not None:
            return handler
        return self._fallback

    def can_handle(self, target_type: str) -> bool:
        return self.get_handler(target_type) is not None

    def stats(self) -> dict[str, object]:
        """Counts of registered handlers, by type."""
        return {
            "total_handlers": len(self._handlers)
            + (1 if self._fallback is not None else 0),
            "typed_handlers": len(self._handlers),
            "has_fallback": self._fallback is not None,
            "types": sorted(self._handlers),
        }

    # ------------------------------------------------------------------
    # Delegation
    # ------------------------------------------------------------------

    def _require_handler(self, target: TargetConfig) -> TargetHandler:
        handler = self.get_handler(target.type)
        if handler is None:
            raise ConfigError(
                f"No handler registered for target type: {target.type}"
            )
        return handler

    def get_target_path(self, target: TargetConfig, source: str) -> Path:
        """Resolve the destination of *source* in *target*.

        Raises:
            ConfigError: If no handler or no mapping applies.
        """
        return self._require_handler(target).get_target_path(target, source)

    def transform(self, content: str, target: TargetConfig, source: str) -> str:
        return self._require_handler(target).transform(content, target, source)

    def validate(self, target: TargetConfig) -> bool:
        """Return ``True`` if a handler exists and accepts *target*."""
        handler = self.get_handler(target.type)
        return handler is not None and handler.validate(target)

    def validate_targets(self, targets: list[TargetConfig]) -> TargetValidation:
        """Check every target and collect all problems.

        Disabled targets are checked too: a broken entry should be
        reported even while it is switched off.
        """
        errors: list[str] = []
        for target in targets:
            handler = self.get_handler(target.type)
            if handler is None:
                errors.append(
                    f"No handler registered for target type: "
                    f"{target.type} ({target.name})"
                )
                continue
            if handler.validate(target):
                continue
            problems = handler.validation_errors(target)
            detail = f" ({'; '.join(problems)})" if problems else ""
            errors.append(
                f"Invalid configuration for target: {target.name}{detail}"
            )
        return TargetValidation(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Per-pair sync
    # ------------------------------------------------------------------

    def sync(
        self,
        source: str,
        target: TargetConfig,
        cancel_event: threading.Event | None = None,
    ) -> SyncResult:
        """Write *source* into *target*.

        If *cancel_event* is set by the time the content is ready, nothing
        is written and the pair fails.

        Returns:
            A ``SyncResult`` listing the one destination written, or a
            failed result with one error.
        """
        outcome = self._sync_steps(source, target, cancel_event)
        if isinstance(outcome, AisyncError):
            logger.error("Sync %s -> %s failed: %s", source, target.name, outcome)
            return SyncResult(
                success=False,
                message=f"Failed to sync {source} to {target.name}",
                errors=[str(outcome)],
            )

        logger.info("Synced %s -> %s", source, outcome)
        return SyncResult(
            success=True,
            message=f"Synced {source} to {target.name}",
            files=[str(outcome)],
        )

    def _sync_steps(
        self,
        source: str,
        target: TargetConfig,
        cancel_event: threading.Event | None = None,
    ) -> Outcome[Path]:
        handler = self.get_handler(target.type)
        if handler is None:
            return ConfigError(
                f"No handler registered for target type: {target.type}"
            )
        if not handler.validate(target):
            return ConfigError(f"Invalid configuration for target: {target.name}")

        source_path = Path(source)
        if not source_path.exists():
            return FileError(f"Source file does not exist: {source}")

        content = _read(source_path)
        if isinstance(content, AisyncError):
            return content

        destination = _resolve(handler, target, source)
        if isinstance(destination, AisyncError):
            return destination

        transformed = _transform(handler, content, target, source)
        if isinstance(transformed, AisyncError):
            return transformed

        if cancel_event is not None and cancel_event.is_set():
            return FileError(
                f"Sync cancelled before writing {destination}"
            )

        written = _write(destination, transformed)
        if isinstance(written, AisyncError):
            return written
        return destination


# ------------------------------------------------------------------
# Step functions
# ------------------------------------------------------------------


def _read(path: Path) -> Outcome[str]:
    try:
        return read_text(path)
    except OSError as exc:
        return FileError(f"Failed to read source file {path}: {exc}")


def _resolve(
    handler: TargetHandler, target: TargetConfig, source: str
) -> Outcome[Path]:
    try:
        return handler.get_target_path(target, source)
    except AisyncError as exc:
        return exc


def _transform(
    handler: TargetHandler, content: str, target: TargetConfig, source: str
) -> Outcome[str]:
    try:
        return handler.transform(content, target, source)
    except AisyncError as exc:
        return exc
    except (re.error, IndexError) as exc:
        return ConfigError(
            f"Transform failed for {source} in target {target.name}: {exc}"
        )


def _write(destination: Path, content: str) -> Outcome[int]:
    try:
        ensure_directory(destination.parent)
    except OSError as exc:
        return FileError(
            f"Failed to create directory {destination.parent}: {exc}"
        )
    try:
        return write_file(destination, content)
    except OSError as exc:
        return FileError(f"Failed to write {destination}: {exc}")


# ------------------------------------------------------------------
# Factory
# ------------------------------------------------------------------


def create_dispatcher(strict_paths: bool = False) -> TargetDispatcher:
    """Build a dispatcher with the universal fallback registered.

    Args:
        strict_paths: Also register a ``ToolHandler`` for each entry of
            ``KNOWN_TOOLS``, so those targets may only write inside the
            tool's own directory.
    """
    dispatcher = TargetDispatcher()
    dispatcher.register(UniversalHandler())
    if strict_paths:
        for tool_type, roots in KNOWN_TOOLS.items():
            dispatcher.register(ToolHandler(tool_type, roots), [tool_type])
    return dispatcher
