"""Pydantic models for the sync engine.

Defines the runtime data contracts used across the sync modules:

- ``Fingerprint``: content state of one tracked file.
- ``SyncResult``: outcome of one source/target write or one whole pass.
- ``TargetValidation``: outcome of the pre-flight target gate.
- ``EngineState``: where a ``SyncEngine`` is in its run cycle.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from aisync.config_schema import SyncMode


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EngineState(str, Enum):
    """Phases of a ``SyncEngine.run`` call."""

    IDLE = "idle"
    VALIDATING = "validating"
    FULL_SYNC = "full_sync"
    INCREMENTAL_SYNC = "incremental_sync"
    REPORTING = "reporting"


class Fingerprint(BaseModel):
    """Content state of a file at the time it was tracked.

    Attributes:
        path: Resolved absolute path of the file.
        hash: SHA-256 hex digest of the full file content.
        size: File size in bytes.
        last_modified: Modification time (``st_mtime``).
    """

    path: str
    hash: str
    size: int
    last_modified: float

    model_config = {"frozen": True}

    def differs_from(self, other: Fingerprint) -> bool:
        """Return ``True`` if hash, size or mtime differ from *other*."""
        return (
            self.hash != other.hash
            or self.last_modified != other.last_modified
            or self.size != other.size
        )


class SyncResult(BaseModel):
    """Result of syncing one pair, or the aggregate of a whole pass.

    Attributes:
        success: Whether every write covered by this result succeeded.
        message: Human-readable summary.
        files: Destination paths written, in write order.
        errors: Failure messages, in the order they occurred.
        timestamp: When the result was produced (UTC).
        duration_ms: Wall-clock time spent, in milliseconds.
    """

    success: bool
    message: str
    files: list[str] = []
    errors: list[str] = []
    timestamp: datetime = Field(default_factory=_utcnow)
    duration_ms: float = 0.0

    model_config = {"frozen": True}

    def summary(self) -> str:
        """One-line summary with file and error counts."""
        status = "OK" if self.success else "FAILED"
        return (
            f"[{status}] {self.message} "
            f"({len(self.files)} files, {len(self.errors)} errors, "
            f"{self.duration_ms:.0f} ms)"
        )


class TargetValidation(BaseModel):
    """Outcome of ``TargetDispatcher.validate_targets``."""

    valid: bool
    errors: list[str] = []

    model_config = {"frozen": True}


__all__ = [
    "EngineState",
    "Fingerprint",
    "SyncMode",
    "SyncResult",
    "TargetValidation",
]
