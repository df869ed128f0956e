"""Exception hierarchy for aisync.

- ``ConfigError``: a mapping, target or sync mode is misconfigured.
- ``FileError``: a source or destination file could not be read/written.
- ``ValidationError``: aggregated target validation failures found before
  any write happens.

Inside the per-pair sync sequence these are *returned* as values rather
than raised (see ``aisync.sync.dispatcher``); public helpers such as
``TargetDispatcher.get_target_path`` and ``FileChangeTracker.track`` raise
them.
"""

from __future__ import annotations


class AisyncError(Exception):
    """Base exception for all aisync errors."""

    def __init__(self, message: str, details: dict | None = None):
        """Initialize the error.

        Args:
            message: Human-readable error message.
            details: Optional dict with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(
                f"{k}={v}" for k, v in self.details.items()
            )
            return f"{self.message} ({details_str})"
        return self.message


class ConfigError(AisyncError):
    """Raised when configuration does not allow an operation."""


class FileError(AisyncError):
    """Raised when a file is missing, unreadable or unwritable."""


class ValidationError(AisyncError):
    """Raised when targets fail the pre-flight validation gate.

    Attributes:
        errors: Individual validation messages.
    """

    def __init__(self, errors: list[str]):
        super().__init__(
            "Invalid target configuration: " + ", ".join(errors)
        )
        self.errors = list(errors)
