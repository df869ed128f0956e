"""Sync result formatting functions.

Provides human-readable and machine-readable output for sync passes:

- ``format_sync_result`` -- post-sync summary for the terminal.
- ``result_to_json`` -- structured dict for ``aisync sync --json``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncResult

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_result(result: SyncResult, verbose: bool = False) -> str:
    """Format a sync result as human-readable text.

    Errors are always listed; written files only when *verbose* is set,
    since a full pass over many targets produces long file lists.

    Args:
        result: The aggregated result of a sync pass.
        verbose: Also list every destination written.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    status = "OK" if result.success else "FAILED"
    lines.append(f"[{status}] {result.message}")
    lines.append(
        f"{len(result.files)} files written, {len(result.errors)} errors "
        f"in {result.duration_ms:.0f} ms"
    )
    lines.append("")

    if verbose and result.files:
        lines.append("Written:")
        for path in result.files:
            lines.append(f"  {path}")
        lines.append("")

    if result.errors:
        lines.append("Errors:")
        for error in result.errors:
            lines.append(f"  {error}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def result_to_json(result: SyncResult) -> dict:
    """Convert a sync result to a structured dict for JSON serialisation.

    Args:
        result: The sync result.

    Returns:
        Dict with status, counts, and the file and error lists.
    """
    return {
        "success": result.success,
        "message": result.message,
        "timestamp": result.timestamp.isoformat(),
        "duration_ms": round(result.duration_ms, 3),
        "counts": {
            "files": len(result.files),
            "errors": len(result.errors),
        },
        "files": list(result.files),
        "errors": list(result.errors),
    }
