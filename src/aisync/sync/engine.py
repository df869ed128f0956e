"""Sync engine that fans source files out to every enabled target.

The ``SyncEngine`` ties together the tracker and the dispatcher into a
complete sync pass.  It:

1. Validates every target up front; any problem fails the pass before
   the filesystem is touched.
2. Picks the sources to write:

   * **full** -- every declared source.  Mapped destinations of enabled
     targets are removed first (best effort), and all removals finish
     before any write starts.
   * **incremental** -- only sources the tracker reports as changed.
     Each successful write re-baselines that source.

3. Writes each source into each enabled target through the dispatcher.
4. Aggregates the per-pair results into one ``SyncResult``.

Error handling is per-pair: a single failed write does not abort the
pass, but it makes the aggregate result unsuccessful.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from aisync.config_schema import SyncConfig, SyncMode, TargetConfig
from aisync.errors import ConfigError, FileError, ValidationError
from aisync.file_handler import remove_file
from aisync.sync.dispatcher import TargetDispatcher, create_dispatcher
from aisync.sync.handlers import resolve_destination
from aisync.sync.models import EngineState, SyncResult
from aisync.sync.tracker import FileChangeTracker

logger = logging.getLogger(__name__)


class SyncEngine:
    """Run sync passes for one configuration.

    Args:
        config: Validated sync configuration.
        dispatcher: Handler table to write through.  Defaults to
            ``create_dispatcher(config.strict_paths)``.
        tracker: Change tracker used by incremental passes.  Defaults to
            a fresh ``FileChangeTracker``.
    """

    def __init__(
        self,
        config: SyncConfig,
        dispatcher: TargetDispatcher | None = None,
        tracker: FileChangeTracker | None = None,
    ) -> None:
        self.config = config
        self.dispatcher = dispatcher or create_dispatcher(config.strict_paths)
        self.tracker = tracker or FileChangeTracker()
        self._state = EngineState.IDLE

    @property
    def state(self) -> EngineState:
        return self._state

    @state.setter
    def state(self, value: EngineState) -> None:
        if value is not self._state:
            logger.debug(
                "Engine state %s -> %s", self._state.value, value.value
            )
        self._state = value

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        mode: SyncMode | str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncResult:
        """Execute one sync pass.

        Args:
            mode: ``"full"`` or ``"incremental"``; defaults to the
                configured mode.
            cancel_event: When set, the pass stops before the next pair
                and the result is marked unsuccessful.

        Returns:
            The aggregated ``SyncResult`` of the pass.
        """
        started = time.monotonic()
        try:
            result = self._run(mode, cancel_event)
        finally:
            self.state = EngineState.IDLE

        duration_ms = (time.monotonic() - started) * 1000
        logger.info("%s", result.summary())
        return result.model_copy(update={"duration_ms": duration_ms})

    def _run(
        self,
        mode: SyncMode | str | None,
        cancel_event: threading.Event | None,
    ) -> SyncResult:
        self.state = EngineState.VALIDATING
        validation = self.dispatcher.validate_targets(self.config.targets)
        if not validation.valid:
            error = ValidationError(validation.errors)
            logger.error("%s", error)
            return SyncResult(
                success=False, message=error.message, errors=validation.errors
            )

        try:
            sync_mode = SyncMode(mode if mode is not None else self.config.mode)
        except ValueError:
            error = ConfigError(f"Unsupported sync mode: {mode}")
            logger.error("%s", error)
            return SyncResult(
                success=False, message=error.message, errors=[str(error)]
            )

        if sync_mode is SyncMode.FULL:
            self.state = EngineState.FULL_SYNC
            results = self._full_sync(cancel_event)
        else:
            self.state = EngineState.INCREMENTAL_SYNC
            results = self._incremental_sync(cancel_event)
            if results is None:
                self.state = EngineState.REPORTING
                return SyncResult(
                    success=True, message="No changes detected, sync skipped"
                )

        self.state = EngineState.REPORTING
        return _aggregate(results, sync_mode)

    def initialize_tracking(self) -> list[str]:
        """Record a baseline fingerprint for every existing source.

        Returns:
            The sources that were tracked.
        """
        existing: list[str] = []
        for source in self.config.sources:
            if Path(source).exists():
                existing.append(source)
            else:
                logger.warning("Not tracking missing source %s", source)
        tracked = self.tracker.track_multiple(existing)
        logger.debug("Tracking %d source(s)", len(tracked))
        return tracked

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def _enabled_targets(self) -> list[TargetConfig]:
        return [t for t in self.config.targets if t.enabled]

    def _full_sync(
        self, cancel_event: threading.Event | None
    ) -> list[SyncResult]:
        targets = self._enabled_targets()
        logger.info(
            "Full sync: %d source(s) x %d target(s)",
            len(self.config.sources),
            len(targets),
        )
        self._cleanup(targets)
        return self._fan_out(
            self.config.sources,
            targets,
            cancel_event,
            require_exists=True,
            retrack=False,
        )

    def _incremental_sync(
        self, cancel_event: threading.Event | None
    ) -> list[SyncResult] | None:
        changed = self.tracker.get_changed_files(list(self.config.sources))
        if not changed:
            logger.info("No changes detected, sync skipped")
            return None

        logger.info("Incremental sync: %d changed source(s)", len(changed))
        return self._fan_out(
            changed,
            self._enabled_targets(),
            cancel_event,
            require_exists=False,
            retrack=True,
        )

    def _cleanup(self, targets: list[TargetConfig]) -> None:
        """Remove every mapped destination of *targets*; warn on failure."""
        for target in targets:
            for mapping in target.mapping:
                destination = resolve_destination(target, mapping.destination)
                try:
                    if remove_file(destination):
                        logger.debug("Removed %s", destination)
                except OSError as exc:
                    logger.warning("Failed to clean up %s: %s", destination, exc)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------

    def _fan_out(
        self,
        sources: list[str],
        targets: list[TargetConfig],
        cancel_event: threading.Event | None,
        *,
        require_exists: bool,
        retrack: bool,
    ) -> list[SyncResult]:
        results: list[SyncResult] = []
        for source in sources:
            if require_exists and not Path(source).exists():
                logger.warning("Source file not found: %s", source)
                results.append(
                    SyncResult(
                        success=False,
                        message=f"Skipped {source}",
                        errors=[f"Source file not found: {source}"],
                    )
                )
                continue

            for target in targets:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("Sync cancelled before %s", source)
                    results.append(
                        SyncResult(
                            success=False,
                            message="Sync cancelled",
                            errors=[
                                f"Sync cancelled before {source} -> "
                                f"{target.name}"
                            ],
                        )
                    )
                    return results

                result = self._sync_pair(source, target)
                results.append(result)
                if retrack and result.success:
                    results.extend(self._retrack(source))
        return results

    def _sync_pair(self, source: str, target: TargetConfig) -> SyncResult:
        timeout = self.config.pair_timeout
        if timeout is None:
            return self.dispatcher.sync(source, target)

        abandon = threading.Event()
        outcome: list[SyncResult] = []

        def _worker() -> None:
            outcome.append(
                self.dispatcher.sync(source, target, cancel_event=abandon)
            )

        # a hung pair must not hold up interpreter exit
        worker = threading.Thread(
            target=_worker, name="aisync-pair", daemon=True
        )
        worker.start()
        worker.join(timeout)
        if outcome:
            return outcome[0]

        abandon.set()
        error = FileError(
            f"Timed out after {timeout}s syncing {source} to {target.name}"
        )
        logger.error("%s", error)
        return SyncResult(
            success=False,
            message=f"Failed to sync {source} to {target.name}",
            errors=[str(error)],
        )

    def _retrack(self, source: str) -> list[SyncResult]:
        try:
            self.tracker.update_tracking(source)
        except FileError as exc:
            logger.warning("%s", exc)
            return [
                SyncResult(
                    success=False,
                    message=f"Failed to track {source}",
                    errors=[str(exc)],
                )
            ]
        return []


def _aggregate(results: list[SyncResult], mode: SyncMode) -> SyncResult:
    """Fold per-pair results: success is the AND, files/errors in order."""
    files = [f for r in results for f in r.files]
    errors = [e for r in results for e in r.errors]
    success = all(r.success for r in results)
    label = "Full" if mode is SyncMode.FULL else "Incremental"
    outcome = "successfully" if success else "with errors"
    return SyncResult(
        success=success,
        message=f"{label} sync completed {outcome}",
        files=files,
        errors=errors,
    )
