"""Watch loop that re-runs incremental syncs when source files change.

A watchdog ``PollingObserver`` scans the directories holding the sources
every *interval*; ``SourceEventHandler`` keeps the events that concern a
source.  Once no new event has arrived for *debounce* (editors often save
in several steps), the loop checks which of those sources really differ
from what it last synced and runs one incremental pass.

The loop keeps its own ``FileChangeTracker`` of the source state it last
acted on, separate from the engine's.  A source that cannot be written
(no mapping, no enabled target) stays "changed" for the engine, but it
only triggers another pass once its content changes again.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from aisync.config_schema import SyncMode
from aisync.errors import FileError
from aisync.sync.engine import SyncEngine
from aisync.sync.models import SyncResult
from aisync.sync.tracker import FileChangeTracker

logger = logging.getLogger(__name__)


class SourceEventHandler(FileSystemEventHandler):
    """Collect filesystem events for a fixed set of source files.

    Args:
        sources: Source paths as declared in the config.
    """

    def __init__(self, sources: list[str]):
        super().__init__()
        self._by_path = {str(Path(s).resolve()): s for s in sources}
        self._lock = threading.Lock()
        self._pending: set[str] = set()
        self._last_event = 0.0

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = [event.src_path, getattr(event, "dest_path", "")]
        for raw in paths:
            if not raw:
                continue
            source = self._by_path.get(str(Path(str(raw)).resolve()))
            if source is None:
                continue
            logger.debug("%s event for %s", event.event_type, source)
            with self._lock:
                self._pending.add(source)
                self._last_event = time.monotonic()

    def take_settled(self, debounce: float) -> list[str]:
        """Return and clear the pending sources once events went quiet.

        Returns an empty list while the last event is younger than
        *debounce* seconds.
        """
        with self._lock:
            if not self._pending:
                return []
            if time.monotonic() - self._last_event < debounce:
                return []
            settled = sorted(self._pending)
            self._pending.clear()
        return settled


def _watched_directories(sources: list[str]) -> list[str]:
    directories = {str(Path(s).resolve().parent) for s in sources}
    return sorted(d for d in directories if Path(d).is_dir())


def _record_state(seen: FileChangeTracker, sources: list[str]) -> None:
    """Remember the state of every source as of the pass just run."""
    for source in sources:
        if Path(source).exists():
            try:
                seen.track(source)
            except FileError as exc:
                logger.debug("Cannot fingerprint %s: %s", source, exc)
                seen.untrack(source)
        else:
            seen.untrack(source)


def _really_changed(
    seen: FileChangeTracker, candidates: list[str]
) -> list[str]:
    """Candidates whose state differs from the one last acted on."""
    return [
        source
        for source in candidates
        if (Path(source).exists() or seen.is_tracked(source))
        and seen.has_changed(source)
    ]


def watch(
    engine: SyncEngine,
    interval_ms: int | None = None,
    debounce_ms: int | None = None,
    stop_event: threading.Event | None = None,
    on_result: Callable[[SyncResult], None] | None = None,
    max_cycles: int | None = None,
) -> int:
    """Run an incremental pass now and again whenever a source changes.

    Args:
        engine: Engine whose sources are watched.
        interval_ms: Milliseconds between directory scans.  Defaults to
            ``engine.config.watch.interval``.
        debounce_ms: Milliseconds without new events before syncing.
            Defaults to ``engine.config.watch.debounce``.
        stop_event: Set it to end the loop; the current pass finishes
            first.
        on_result: Called with the result of every pass.
        max_cycles: Stop after this many intervals.  ``None`` runs until
            *stop_event* is set.

    Returns:
        Number of sync passes run.
    """
    watch_config = engine.config.watch
    if interval_ms is None:
        interval_ms = watch_config.interval
    if debounce_ms is None:
        debounce_ms = watch_config.debounce
    interval = interval_ms / 1000
    debounce = debounce_ms / 1000
    stop_event = stop_event or threading.Event()

    sources = list(engine.config.sources)
    seen = FileChangeTracker()
    handler = SourceEventHandler(sources)
    observer = PollingObserver(timeout=interval)
    for directory in _watched_directories(sources):
        observer.schedule(handler, directory, recursive=False)

    def _pass() -> None:
        result = engine.run(SyncMode.INCREMENTAL, cancel_event=stop_event)
        _record_state(seen, sources)
        if on_result is not None:
            on_result(result)

    logger.info(
        "Watching %d source(s) every %d ms", len(sources), interval_ms
    )
    observer.start()
    try:
        _pass()
        passes = 1

        cycles = 0
        while not stop_event.is_set():
            if max_cycles is not None and cycles >= max_cycles:
                break
            if stop_event.wait(interval):
                break
            cycles += 1

            changed = _really_changed(seen, handler.take_settled(debounce))
            if not changed:
                continue

            logger.info("Change detected in %s", ", ".join(changed))
            _pass()
            passes += 1
    finally:
        observer.stop()
        observer.join()

    logger.info("Watch stopped after %d pass(es)", passes)
    return passes
