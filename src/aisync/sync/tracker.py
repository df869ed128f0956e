"""In-memory change tracker for source files.

Keeps one ``Fingerprint`` (SHA-256 hash, size, mtime) per resolved path
and answers "has this file changed since it was last recorded".

Key design choices:

* **Conservative answers** -- a path that was never tracked, or that
  cannot be read right now, is reported as changed.  The tracker never
  reports "unchanged" for a file it could not inspect.
* **Live comparison** -- every query re-reads the file; there is no
  cached "stale" flag.  The hash covers the full content, which is fine
  for small text config files but not meant for large files.
* **Process lifetime** -- nothing is persisted.  A new process starts
  with every file considered changed.
* **Thread safety** -- the fingerprint map is guarded by a lock so the
  tracker can be shared with worker threads.
"""

from __future__ import annotations

import hashlib
import logging
import stat
import threading
from pathlib import Path

from aisync.errors import FileError
from aisync.sync.models import Fingerprint

logger = logging.getLogger(__name__)


class FileChangeTracker:
    """Track content fingerprints of files across sync passes."""

    def __init__(self) -> None:
        self._fingerprints: dict[str, Fingerprint] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Tracking
    # ------------------------------------------------------------------

    def track(self, path: str | Path) -> Fingerprint:
        """Record the current fingerprint of *path*.

        Args:
            path: File to track; stored under its resolved absolute path.

        Returns:
            The fingerprint that was stored.

        Raises:
            FileError: If the path is missing, not a regular file, or
                unreadable.
        """
        try:
            fingerprint = self.compute_fingerprint(path)
        except FileError as exc:
            raise FileError(
                f"Failed to track file {path}: {exc.message}"
            ) from exc

        with self._lock:
            self._fingerprints[fingerprint.path] = fingerprint
        logger.debug("Tracking %s (%s)", fingerprint.path, fingerprint.hash[:12])
        return fingerprint

    def update_tracking(self, path: str | Path) -> Fingerprint:
        """Re-record the fingerprint of *path* as the new baseline."""
        return self.track(path)

    def track_multiple(self, paths: list[str]) -> list[str]:
        """Track several files, skipping the ones that fail.

        Returns:
            The input paths that were tracked successfully.
        """
        tracked: list[str] = []
        for path in paths:
            try:
                self.track(path)
            except FileError as exc:
                logger.warning("%s", exc)
                continue
            tracked.append(path)
        return tracked

    def untrack(self, path: str | Path) -> None:
        """Forget *path*.  No-op if it is not tracked."""
        with self._lock:
            self._fingerprints.pop(self._key(path), None)

    def clear(self) -> None:
        """Forget every tracked file."""
        with self._lock:
            self._fingerprints.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_changed(self, path: str | Path) -> bool:
        """Return ``True`` unless *path* matches its recorded fingerprint.

        Untracked paths and paths that cannot be read count as changed.
        Any difference in hash, size or modification time counts, so a
        touched file with identical content is still reported.
        """
        with self._lock:
            previous = self._fingerprints.get(self._key(path))
        if previous is None:
            return True

        try:
            current = self.compute_fingerprint(path)
        except FileError as exc:
            logger.debug("Treating %s as changed: %s", path, exc)
            return True

        return current.differs_from(previous)

    def get_changed_files(self, paths: list[str]) -> list[str]:
        """Return the subset of *paths* that changed, in input order.

        Paths that are missing or unreadable are included.
        """
        return [path for path in paths if self.has_changed(path)]

    def is_tracked(self, path: str | Path) -> bool:
        with self._lock:
            return self._key(path) in self._fingerprints

    def get_fingerprint(self, path: str | Path) -> Fingerprint | None:
        """Return the stored fingerprint for *path*, or ``None``."""
        with self._lock:
            return self._fingerprints.get(self._key(path))

    def get_changes(self) -> list[Fingerprint]:
        """Return every stored fingerprint."""
        with self._lock:
            return list(self._fingerprints.values())

    def tracked_file_count(self) -> int:
        with self._lock:
            return len(self._fingerprints)

    # ------------------------------------------------------------------
    # Fingerprinting
    # ------------------------------------------------------------------

    @staticmethod
    def compute_fingerprint(path: str | Path) -> Fingerprint:
        """Read metadata and content of *path* and build a fingerprint.

        Raises:
            FileError: If the path is missing, not a regular file, or
                unreadable.
        """
        resolved = Path(path).resolve()
        try:
            st = resolved.stat()
        except FileNotFoundError:
            raise FileError(f"File not found: {path}") from None
        except OSError as exc:
            raise FileError(f"Cannot stat {path}: {exc}") from exc

        if not stat.S_ISREG(st.st_mode):
            raise FileError(f"Path {path} is not a file")

        try:
            data = resolved.read_bytes()
        except OSError as exc:
            raise FileError(
                f"Failed to calculate hash for {path}: {exc}"
            ) from exc

        return Fingerprint(
            path=str(resolved),
            hash=hashlib.sha256(data).hexdigest(),
            size=st.st_size,
            last_modified=st.st_mtime,
        )

    @staticmethod
    def _key(path: str | Path) -> str:
        return str(Path(path).resolve())
