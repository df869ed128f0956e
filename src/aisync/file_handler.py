"""File handler module: text reads with encoding fallback, writes, removal.

Sources and destinations are treated as UTF-8 text, read and written as
whole files.  All functions raise ``OSError`` on I/O failure; callers in
the sync package translate that into ``FileError`` values.
"""

import logging
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

# =============================================================================
# Read
# =============================================================================


def read_text(path: Path) -> str:
    """Read a text file as UTF-8.

    Bytes that are not valid UTF-8 are decoded with charset-normalizer's
    best guess instead of failing the read; a warning names the encoding
    used.

    Args:
        path: Path to the file to read.

    Returns:
        The decoded file content.
    """
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        logger.warning(
            "Could not detect encoding of %s, replacing invalid bytes",
            path,
        )
        return raw.decode("utf-8", errors="replace")

    logger.warning(
        "%s is not valid UTF-8, decoded as %s", path, result.encoding
    )
    return str(result)


# =============================================================================
# Write / remove
# =============================================================================


def ensure_directory(path: Path) -> None:
    """Create *path* and its parents; no-op if it already exists."""
    path.mkdir(parents=True, exist_ok=True)


def write_file(path: Path, content: str) -> int:
    """Write content to a file as UTF-8, replacing what was there.

    The parent directory must already exist (see ``ensure_directory``).

    Args:
        path: Path to the output file.
        content: String content to write.

    Returns:
        Number of bytes written.
    """
    encoded = content.encode("utf-8")
    path.write_bytes(encoded)
    return len(encoded)


def remove_file(path: Path) -> bool:
    """Remove a regular file.

    Args:
        path: File to delete.

    Returns:
        ``True`` if a file was removed, ``False`` if nothing existed.

    Raises:
        IsADirectoryError: If *path* is a directory.
    """
    if not path.exists():
        return False
    if path.is_dir():
        raise IsADirectoryError(f"Not a file: {path}")
    path.unlink()
    return True
