# EVALSYNC Path Utilities
# Durable state-file writes and corrupt-file quarantine

import os
import tempfile
from datetime import datetime
from pathlib import Path


def atomic_write(path: Path, content: str, *, encoding: str = "utf-8") -> None:
    """
    Replace a state file so readers see either the old or the new content.

    The content goes to a sibling temp file which is fsynced and renamed
    over the target. On any failure the temp file is removed and the
    target is left untouched.

    Args:
        path: Target file path. Parent directories are created.
        content: Text to write.
        encoding: Text encoding.

    Raises:
        OSError: If the write or rename fails (ENOSPC included).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def quarantine_file(path: Path) -> Path | None:
    """
    Move an unreadable file aside for diagnostics.

    The file is renamed to ``<name>.corrupt-<timestamp>``; an existing
    quarantine with the same timestamp is never overwritten.

    Args:
        path: File to move.

    Returns:
        New location, or None if the file doesn't exist.
    """
    if not path.exists():
        return None

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    target = path.with_name(f"{path.name}.corrupt-{stamp}")
    suffix = 1
    while target.exists():
        target = path.with_name(f"{path.name}.corrupt-{stamp}-{suffix}")
        suffix += 1

    os.replace(path, target)
    return target
