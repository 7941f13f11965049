"""
Atomic file writes for the local data file.

The data file is written completely or not at all, so a crash mid-save
never leaves a truncated snapshot behind.
"""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO


@contextmanager
def atomic_write(target_path: Path, encoding: str = "utf-8") -> Iterator[TextIO]:
    """
    Context manager for atomic text file writes.

    Writes to a temp file in the target directory, then renames it over
    the target. On error the temp file is removed and the target is unchanged.

    Usage:
        with atomic_write(Path("rides.json")) as f:
            json.dump(data, f)
    """
    target_path = Path(target_path)
    target_dir = target_path.parent
    target_dir.mkdir(parents=True, exist_ok=True)

    # Same directory, so the rename stays on one filesystem
    fd, temp_path = tempfile.mkstemp(
        dir=target_dir,
        prefix=f".{target_path.name}.",
        suffix=".tmp",
    )

    try:
        with os.fdopen(fd, "w", encoding=encoding) as f:
            yield f
        os.replace(temp_path, target_path)
    except Exception:
        try:
            os.unlink(temp_path)
        except OSError:
            pass
        raise
