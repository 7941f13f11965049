"""Load a full data snapshot from exported JSON."""

import json
import logging
from pathlib import Path
from typing import Union

from ..exceptions import ImportFormatError, StorageError
from ..models.snapshot import Snapshot

logger = logging.getLogger(__name__)


def parse_snapshot(text: str, default_ftp: int = 235) -> Snapshot:
    """
    Parse pasted or exported JSON into a Snapshot.

    Levels are clamped to [1, 10] and zones missing from the export start
    at 1.0.

    Raises:
        ImportFormatError: If the text is not a JSON object or a field is malformed
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Invalid JSON: {e.msg} (line {e.lineno})") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Expected a JSON object with levels and history")
    if "levels" not in data and "history" not in data:
        raise ImportFormatError("JSON has neither levels nor history")

    snapshot = Snapshot.from_dict(data, default_ftp=default_ftp)
    logger.info("Parsed snapshot with %d rides", snapshot.ride_count)
    return snapshot


def read_snapshot_file(path: Union[str, Path], default_ftp: int = 235) -> Snapshot:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise StorageError(f"Could not read {path}: {e}", path=str(path)) from e
    return parse_snapshot(text, default_ftp=default_ftp)
