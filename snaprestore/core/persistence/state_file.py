"""
In-progress marker — a local record that a restore is running.

Stored as JSON in ``<data_dir>/in-progress-restore`` for the duration
of a run and removed on every exit path. Writes are atomic (write to
temp file, then rename) so a reader never sees half a record.

The marker is informational only; it does not lock anything.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from snaprestore.core.models.state import RestoreProgress

logger = logging.getLogger(__name__)

PROGRESS_FILE = "in-progress-restore"


def progress_path(data_dir: Path) -> Path:
    """Where the marker lives for a data directory."""
    return data_dir / PROGRESS_FILE


def load_progress(path: Path) -> RestoreProgress | None:
    """Read the marker, or None if there is no (readable) marker."""
    if not path.is_file():
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return RestoreProgress.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Ignoring unreadable restore marker %s: %s", path, e)
        return None


def save_progress(progress: RestoreProgress, path: Path) -> None:
    """Write the marker (atomic write).

    Raises:
        OSError: If the data directory is not writable.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(progress.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".restore_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("Restore marker written to %s", path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


def clear_progress(path: Path) -> None:
    """Remove the marker; a missing marker is fine."""
    try:
        path.unlink(missing_ok=True)
        logger.debug("Restore marker %s removed", path)
    except OSError as e:
        logger.warning("Could not remove restore marker %s: %s", path, e)
