"""
Audit ledger — append-only restore history.

Every restore run, successful or not, appends one entry to an NDJSON
(newline-delimited JSON) file in the data directory. Entries are never
modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

AUDIT_FILE = "restore-audit.ndjson"


class AuditEntry(BaseModel):
    """One restore run."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""

    # What was restored where
    host: str = ""
    snapshot_id: str = ""
    strategy: str = ""
    remote_version: str = ""

    # Results
    status: str = ""               # complete, failed, aborted
    final_state: str = ""          # last status published to the target
    steps_run: int = 0
    steps_skipped: int = 0
    steps_failed: int = 0
    duration_ms: int = 0

    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    """

    def __init__(self, path: Path | None = None, data_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif data_dir is not None:
            self._path = data_dir / AUDIT_FILE
        else:
            self._path = Path(AUDIT_FILE)

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry. A ledger that can't be written is logged, not fatal."""
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s (%s)", entry.operation_id, entry.status)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """All entries, oldest first. Corrupt lines are skipped."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate_json(line))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries
