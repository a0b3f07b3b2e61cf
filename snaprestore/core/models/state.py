"""
Restore state — the status token published to the target, and the
local in-progress record.
"""

from __future__ import annotations

import os
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class RestoreState(StrEnum):
    """Status visible to other processes on the target.

    Moves Restoring → Complete or Restoring → Failed, never back.
    """

    RESTORING = "restoring"
    FAILED = "failed"
    COMPLETE = "complete"

    @property
    def terminal(self) -> bool:
        return self is not RestoreState.RESTORING


class RestoreProgress(BaseModel):
    """Local marker written to the data directory while a restore runs."""

    operation_id: str = ""
    pid: int = Field(default_factory=os.getpid)
    target_host: str = ""
    snapshot_id: str = ""
    started_at: str = Field(default_factory=_now_iso)
