"""
Snapshot model — one point-in-time backup directory, read-only.

Resolved once per run by the snapshot resolver and treated as
authoritative input from then on.
"""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class SnapshotStrategy(StrEnum):
    """How the snapshot was taken."""

    TARBALL = "tarball"
    RSYNC = "rsync"
    CLUSTER = "cluster"


class Snapshot(BaseModel):
    """A snapshot directory as seen by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    strategy: SnapshotStrategy
    instance_version: str                       # version of the backed-up appliance
    has_audit_migration_sentinel: bool = False  # es-scan-complete present
    has_uuid: bool = False
    uuid: str | None = None
    has_elasticsearch: bool = False             # elasticsearch/ directory present

    def file(self, name: str) -> str:
        """Absolute path of a file inside the snapshot."""
        return f"{self.path.rstrip('/')}/{name}"
