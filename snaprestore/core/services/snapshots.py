"""
Snapshot resolution — turn a snapshot id into a Snapshot model.

Snapshots live under the data directory, one directory per id, with
``current`` a symlink to the most recent one. The layout is read-only
here: nothing in a snapshot is ever modified by a restore.

    <data_dir>/
        current -> 20240101T000000
        20240101T000000/
            strategy            tarball | rsync | cluster
            version             appliance version at backup time
            uuid                (optional) appliance identity
            es-scan-complete    (optional) audit log migration sentinel
            elasticsearch/      (optional) search indices
            incomplete          (present only while a backup is running)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from snaprestore.core.errors import SnapshotIncomplete, SnapshotNotFound
from snaprestore.core.models.snapshot import Snapshot, SnapshotStrategy

logger = logging.getLogger(__name__)

CURRENT = "current"
DEFAULT_STRATEGY = SnapshotStrategy.TARBALL


def _read(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8").strip()
    except OSError:
        return ""


def _resolve_id(data_dir: Path, snapshot_id: str) -> str:
    """Follow the ``current`` symlink to a concrete snapshot id."""
    if snapshot_id != CURRENT:
        return snapshot_id

    link = data_dir / CURRENT
    if not link.exists():
        raise SnapshotNotFound(
            f"No current snapshot in {data_dir}",
            hint="Run a backup first, or pass -s <snapshot-id>.",
        )
    if link.is_symlink():
        return Path(os.readlink(link)).name
    return CURRENT


def resolve_snapshot(data_dir: Path, snapshot_id: str = CURRENT) -> Snapshot:
    """Load a snapshot from the data directory.

    Args:
        data_dir: Root of the local backup data.
        snapshot_id: Snapshot directory name, or ``current``.

    Returns:
        The resolved Snapshot.

    Raises:
        SnapshotNotFound: If the directory does not exist.
        SnapshotIncomplete: If the snapshot was never finished.
    """
    resolved_id = _resolve_id(data_dir, snapshot_id or CURRENT)
    path = (data_dir / resolved_id).resolve()

    if not path.is_dir():
        raise SnapshotNotFound(f"Snapshot '{resolved_id}' doesn't exist in {data_dir}")

    if (path / "incomplete").exists():
        raise SnapshotIncomplete(
            f"Snapshot '{resolved_id}' is incomplete",
            hint="Pick another snapshot with -s <snapshot-id>.",
        )

    version = _read(path / "version")
    if not version:
        raise SnapshotIncomplete(f"Snapshot '{resolved_id}' has no version file")

    raw_strategy = _read(path / "strategy")
    if raw_strategy:
        try:
            strategy = SnapshotStrategy(raw_strategy)
        except ValueError as e:
            raise SnapshotIncomplete(
                f"Snapshot '{resolved_id}' has unknown strategy '{raw_strategy}'"
            ) from e
    else:
        logger.info("Snapshot %s has no strategy file, assuming %s", resolved_id, DEFAULT_STRATEGY)
        strategy = DEFAULT_STRATEGY

    uuid = _read(path / "uuid") or None

    snapshot = Snapshot(
        id=resolved_id,
        path=str(path),
        strategy=strategy,
        instance_version=version,
        has_audit_migration_sentinel=(path / "es-scan-complete").is_file(),
        has_uuid=uuid is not None,
        uuid=uuid,
        has_elasticsearch=(path / "elasticsearch").is_dir(),
    )
    logger.debug("Resolved snapshot %s (%s, v%s)", snapshot.id, snapshot.strategy, version)
    return snapshot
