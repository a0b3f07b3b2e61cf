"""
Version gate — which optional steps a snapshot/target pair allows.

Pure functions, no I/O. Versions are compared as integer tuples.
"""

from __future__ import annotations

import re

from snaprestore.core.errors import UnsupportedVersion
from snaprestore.core.models.context import GateDecision

Version = tuple[int, int, int]

# Repositories, gists and pages restored by the unified tooling
UNIFIED_REPOSITORIES_SINCE: Version = (2, 13, 0)
# Exported audit and hookshot logs can be imported
AUDIT_LOG_RESTORE_SINCE: Version = (2, 12, 9)
# Targets from here on need migrated audit logs in 2.9/2.10 snapshots
AUDIT_MIGRATION_TARGET: Version = (2, 11, 0)
AUDIT_MIGRATION_SOURCES = {(2, 9), (2, 10)}

_VERSION_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?")


def parse_version(value: str) -> Version:
    """Parse ``"2.13.0"`` (or ``"v2.13"``, ``"2.13.0-rc1"``) into a tuple.

    Raises:
        UnsupportedVersion: If no leading numeric version is found.
    """
    match = _VERSION_RE.match((value or "").strip())
    if not match:
        raise UnsupportedVersion(f"Cannot parse version {value!r}")
    major, minor, patch = (int(part) if part else 0 for part in match.groups())
    return major, minor, patch


def evaluate(remote_version: str, is_cluster: bool) -> GateDecision:
    """Select repository strategy and audit log eligibility.

    Clusters always get the unified strategy and the audit log import,
    whatever version they report.
    """
    if is_cluster:
        return GateDecision(unified_repositories=True, audit_logs=True)

    remote = parse_version(remote_version)
    return GateDecision(
        unified_repositories=remote >= UNIFIED_REPOSITORIES_SINCE,
        audit_logs=remote >= AUDIT_LOG_RESTORE_SINCE,
    )


def audit_migration_required(
    snapshot_version: str,
    has_sentinel: bool,
    remote_version: str,
) -> bool:
    """Whether a 2.9/2.10 snapshot still needs the audit log migration.

    Only matters when restoring onto 2.11 or later; snapshots carrying
    the ``es-scan-complete`` sentinel have already been migrated.
    """
    if has_sentinel:
        return False
    snapshot = parse_version(snapshot_version)
    if snapshot[:2] not in AUDIT_MIGRATION_SOURCES:
        return False
    return parse_version(remote_version) >= AUDIT_MIGRATION_TARGET
