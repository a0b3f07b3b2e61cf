"""
Topology & compatibility prober — classify the target, then decide
whether this snapshot may be restored onto it.

Everything here is read-only on the target. The three marker probes
are independent of each other and of the version query; they are
issued sequentially but any order gives the same topology.

Checks, in order, all before anything is written:
    1. cluster snapshot onto a standalone target     → IncompatibleStrategy
    2. target in a replication pair                  → ReplicationEnabled
    3. unmigrated 2.9/2.10 snapshot onto ≥ 2.11      → AuditMigrationRequired
    4. configured target, no --force: operator types 'yes' or → UserAborted
    5. configured target not in maintenance mode     → MaintenanceModeRequired
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.engine.version_gate import audit_migration_required, parse_version
from snaprestore.core.errors import (
    AuditMigrationRequired,
    IncompatibleStrategy,
    MaintenanceModeRequired,
    ReplicationEnabled,
    UnreachableTarget,
    UnsupportedVersion,
    UserAborted,
)
from snaprestore.core.models.action import Receipt
from snaprestore.core.models.context import RemotePaths
from snaprestore.core.models.snapshot import Snapshot, SnapshotStrategy
from snaprestore.core.models.topology import RestoreRequest, TargetTopology

logger = logging.getLogger(__name__)

CONFIGURED_MARKER = "etc/github/configured"
CLUSTER_MARKER = "etc/github/cluster"
REPLICATION_MARKER = "etc/github/repl-state"
RELEASE_FILE = "etc/github/enterprise-release"

CONFIRM_PROMPT = "Type 'yes' to continue"

_RELEASE_RE = re.compile(r"""^RELEASE_VERSION=["']?([^"'\s]+)""", re.MULTILINE)

# Returns the operator's answer, or None at end of input
Confirm = Callable[[str], "str | None"]
Progress = Callable[[str], None]


# ── Probes ──────────────────────────────────────────────────────────


def _unreachable(host: str, receipt: Receipt) -> UnreachableTarget:
    return UnreachableTarget(
        f"Cannot reach {host}: {receipt.error or 'remote command failed'}",
        hint="Check that the host is up and that SSH on the admin port accepts your key.",
    )


def check_reachable(session: RemoteSession) -> None:
    """Fail fast with UnreachableTarget if the transport is down."""
    receipt = session.remote(["true"], name="connect")
    if receipt.failed:
        raise _unreachable(session.host, receipt)


def marker_exists(session: RemoteSession, path: str, name: str) -> bool:
    """True if ``path`` is a regular file on the target."""
    receipt = session.remote(["test", "-f", path], name=name)
    if receipt.ok:
        return True
    if receipt.metadata.get("transport_error"):
        raise _unreachable(session.host, receipt)
    return False


def fetch_remote_version(session: RemoteSession, paths: RemotePaths) -> str:
    """Read the appliance release version from the target."""
    receipt = session.remote(
        ["cat", paths.root(RELEASE_FILE)], name="remote-version", capture=True
    )
    if receipt.failed:
        raise _unreachable(session.host, receipt)

    match = _RELEASE_RE.search(receipt.output)
    if not match:
        raise UnreachableTarget(f"Cannot determine the version running on {session.host}")

    version = match.group(1)
    try:
        parse_version(version)
    except UnsupportedVersion as e:
        raise UnreachableTarget(
            f"{session.host} reported an unrecognized version '{version}'"
        ) from e
    return version


def probe_topology(session: RemoteSession, paths: RemotePaths) -> TargetTopology:
    """Classify the target: configured, clustered, replicating, version.

    Raises:
        UnreachableTarget: If the target cannot be queried.
    """
    check_reachable(session)

    topology = TargetTopology(
        is_configured=marker_exists(session, paths.root(CONFIGURED_MARKER), "probe-configured"),
        is_cluster=marker_exists(session, paths.root(CLUSTER_MARKER), "probe-cluster"),
        has_replication=marker_exists(session, paths.root(REPLICATION_MARKER), "probe-replication"),
        remote_version=fetch_remote_version(session, paths),
    )
    logger.info(
        "Target %s: version=%s configured=%s cluster=%s replication=%s",
        session.host,
        topology.remote_version,
        topology.is_configured,
        topology.is_cluster,
        topology.has_replication,
    )
    return topology


def maintenance_mode_enabled(session: RemoteSession) -> bool:
    """Query (never set) maintenance mode on the target."""
    receipt = session.remote(["ghe-maintenance", "-q"], name="maintenance-status")
    if receipt.failed and receipt.metadata.get("transport_error"):
        raise _unreachable(session.host, receipt)
    return receipt.ok


# ── Validation ──────────────────────────────────────────────────────


def overwrite_warning(request: RestoreRequest, snapshot: Snapshot, topology: TargetTopology) -> list[str]:
    """The lines shown before asking the operator to confirm."""
    return [
        "",
        f"WARNING: All data on appliance {request.hostname} ({topology.remote_version})",
        f"         will be overwritten with data from snapshot {snapshot.id}.",
        "Please verify that this is the correct restore host before continuing.",
    ]


def confirm_overwrite(confirm: Confirm | None) -> None:
    """Ask until the operator answers; anything but 'yes' aborts.

    Blank answers ask again. End of input aborts.
    """
    if confirm is None:
        raise UserAborted("Restore aborted: confirmation required but no terminal to ask.",
                          hint="Re-run with --force to skip the confirmation.")
    while True:
        response = confirm(CONFIRM_PROMPT)
        if response is None:
            raise UserAborted("Restore aborted.")
        answer = response.strip()
        if not answer:
            continue
        if answer.lower() == "yes":
            return
        raise UserAborted("Restore aborted.")


def validate_preconditions(
    session: RemoteSession,
    request: RestoreRequest,
    snapshot: Snapshot,
    topology: TargetTopology,
    confirm: Confirm | None = None,
    progress: Progress | None = None,
) -> bool:
    """Run every pre-restore check against the probed topology.

    Returns:
        The effective restore-settings flag: forced on for a target
        that has never been configured.

    Raises:
        PreconditionError: The first check that fails.
    """
    if not topology.is_cluster and snapshot.strategy == SnapshotStrategy.CLUSTER:
        raise IncompatibleStrategy(
            "Snapshot from a cluster cannot be restored to a standalone appliance.",
            hint="Restore onto a clustered target instead.",
        )

    if topology.has_replication:
        raise ReplicationEnabled(
            "Restoring to an appliance with replication enabled is not supported.",
            hint="Please teardown replication before restoring.",
        )

    if not request.force and audit_migration_required(
        snapshot.instance_version,
        snapshot.has_audit_migration_sentinel,
        topology.remote_version,
    ):
        raise AuditMigrationRequired(
            "Snapshot must be from v2.9 or v2.10 after running the audit log "
            "migration, or from v2.11.0 or above.",
            hint="Run the audit log migration on the source appliance and take a new "
                 "snapshot, or pass --force.",
        )

    if topology.is_configured and not request.force:
        if progress is not None:
            for line in overwrite_warning(request, snapshot, topology):
                progress(line)
        confirm_overwrite(confirm)

    restore_settings = request.restore_settings or not topology.is_configured

    if topology.is_configured and not maintenance_mode_enabled(session):
        raise MaintenanceModeRequired(
            f"{request.hostname} must be put in maintenance mode before restoring.",
            hint="Enable maintenance mode on the target, then run the restore again.",
        )

    return restore_settings
