"""
Restore errors — the failure taxonomy shared by every layer.

Precondition failures are raised before anything is written to the
target. Step failures are raised mid-run, after the remote status has
been set to ``restoring``; the restore guard turns them into ``failed``.

Every error carries an optional remediation ``hint`` that the CLI
prints under the message.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from snaprestore.core.models.action import Receipt


class RestoreError(Exception):
    """Base class for all restore errors."""

    def __init__(self, message: str, hint: str = ""):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


# ── Preconditions (nothing written to the target yet) ───────────────


class PreconditionError(RestoreError):
    """A check that must pass before the target is touched failed."""


class MissingRestoreHost(PreconditionError):
    """No target host on the command line or in the configuration."""


class SnapshotNotFound(PreconditionError):
    """The requested snapshot directory does not exist."""


class SnapshotIncomplete(PreconditionError):
    """The snapshot exists but was never finished, or lacks required files."""


class UnsupportedVersion(PreconditionError):
    """A version string could not be understood."""


class IncompatibleStrategy(PreconditionError):
    """A cluster snapshot was pointed at a standalone appliance."""


class ReplicationEnabled(PreconditionError):
    """The target is part of a replication pair."""


class AuditMigrationRequired(PreconditionError):
    """A 2.9/2.10 snapshot has not been through the audit log migration."""


class UserAborted(PreconditionError):
    """The operator declined the overwrite confirmation."""


class MaintenanceModeRequired(PreconditionError):
    """A configured target is not in maintenance mode."""


# ── Transport / run failures ────────────────────────────────────────


class UnreachableTarget(RestoreError):
    """The target could not be queried over the remote transport."""


class StatusPublishError(RestoreError):
    """The ``restoring`` status could not be written to the target."""


class RestoreStepFailed(RestoreError):
    """A fatal restore step failed; the run stops here."""

    def __init__(self, step: str, receipt: Receipt | None = None, message: str = ""):
        self.step = step
        self.receipt = receipt
        detail = message or (receipt.error if receipt is not None and receipt.error else "")
        text = f"Restore step '{step}' failed"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(
            text,
            hint="The target is marked 'failed'; do not assume its data is consistent.",
        )
