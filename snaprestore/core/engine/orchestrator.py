"""
Restore orchestrator — the central restore sequence.

Takes a validated request and drives one restore end to end through
the adapter registry:

    resolve snapshot → probe target → validate → publish restoring
        → [guard] steps → downgrade → publish complete → finalize [/guard]

Nothing is written to the target until every precondition has passed.
From the moment ``restoring`` is published, the guard makes sure the
target ends up ``complete`` or ``failed`` whatever happens.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Callable

from snaprestore.adapters.registry import AdapterRegistry
from snaprestore.core.engine import version_gate
from snaprestore.core.engine.catalog import FINALIZE_STEPS, RESTORE_STEPS, RestoreStep
from snaprestore.core.engine.guard import RestoreGuard
from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.errors import RestoreStepFailed
from snaprestore.core.models.action import Receipt
from snaprestore.core.models.context import GateDecision, RemotePaths, RunContext
from snaprestore.core.models.snapshot import Snapshot
from snaprestore.core.models.state import RestoreState
from snaprestore.core.models.topology import RestoreRequest, TargetTopology
from snaprestore.core.services.prober import Confirm, probe_topology, validate_preconditions
from snaprestore.core.services.snapshots import resolve_snapshot
from snaprestore.core.services.status import StatusPublisher

logger = logging.getLogger(__name__)

Progress = Callable[[str], None]

SETUP_URL = "https://{hostname}/setup/settings"


def new_operation_id() -> str:
    return f"restore-{datetime.now(UTC).strftime('%Y%m%dT%H%M%S')}-{uuid.uuid4().hex[:6]}"


@dataclass
class StepResult:
    """What happened to one catalog step."""

    name: str
    description: str = ""
    policy: str = ""
    status: str = "ok"             # ok, skipped, failed
    error: str | None = None
    duration_ms: int = 0

    @classmethod
    def from_receipt(cls, step: RestoreStep, receipt: Receipt) -> StepResult:
        return cls(
            name=step.name,
            description=step.description,
            policy=step.policy.value,
            status=receipt.status,
            error=receipt.error,
            duration_ms=receipt.duration_ms,
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "policy": self.policy,
            "status": self.status,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RestoreReport:
    """Everything a run did, filled in as it goes."""

    operation_id: str = ""
    host: str = ""
    snapshot_id: str = ""
    snapshot: Snapshot | None = None
    topology: TargetTopology | None = None
    gate: GateDecision | None = None
    restore_settings: bool = False
    steps: list[StepResult] = field(default_factory=list)
    published: list[RestoreState] = field(default_factory=list)
    setup_url: str | None = None
    duration_ms: int = 0

    @property
    def final_state(self) -> RestoreState | None:
        return self.published[-1] if self.published else None

    @property
    def succeeded(self) -> int:
        return sum(1 for s in self.steps if s.status == "ok")

    @property
    def failed(self) -> int:
        return sum(1 for s in self.steps if s.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for s in self.steps if s.status == "skipped")

    def step(self, name: str) -> StepResult | None:
        for result in self.steps:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "host": self.host,
            "snapshot_id": self.snapshot_id,
            "strategy": self.snapshot.strategy.value if self.snapshot else None,
            "topology": self.topology.model_dump() if self.topology else None,
            "gate": self.gate.model_dump() if self.gate else None,
            "restore_settings": self.restore_settings,
            "final_state": self.final_state.value if self.final_state else None,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "steps": [s.to_dict() for s in self.steps],
            "setup_url": self.setup_url,
            "duration_ms": self.duration_ms,
        }


class RestoreOrchestrator:
    """Drive one restore against one target.

    Args:
        registry: Adapter registry with ``ssh`` and ``tool`` adapters.
        data_dir: Local snapshot root.
        paths: Well-known directories on the target.
        backup_utils_version: Recorded on the target when non-empty.
        confirm: Asks the operator to confirm overwriting a configured
            target; None means there is nobody to ask.
        progress: Receives operator-facing progress lines.
        handle_sigterm: Let the guard convert SIGTERM to SystemExit.
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        data_dir: Path,
        paths: RemotePaths | None = None,
        backup_utils_version: str = "",
        confirm: Confirm | None = None,
        progress: Progress | None = None,
        handle_sigterm: bool = True,
    ):
        self.registry = registry
        self.data_dir = Path(data_dir)
        self.paths = paths or RemotePaths()
        self.backup_utils_version = backup_utils_version
        self.confirm = confirm
        self._progress = progress
        self.handle_sigterm = handle_sigterm

    def progress(self, message: str) -> None:
        if self._progress is not None:
            self._progress(message)
        else:
            logger.info("%s", message)

    def run(self, request: RestoreRequest, report: RestoreReport | None = None) -> RestoreReport:
        """Restore ``request.snapshot_id`` onto ``request.target_host``.

        ``report`` is filled in place, so a caller holding it still
        sees the partial run when an exception escapes.

        Raises:
            PreconditionError: Before anything was written to the target.
            UnreachableTarget: If the target could not be probed.
            StatusPublishError: If ``restoring`` could not be published.
            RestoreStepFailed: A fatal step failed; target marked ``failed``.
        """
        report = report if report is not None else RestoreReport()
        report.operation_id = report.operation_id or new_operation_id()
        report.host = request.target_host
        report.snapshot_id = request.snapshot_id
        start = time.monotonic()

        snapshot = resolve_snapshot(self.data_dir, request.snapshot_id)
        report.snapshot = snapshot
        report.snapshot_id = snapshot.id

        session = RemoteSession(self.registry, request.target_host, report.operation_id)
        guard: RestoreGuard | None = None
        try:
            topology = probe_topology(session, self.paths)
            report.topology = topology

            restore_settings = validate_preconditions(
                session, request, snapshot, topology,
                confirm=self.confirm, progress=self.progress,
            )
            gate = version_gate.evaluate(topology.remote_version, topology.is_cluster)
            report.gate = gate
            report.restore_settings = restore_settings

            ctx = RunContext(
                operation_id=report.operation_id,
                request=request,
                snapshot=snapshot,
                topology=topology,
                gate=gate,
                restore_settings=restore_settings,
                paths=self.paths,
                data_dir=str(self.data_dir),
                backup_utils_version=self.backup_utils_version,
            )

            publisher = StatusPublisher(session, self.paths, topology.is_cluster)
            self.progress(
                f"Starting restore of {ctx.hostname} from snapshot {snapshot.id}"
            )
            guard = RestoreGuard(publisher, session, handle_sigterm=self.handle_sigterm)
            try:
                with guard:
                    # Armed before the write; an unpublished ``restoring``
                    # leaves the publisher nothing to mark failed
                    publisher.publish(RestoreState.RESTORING)
                    self._run_steps(RESTORE_STEPS, session, ctx, report)
                    guard.downgrade()
                    self._publish_complete(publisher, report)
                    self._run_steps(FINALIZE_STEPS, session, ctx, report)
            finally:
                # After guard exit, which may have published ``failed``
                report.published = publisher.published
        finally:
            if guard is None or not guard.released:
                session.release()
            report.duration_ms = int((time.monotonic() - start) * 1000)

        self.progress(f"Completed restore of {ctx.hostname} from snapshot {snapshot.id}")
        if not topology.is_configured:
            report.setup_url = SETUP_URL.format(hostname=ctx.hostname)
            self.progress(f"Visit {report.setup_url} to review appliance configuration.")
        return report

    def _publish_complete(self, publisher: StatusPublisher, report: RestoreReport) -> None:
        receipt = publisher.publish(RestoreState.COMPLETE)
        report.published = publisher.published
        if receipt is None or receipt.failed:
            raise RestoreStepFailed(
                "status-complete",
                receipt,
                message="" if receipt is not None else "status already terminal",
            )

    def _run_steps(
        self,
        steps: tuple[RestoreStep, ...],
        session: RemoteSession,
        ctx: RunContext,
        report: RestoreReport,
    ) -> None:
        for step in steps:
            if not step.applies(ctx):
                logger.debug("Skipping %s (not applicable)", step.name)
                report.steps.append(StepResult(
                    name=step.name,
                    description=step.description,
                    policy=step.policy.value,
                    status="skipped",
                ))
                continue
            self._run_step(step, session, ctx, report)

    def _run_step(
        self,
        step: RestoreStep,
        session: RemoteSession,
        ctx: RunContext,
        report: RestoreReport,
    ) -> None:
        self.progress(f"{step.description} ...")
        start = time.monotonic()
        receipt = step.action(session, ctx)

        result = StepResult.from_receipt(step, receipt)
        result.duration_ms = int((time.monotonic() - start) * 1000)
        report.steps.append(result)

        if not receipt.failed:
            return

        # Losing the transport is never best-effort
        if step.fatal or receipt.metadata.get("transport_error"):
            raise RestoreStepFailed(step.name, receipt)
        logger.warning("%s failed, continuing: %s", step.description, receipt.error)
