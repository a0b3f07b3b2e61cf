"""
Restore use case — configuration in, audited restore out.

Wires the configured adapters into an orchestrator, keeps the local
in-progress marker for the length of the run, and appends the outcome
to the audit ledger whatever it was. Restore errors are returned in
the result, never raised; the CLI turns them into an exit code.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from snaprestore.adapters.registry import AdapterRegistry
from snaprestore.adapters.ssh.command import SshAdapter
from snaprestore.adapters.tools.command import ToolAdapter
from snaprestore.core.config.loader import RestoreConfig
from snaprestore.core.engine.orchestrator import (
    Progress,
    RestoreOrchestrator,
    RestoreReport,
    new_operation_id,
)
from snaprestore.core.errors import MissingRestoreHost, RestoreError
from snaprestore.core.models.context import RemotePaths
from snaprestore.core.models.state import RestoreProgress
from snaprestore.core.models.topology import RestoreRequest
from snaprestore.core.persistence.audit import AuditEntry, AuditWriter
from snaprestore.core.persistence.state_file import (
    clear_progress,
    load_progress,
    progress_path,
    save_progress,
)
from snaprestore.core.services.prober import Confirm

logger = logging.getLogger(__name__)


@dataclass
class RestoreResult:
    """Outcome of one restore run."""

    request: RestoreRequest | None = None
    report: RestoreReport | None = None
    status: str = ""               # complete, failed, aborted
    error: str | None = None
    error_type: str | None = None
    hint: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {"status": self.status}
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
            if self.hint:
                result["hint"] = self.hint
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def build_registry(config: RestoreConfig) -> AdapterRegistry:
    """Registry with the real SSH transport and local tool runner."""
    registry = AdapterRegistry()
    registry.register(SshAdapter(ssh_command=config.ssh_command, options=config.ssh_options))
    registry.register(ToolAdapter(tools_dir=config.tools_dir, timeout=config.tool_timeout))
    return registry


def build_request(
    config: RestoreConfig,
    host: str | None = None,
    snapshot_id: str | None = None,
    restore_settings: bool = False,
    force: bool = False,
    verbose: bool = False,
) -> RestoreRequest:
    """Combine command-line arguments with the configured defaults.

    Raises:
        MissingRestoreHost: If neither names a target.
    """
    target = host or config.restore_host
    if not target:
        raise MissingRestoreHost(
            "No restore host given.",
            hint="Pass the host as an argument or set restore_host in snaprestore.yml.",
        )
    return RestoreRequest(
        target_host=target,
        snapshot_id=snapshot_id or "current",
        restore_settings=restore_settings,
        force=force,
        verbose=verbose,
    )


def _audit_entry(result: RestoreResult, report: RestoreReport) -> AuditEntry:
    topology = report.topology
    return AuditEntry(
        operation_id=report.operation_id,
        host=report.host,
        snapshot_id=report.snapshot_id,
        strategy=report.snapshot.strategy.value if report.snapshot else "",
        remote_version=topology.remote_version if topology else "",
        status=result.status,
        final_state=report.final_state.value if report.final_state else "",
        steps_run=report.succeeded + report.failed,
        steps_skipped=report.skipped,
        steps_failed=report.failed,
        duration_ms=report.duration_ms,
        errors=[result.error] if result.error else [],
        context={"restore_settings": report.restore_settings, "error_type": result.error_type},
    )


def run_restore(
    request: RestoreRequest,
    config: RestoreConfig,
    registry: AdapterRegistry | None = None,
    confirm: Confirm | None = None,
    progress: Progress | None = None,
    handle_sigterm: bool = True,
) -> RestoreResult:
    """Restore a snapshot onto the requested host.

    Args:
        request: Target, snapshot and flags.
        config: Loaded configuration.
        registry: Adapter registry (default: SSH + local tools).
        confirm: Operator confirmation callback.
        progress: Receives operator-facing progress lines.
        handle_sigterm: Convert SIGTERM to SystemExit during the run.

    Returns:
        RestoreResult; ``error`` is set when the restore did not complete.
    """
    data_dir = config.data_path()
    registry = registry or build_registry(config)

    orchestrator = RestoreOrchestrator(
        registry,
        data_dir=data_dir,
        paths=RemotePaths(
            root_dir=config.remote_root_dir,
            data_user_dir=config.remote_data_user_dir,
        ),
        backup_utils_version=config.backup_utils_version,
        confirm=confirm,
        progress=progress,
        handle_sigterm=handle_sigterm,
    )

    report = RestoreReport(operation_id=new_operation_id())
    result = RestoreResult(request=request, report=report, status="failed")
    marker = progress_path(data_dir)
    leftover = _check_leftover_marker(marker)
    marker_written = data_dir.is_dir() and _write_marker(marker, report.operation_id, request)

    try:
        orchestrator.run(request, report)
        result.status = "complete"
    except RestoreError as e:
        result.error = e.message
        result.error_type = e.__class__.__name__
        result.hint = e.hint
        # Aborted means nothing was published and the target is untouched
        result.status = "failed" if report.published else "aborted"
        logger.debug("Restore %s stopped: %s", report.operation_id, e)
    except (KeyboardInterrupt, SystemExit) as e:
        result.error = "Restore interrupted"
        result.error_type = e.__class__.__name__
        raise
    finally:
        if marker_written:
            clear_progress(marker)
        if data_dir.is_dir():
            entry = _audit_entry(result, report)
            if leftover is not None:
                entry.context["previous_operation_id"] = leftover.operation_id
            AuditWriter(data_dir=data_dir).write(entry)

    return result


def _check_leftover_marker(path: Path) -> RestoreProgress | None:
    """Warn about a marker an earlier run did not remove."""
    leftover = load_progress(path)
    if leftover is not None:
        logger.warning(
            "Found the marker of restore %s (pid %d, started %s, host %s); "
            "it is still running or did not finish cleanly",
            leftover.operation_id, leftover.pid, leftover.started_at, leftover.target_host,
        )
    return leftover


def _write_marker(path: Path, operation_id: str, request: RestoreRequest) -> bool:
    try:
        save_progress(
            RestoreProgress(
                operation_id=operation_id,
                target_host=request.target_host,
                snapshot_id=request.snapshot_id,
            ),
            path,
        )
    except OSError as e:
        logger.warning("Could not write restore marker %s: %s", path, e)
        return False
    return True
