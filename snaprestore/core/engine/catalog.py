"""
Restore step catalog — every step a restore may run, in order.

Each step is a predicate over the RunContext plus an action that talks
to the target through the session. The orchestrator walks the list,
skips steps whose predicate is false, and applies the step's policy
to the receipt:

    FATAL        first failure stops the run (guard publishes ``failed``)
    BEST_EFFORT  failure is logged and the run continues

Datastore restores are delegated to local ``ghe-restore-*`` tools or
to ``ghe-import-*`` commands on the target fed from the snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.models.action import Receipt
from snaprestore.core.models.context import RunContext
from snaprestore.core.services.cluster import cleanup_node, list_other_nodes
from snaprestore.core.services.status import write_line_argv

logger = logging.getLogger(__name__)

REMOTE_LOG_TAG = "backup-utils"
BACKUP_UTILS_VERSION_FILE = "backup-utils-version"
AUDIT_SENTINEL = "es-scan-complete"
SSH_HOST_KEY_OWNER = "babeld:babeld"


class StepPolicy(StrEnum):
    FATAL = "fatal"
    BEST_EFFORT = "best_effort"


StepAction = Callable[[RemoteSession, RunContext], Receipt]
StepPredicate = Callable[[RunContext], bool]


def always(ctx: RunContext) -> bool:
    return True


@dataclass(frozen=True)
class RestoreStep:
    """One entry in the restore sequence."""

    name: str
    description: str
    action: StepAction
    predicate: StepPredicate = always
    policy: StepPolicy = StepPolicy.FATAL

    def applies(self, ctx: RunContext) -> bool:
        return self.predicate(ctx)

    @property
    def fatal(self) -> bool:
        return self.policy is StepPolicy.FATAL


# ── Helpers ─────────────────────────────────────────────────────────


def _skip(ctx: RunContext, step: str, reason: str) -> Receipt:
    return Receipt.skip(adapter="engine", action_id=f"{ctx.operation_id}:{step}",
                        host=ctx.host, reason=reason)


def _run_tools(session: RemoteSession, ctx: RunContext, *tools: str) -> Receipt:
    """Run local restore tools in order, stopping at the first failure."""
    receipt = None
    for tool in tools:
        receipt = session.tool(tool, env=ctx.tool_env())
        if receipt.failed:
            return receipt
    return receipt


def _service(session: RemoteSession, ctx: RunContext, service: str, verb: str) -> Receipt:
    return session.remote(
        ["sudo", "service", service, verb],
        name=f"{verb}-{service}",
        broadcast=ctx.is_cluster,
    )


def _remote_log(session: RemoteSession, message: str) -> Receipt:
    return session.remote(
        ["logger", "-t", REMOTE_LOG_TAG, message], name="remote-log"
    )


# ── Step actions ────────────────────────────────────────────────────


def store_backup_utils_version(session: RemoteSession, ctx: RunContext) -> Receipt:
    return session.remote(
        write_line_argv(ctx.backup_utils_version, ctx.paths.common(BACKUP_UTILS_VERSION_FILE)),
        name="store-version",
        broadcast=ctx.is_cluster,
    )


def log_restore_start(session: RemoteSession, ctx: RunContext) -> Receipt:
    version = f" with backup-utils v{ctx.backup_utils_version}" if ctx.backup_utils_version else ""
    return _remote_log(
        session,
        f"Starting restore of {ctx.hostname}{version} from snapshot {ctx.snapshot.id}",
    )


def log_restore_complete(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _remote_log(
        session,
        f"Completed restore of {ctx.hostname} from snapshot {ctx.snapshot.id}",
    )


def stop_cron(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _service(session, ctx, "cron", "stop")


def stop_timerd(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _service(session, ctx, "github-timerd", "stop")


def start_cron(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _service(session, ctx, "cron", "start")


def start_timerd(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _service(session, ctx, "github-timerd", "start")


def restart_memcached(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _service(session, ctx, "memcached", "restart")


def restore_settings(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-settings")


def ensure_services(session: RemoteSession, ctx: RunContext) -> Receipt:
    receipt = session.remote(["ghe-service-ensure-mysql"], name="ensure-mysql")
    if receipt.failed:
        return receipt
    return session.remote(["ghe-service-ensure-elasticsearch"], name="ensure-elasticsearch")


def restore_uuid(session: RemoteSession, ctx: RunContext) -> Receipt:
    """Give the target the identity of the appliance the snapshot came from."""
    receipt = session.remote(
        write_line_argv(ctx.snapshot.uuid or "", ctx.paths.common("uuid")), name="write-uuid"
    )
    if receipt.failed:
        return receipt

    stopped = session.remote(["sudo", "service", "consul", "stop"], name="stop-consul")
    if stopped.failed:
        logger.warning("Could not stop consul on %s: %s", ctx.host, stopped.error)

    raft_dir = f"{ctx.paths.data_user_dir.rstrip('/')}/consul/raft"
    return session.remote(["sudo", "rm", "-rf", raft_dir], name="clear-consul-raft")


def restore_mysql(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-mysql")


def restore_redis(session: RemoteSession, ctx: RunContext) -> Receipt:
    return session.remote(
        ["ghe-import-redis"], name="import-redis", stdin_path=ctx.snapshot.file("redis.rdb")
    )


def restore_repositories(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-repositories", "ghe-restore-repositories-gist")


def restore_repositories_rsync(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-repositories-rsync")


def restore_pages(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-pages")


def restore_authorized_keys(session: RemoteSession, ctx: RunContext) -> Receipt:
    return session.remote(
        ["ghe-import-authorized-keys"],
        name="import-authorized-keys",
        stdin_path=ctx.snapshot.file("authorized-keys.json"),
    )


def restore_storage(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-storage")


def restore_git_hooks(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-git-hooks")


def restore_elasticsearch(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-es-rsync")


def propagate_audit_sentinel(session: RemoteSession, ctx: RunContext) -> Receipt:
    return session.remote(
        ["sudo", "touch", ctx.paths.common(AUDIT_SENTINEL)], name="audit-sentinel"
    )


def restore_audit_logs(session: RemoteSession, ctx: RunContext) -> Receipt:
    return _run_tools(session, ctx, "ghe-restore-es-audit-log", "ghe-restore-es-hookshot")


def apply_config(session: RemoteSession, ctx: RunContext) -> Receipt:
    if ctx.is_cluster:
        return session.remote(["ghe-cluster-config-apply"], name="cluster-config-apply")
    return session.remote(["ghe-config-apply"], name="config-apply")


def cleanup_stale_nodes(session: RemoteSession, ctx: RunContext) -> Receipt:
    """Drop nodes a standalone target remembers from its previous life."""
    uuid = ctx.snapshot.uuid
    if not uuid:
        logger.warning("Snapshot %s has no uuid; not cleaning up stale nodes", ctx.snapshot.id)
        return _skip(ctx, "stale-nodes", "snapshot has no uuid")

    nodes = list_other_nodes(session, exclude_uuid=uuid)
    if nodes is None:
        return Receipt.failure(adapter="engine", action_id=f"{ctx.operation_id}:stale-nodes",
                               host=ctx.host, error="Cannot read the node inventory")
    if not nodes:
        return _skip(ctx, "stale-nodes", "no stale nodes")

    receipt = None
    for node in nodes:
        logger.info("Removing stale node %s", node)
        receipt = cleanup_node(session, node)
        if receipt.failed:
            return receipt
    return receipt


def restore_ssh_host_keys(session: RemoteSession, ctx: RunContext) -> Receipt:
    archive = ctx.snapshot.file("ssh-host-keys.tar")
    if not ctx.is_cluster:
        return session.remote(
            ["ghe-import-ssh-host-keys"], name="import-ssh-host-keys", stdin_path=archive
        )

    common = ctx.paths.common()
    receipt = session.remote(
        ["sudo", "tar", "-xpf", "-", "-C", common], name="extract-ssh-host-keys", stdin_path=archive
    )
    if receipt.failed:
        return receipt

    receipt = session.remote(
        ["sudo", "sh", "-c", f'chown {SSH_HOST_KEY_OWNER} "$1"/ssh_host_*', "sh", common],
        name="chown-ssh-host-keys",
    )
    if receipt.failed:
        return receipt

    return session.remote(["ghe-cluster-config-update", "-s"], name="cluster-config-update")


# ── Predicates ──────────────────────────────────────────────────────


def _standalone(ctx: RunContext) -> bool:
    return not ctx.is_cluster


def _has_backup_utils_version(ctx: RunContext) -> bool:
    return bool(ctx.backup_utils_version)


def _restores_settings(ctx: RunContext) -> bool:
    return ctx.restore_settings


def _restores_uuid(ctx: RunContext) -> bool:
    return not ctx.is_cluster and bool(ctx.snapshot.uuid)


def _unified_repositories(ctx: RunContext) -> bool:
    return ctx.gate.unified_repositories


def _legacy_repositories(ctx: RunContext) -> bool:
    return ctx.gate.legacy_repositories


def _restores_elasticsearch(ctx: RunContext) -> bool:
    return not ctx.is_cluster and ctx.snapshot.has_elasticsearch


def _has_audit_sentinel(ctx: RunContext) -> bool:
    return ctx.snapshot.has_audit_migration_sentinel


def _restores_audit_logs(ctx: RunContext) -> bool:
    return ctx.gate.audit_logs


def _applies_config(ctx: RunContext) -> bool:
    return ctx.is_cluster or ctx.is_configured


def _skips_config(ctx: RunContext) -> bool:
    return not _applies_config(ctx)


def _cleans_stale_nodes(ctx: RunContext) -> bool:
    return not ctx.is_cluster and ctx.is_configured


# ── Catalog ─────────────────────────────────────────────────────────

BEST_EFFORT = StepPolicy.BEST_EFFORT

RESTORE_STEPS: tuple[RestoreStep, ...] = (
    RestoreStep("store-version", "Recording backup-utils version",
                store_backup_utils_version, _has_backup_utils_version, BEST_EFFORT),
    RestoreStep("remote-log-start", "Logging restore start on the target",
                log_restore_start, policy=BEST_EFFORT),
    RestoreStep("stop-cron", "Stopping cron", stop_cron, policy=BEST_EFFORT),
    RestoreStep("stop-timerd", "Stopping timerd", stop_timerd, policy=BEST_EFFORT),
    RestoreStep("settings", "Restoring settings and license", restore_settings, _restores_settings),
    RestoreStep("ensure-services", "Ensuring MySQL and Elasticsearch are running",
                ensure_services, _standalone),
    RestoreStep("uuid", "Restoring appliance UUID", restore_uuid, _restores_uuid),
    RestoreStep("mysql", "Restoring MySQL database", restore_mysql),
    RestoreStep("redis", "Restoring Redis database", restore_redis),
    RestoreStep("repositories", "Restoring Git repositories and Gists",
                restore_repositories, _unified_repositories),
    RestoreStep("repositories-rsync", "Restoring Git repositories and Gists (rsync)",
                restore_repositories_rsync, _legacy_repositories),
    RestoreStep("pages", "Restoring GitHub Pages", restore_pages),
    RestoreStep("authorized-keys", "Restoring SSH authorized keys", restore_authorized_keys),
    RestoreStep("storage", "Restoring storage data", restore_storage),
    RestoreStep("git-hooks", "Restoring custom Git hooks", restore_git_hooks),
    RestoreStep("elasticsearch", "Restoring Elasticsearch indices",
                restore_elasticsearch, _restores_elasticsearch),
    RestoreStep("audit-sentinel", "Marking audit log migration as complete",
                propagate_audit_sentinel, _has_audit_sentinel),
    RestoreStep("audit-logs", "Restoring audit and hookshot logs",
                restore_audit_logs, _restores_audit_logs),
    RestoreStep("memcached", "Restarting memcached", restart_memcached, policy=BEST_EFFORT),
    RestoreStep("config-apply", "Applying configuration", apply_config, _applies_config),
    RestoreStep("start-cron", "Starting cron", start_cron, policy=BEST_EFFORT),
    # Otherwise the config run brings timerd back
    RestoreStep("start-timerd", "Starting timerd", start_timerd, _skips_config, BEST_EFFORT),
    RestoreStep("stale-nodes", "Cleaning up stale nodes", cleanup_stale_nodes, _cleans_stale_nodes),
)

# Run after ``complete`` has been published
FINALIZE_STEPS: tuple[RestoreStep, ...] = (
    RestoreStep("remote-log-complete", "Logging restore completion on the target",
                log_restore_complete, policy=BEST_EFFORT),
    RestoreStep("ssh-host-keys", "Restoring SSH host keys", restore_ssh_host_keys),
)
