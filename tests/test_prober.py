"""
Tests for the topology prober and pre-restore validation.
"""

from pathlib import Path

import pytest

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.errors import (
    AuditMigrationRequired,
    IncompatibleStrategy,
    MaintenanceModeRequired,
    ReplicationEnabled,
    UnreachableTarget,
    UserAborted,
)
from snaprestore.core.models.context import RemotePaths
from snaprestore.core.models.topology import RestoreRequest, TargetTopology
from snaprestore.core.services.prober import (
    confirm_overwrite,
    probe_topology,
    validate_preconditions,
)
from snaprestore.core.services.snapshots import resolve_snapshot


def _session(target) -> RemoteSession:
    return RemoteSession(target.registry, "ghe.example")


def _topology(**overrides) -> TargetTopology:
    values = {"is_configured": True, "is_cluster": False, "has_replication": False,
              "remote_version": "2.13.0"}
    values.update(overrides)
    return TargetTopology(**values)


class _Answers:
    """Scripted operator: returns answers in order, then end of input."""

    def __init__(self, *answers):
        self.answers = list(answers)
        self.prompts: list[str] = []

    def __call__(self, prompt: str):
        self.prompts.append(prompt)
        return self.answers.pop(0) if self.answers else None


# ── Probing ──────────────────────────────────────────────────────────


class TestProbeTopology:
    def test_configured_standalone(self, target):
        target.configure(configured=True, version="2.12.5")
        topology = probe_topology(_session(target), RemotePaths())
        assert topology == _topology(remote_version="2.12.5")

    def test_fresh_cluster_with_replication(self, target):
        target.configure(configured=False, cluster=True, replication=True)
        topology = probe_topology(_session(target), RemotePaths())
        assert not topology.is_configured
        assert topology.is_cluster
        assert topology.has_replication

    def test_remote_root_dir(self, target):
        target.configure()
        probe_topology(_session(target), RemotePaths(root_dir="/chroot"))
        assert target.ran("test -f /chroot/etc/github/configured")
        assert target.ran("cat /chroot/etc/github/enterprise-release")

    def test_probes_are_read_only(self, target):
        target.configure()
        probe_topology(_session(target), RemotePaths())
        assert target.status_writes == []
        assert target.tools_run == []

    def test_unreachable(self, target):
        target.configure()
        target.unreachable()
        with pytest.raises(UnreachableTarget):
            probe_topology(_session(target), RemotePaths())

    def test_version_query_failure(self, target):
        target.configure()
        target.ssh.set_failure("enterprise-release", error="No such file")
        with pytest.raises(UnreachableTarget):
            probe_topology(_session(target), RemotePaths())

    def test_unparseable_version(self, target):
        target.configure()
        target.ssh.set_output("enterprise-release", "RELEASE_PLATFORM=esx\n")
        with pytest.raises(UnreachableTarget):
            probe_topology(_session(target), RemotePaths())


# ── Confirmation ─────────────────────────────────────────────────────


class TestConfirmOverwrite:
    @pytest.mark.parametrize("answer", ["yes", "YES", "Yes", "  yes \n"])
    def test_yes_in_any_case(self, answer):
        confirm_overwrite(_Answers(answer))

    @pytest.mark.parametrize("answer", ["no", "y", "yess", "nope"])
    def test_anything_else_aborts(self, answer):
        with pytest.raises(UserAborted):
            confirm_overwrite(_Answers(answer))

    def test_blank_asks_again(self):
        answers = _Answers("", "   ", "yes")
        confirm_overwrite(answers)
        assert len(answers.prompts) == 3

    def test_end_of_input_aborts(self):
        with pytest.raises(UserAborted):
            confirm_overwrite(_Answers())

    def test_nobody_to_ask(self):
        with pytest.raises(UserAborted) as exc:
            confirm_overwrite(None)
        assert "--force" in exc.value.hint


# ── Validation ───────────────────────────────────────────────────────


class TestValidatePreconditions:
    def _run(self, target, data_dir: Path, topology: TargetTopology, confirm=None, **request):
        request = RestoreRequest(target_host="ghe.example", **request)
        return validate_preconditions(
            _session(target), request, resolve_snapshot(data_dir), topology, confirm=confirm
        )

    def test_cluster_snapshot_onto_standalone(self, target, data_dir, make_snapshot):
        make_snapshot(strategy="cluster")
        with pytest.raises(IncompatibleStrategy):
            self._run(target, data_dir, _topology(), force=True)

    def test_strategy_checked_before_replication(self, target, data_dir, make_snapshot):
        make_snapshot(strategy="cluster")
        with pytest.raises(IncompatibleStrategy):
            self._run(target, data_dir, _topology(has_replication=True), force=True)

    def test_cluster_snapshot_onto_cluster(self, target, data_dir, make_snapshot):
        target.configure(cluster=True)
        make_snapshot(strategy="cluster")
        assert self._run(target, data_dir, _topology(is_cluster=True), force=True) is False

    def test_replication(self, target, data_dir, make_snapshot):
        make_snapshot()
        with pytest.raises(ReplicationEnabled) as exc:
            self._run(target, data_dir, _topology(has_replication=True), force=True)
        assert "teardown replication" in exc.value.hint

    def test_audit_migration_required(self, target, data_dir, make_snapshot):
        make_snapshot(version="2.10.3")
        answers = _Answers("yes")
        with pytest.raises(AuditMigrationRequired):
            self._run(target, data_dir, _topology(remote_version="2.11.0"), confirm=answers)
        assert answers.prompts == []

    def test_audit_migration_forced(self, target, data_dir, make_snapshot):
        target.configure()
        make_snapshot(version="2.10.3")
        self._run(target, data_dir, _topology(remote_version="2.11.0"), force=True)

    def test_configured_target_asks(self, target, data_dir, make_snapshot):
        target.configure()
        make_snapshot()
        answers = _Answers("yes")
        assert self._run(target, data_dir, _topology(), confirm=answers) is False
        assert len(answers.prompts) == 1

    def test_configured_target_declined(self, target, data_dir, make_snapshot):
        target.configure()
        make_snapshot()
        with pytest.raises(UserAborted):
            self._run(target, data_dir, _topology(), confirm=_Answers("no"))
        assert not target.ran("ghe-maintenance")

    def test_force_skips_confirmation(self, target, data_dir, make_snapshot):
        target.configure()
        make_snapshot()
        answers = _Answers()
        self._run(target, data_dir, _topology(), confirm=answers, force=True)
        assert answers.prompts == []

    def test_fresh_target_forces_settings(self, target, data_dir, make_snapshot):
        target.configure(configured=False, maintenance=False)
        make_snapshot()
        answers = _Answers()
        assert self._run(target, data_dir, _topology(is_configured=False), confirm=answers) is True
        assert answers.prompts == []
        assert not target.ran("ghe-maintenance")

    def test_settings_flag_kept(self, target, data_dir, make_snapshot):
        target.configure()
        make_snapshot()
        assert self._run(target, data_dir, _topology(), force=True, restore_settings=True) is True

    def test_maintenance_mode_required(self, target, data_dir, make_snapshot):
        target.configure(maintenance=False)
        make_snapshot()
        with pytest.raises(MaintenanceModeRequired):
            self._run(target, data_dir, _topology(), force=True)
        assert target.ran("ghe-maintenance -q")
