"""
Shared test fixtures — snapshot directories and a scripted target.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from snaprestore.adapters.mock import MockAdapter
from snaprestore.adapters.registry import AdapterRegistry
from snaprestore.core.models.action import Receipt

STATUS_FILE = "/data/user/common/ghe-restore-status"


class FakeTarget:
    """A restore target scripted through two mock adapters.

    ``ssh`` answers remote commands, ``tool`` answers local restore
    tools. Every remote command succeeds unless configured otherwise.
    """

    def __init__(self) -> None:
        self.ssh = MockAdapter(adapter_name="ssh")
        self.tool = MockAdapter(adapter_name="tool")
        self.registry = AdapterRegistry()
        self.registry.register(self.ssh)
        self.registry.register(self.tool)

    def configure(
        self,
        *,
        configured: bool = True,
        cluster: bool = False,
        replication: bool = False,
        version: str = "2.13.0",
        maintenance: bool = True,
        nodes: list[str] | None = None,
    ) -> FakeTarget:
        if not configured:
            self.ssh.set_failure("etc/github/configured", error="")
        if not cluster:
            self.ssh.set_failure("etc/github/cluster", error="")
        if not replication:
            self.ssh.set_failure("etc/github/repl-state", error="")
        self.ssh.set_output("etc/github/enterprise-release", f'RELEASE_VERSION="{version}"\n')
        if not maintenance:
            self.ssh.set_failure("ghe-maintenance -q", error="")
        servers = [{"host": f"git-server-{uuid}"} for uuid in (nodes or [])]
        self.ssh.set_output("ghe-spokes server show", json.dumps(servers))
        return self

    def unreachable(self, pattern: str = "") -> None:
        """Fail commands matching ``pattern`` (all, by default) like a dead link."""
        self.ssh.set_response(
            pattern,
            Receipt.failure(
                adapter="ssh",
                action_id=pattern or "any",
                error="ssh: connect to host: Connection refused",
                return_code=255,
                metadata={"transport_error": True},
            ),
        )

    @property
    def status_writes(self) -> list[str]:
        """Status tokens written to the target, in order."""
        return [
            ctx.action.argv[-2]
            for ctx in self.ssh.call_log
            if ctx.action.argv and ctx.action.argv[-1].endswith("ghe-restore-status")
        ]

    @property
    def status_broadcasts(self) -> list[bool]:
        return [
            ctx.action.broadcast
            for ctx in self.ssh.call_log
            if ctx.action.argv and ctx.action.argv[-1].endswith("ghe-restore-status")
        ]

    @property
    def tools_run(self) -> list[str]:
        return self.tool.commands

    def ran(self, fragment: str) -> bool:
        """Whether any remote command contained ``fragment``."""
        return any(fragment in command for command in self.ssh.commands)


@pytest.fixture
def target() -> FakeTarget:
    return FakeTarget()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Return a temporary backup data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def make_snapshot(data_dir: Path):
    """Factory for snapshot directories; the newest becomes ``current``."""

    def _make(
        snapshot_id: str = "20240101T000000",
        *,
        strategy: str | None = "rsync",
        version: str | None = "2.13.0",
        uuid: str | None = None,
        sentinel: bool = False,
        elasticsearch: bool = False,
        incomplete: bool = False,
        current: bool = True,
    ) -> Path:
        path = data_dir / snapshot_id
        path.mkdir(parents=True)
        if strategy is not None:
            (path / "strategy").write_text(f"{strategy}\n")
        if version is not None:
            (path / "version").write_text(f"{version}\n")
        if uuid is not None:
            (path / "uuid").write_text(f"{uuid}\n")
        if sentinel:
            (path / "es-scan-complete").touch()
        if elasticsearch:
            (path / "elasticsearch").mkdir()
        if incomplete:
            (path / "incomplete").touch()
        for name in ("redis.rdb", "authorized-keys.json", "ssh-host-keys.tar"):
            (path / name).write_bytes(b"")

        if current:
            link = data_dir / "current"
            if link.is_symlink():
                link.unlink()
            link.symlink_to(snapshot_id)
        return path

    return _make
