"""
RunContext — the single immutable value threaded through a restore.

Built once after the target has been probed and validated. Steps,
the status protocol and the version gate all read from it instead of
from process-wide flags.
"""

from __future__ import annotations

import posixpath

from pydantic import BaseModel, ConfigDict

from snaprestore.core.models.snapshot import Snapshot
from snaprestore.core.models.topology import RestoreRequest, TargetTopology

STATUS_FILE = "ghe-restore-status"


class RemotePaths(BaseModel):
    """Well-known directories on the target."""

    model_config = ConfigDict(frozen=True)

    root_dir: str = "/"
    data_user_dir: str = "/data/user"

    def root(self, *parts: str) -> str:
        return posixpath.join(self.root_dir, *parts)

    def common(self, *parts: str) -> str:
        return posixpath.join(self.data_user_dir, "common", *parts)

    @property
    def status_file(self) -> str:
        return self.common(STATUS_FILE)


class GateDecision(BaseModel):
    """Which optional steps and strategies the version gate enabled."""

    model_config = ConfigDict(frozen=True)

    unified_repositories: bool
    audit_logs: bool

    @property
    def legacy_repositories(self) -> bool:
        return not self.unified_repositories


class RunContext(BaseModel):
    """Everything a restore step may look at."""

    model_config = ConfigDict(frozen=True)

    operation_id: str = ""
    request: RestoreRequest
    snapshot: Snapshot
    topology: TargetTopology
    gate: GateDecision
    restore_settings: bool              # effective, forced on fresh targets
    paths: RemotePaths = RemotePaths()
    data_dir: str = "data"
    backup_utils_version: str = ""

    @property
    def host(self) -> str:
        return self.request.target_host

    @property
    def hostname(self) -> str:
        return self.request.hostname

    @property
    def is_cluster(self) -> bool:
        return self.topology.is_cluster

    @property
    def is_configured(self) -> bool:
        return self.topology.is_configured

    def tool_env(self) -> dict[str, str]:
        """Environment exported to the local restore tools."""
        return {
            "GHE_HOSTNAME": self.host,
            "GHE_DATA_DIR": self.data_dir,
            "GHE_RESTORE_SNAPSHOT": self.snapshot.id,
            "GHE_RESTORE_SNAPSHOT_PATH": self.snapshot.path,
            "GHE_BACKUP_STRATEGY": self.snapshot.strategy.value,
            "GHE_REMOTE_VERSION": self.topology.remote_version,
            "GHE_REMOTE_ROOT_DIR": self.paths.root_dir,
            "GHE_REMOTE_DATA_USER_DIR": self.paths.data_user_dir,
            "CLUSTER": "true" if self.is_cluster else "false",
            "GHE_VERBOSE": "1" if self.request.verbose else "",
        }
