"""
Request and topology models — what the operator asked for and what
the target turned out to be.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RestoreRequest(BaseModel):
    """The operator's request, immutable once validated."""

    model_config = ConfigDict(frozen=True)

    target_host: str
    snapshot_id: str = "current"
    restore_settings: bool = False
    force: bool = False
    verbose: bool = False

    @property
    def hostname(self) -> str:
        """Target host without an explicit ``:port`` suffix."""
        return self.target_host.split(":", 1)[0]


class TargetTopology(BaseModel):
    """Shape of the target, probed once at the start of a run.

    Never re-queried mid-run: every step decides against this value.
    """

    model_config = ConfigDict(frozen=True)

    is_configured: bool
    is_cluster: bool
    has_replication: bool
    remote_version: str
