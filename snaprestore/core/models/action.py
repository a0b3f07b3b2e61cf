"""
Action and Receipt models — the transport contract.

An Action is one command the engine wants run: either on the target
over SSH (adapter ``ssh``) or as a local restore tool that talks to the
target itself (adapter ``tool``). A Receipt is what came back.

Commands are argv lists, never pre-joined shell strings. Quoting only
happens at the transport edge, and multi-node fan-out is the typed
``broadcast`` flag rather than string interpolation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Action(BaseModel):
    """A command to run against the restore target."""

    id: str                         # unique action identifier
    name: str = ""                  # step or probe name, for logs
    adapter: str                    # "ssh" or "tool"
    argv: list[str]
    broadcast: bool = False         # fan out to every cluster node
    stdin_path: str | None = None   # local file streamed to the command
    capture_output: bool = False    # keep stdout in the receipt

    @property
    def display(self) -> str:
        """Human-readable one-liner for logs."""
        text = " ".join(self.argv)
        if self.broadcast:
            text = f"[all nodes] {text}"
        if self.stdin_path:
            text = f"{text} < {self.stdin_path}"
        return text


class Receipt(BaseModel):
    """Result of running an action.

    Adapters NEVER raise: transport errors, timeouts and non-zero exit
    codes all come back as a failed receipt.
    """

    adapter: str
    action_id: str
    host: str = ""
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""                # stdout, when captured
    error: str | None = None        # stderr or transport error
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the command failed."""
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
