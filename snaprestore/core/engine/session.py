"""
Remote session — one target host, one registry, numbered actions.

Wraps the adapter registry with the two calls the restore needs:
``remote()`` for commands on the target and ``tool()`` for local
restore helpers. Every receipt is kept in ``history`` so a run can be
inspected afterwards.
"""

from __future__ import annotations

import logging

from snaprestore.adapters.registry import AdapterRegistry
from snaprestore.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class RemoteSession:
    """All traffic to a single restore target."""

    def __init__(self, registry: AdapterRegistry, host: str, operation_id: str = "op"):
        self.registry = registry
        self.host = host
        self.operation_id = operation_id
        self.history: list[Receipt] = []
        self._seq = 0

    def _next_id(self, name: str) -> str:
        self._seq += 1
        return f"{self.operation_id}:{self._seq:03d}:{name or 'cmd'}"

    def _dispatch(self, action: Action, env: dict[str, str] | None = None) -> Receipt:
        receipt = self.registry.execute_action(action, host=self.host, env=env)
        self.history.append(receipt)
        marker = "✓" if receipt.ok else "✗"
        logger.debug("%s %s (%dms)", marker, action.display, receipt.duration_ms)
        if receipt.failed:
            logger.debug("  %s", receipt.error)
        return receipt

    def remote(
        self,
        argv: list[str],
        *,
        name: str = "",
        broadcast: bool = False,
        stdin_path: str | None = None,
        capture: bool = False,
    ) -> Receipt:
        """Run ``argv`` on the target (every node when ``broadcast``)."""
        action = Action(
            id=self._next_id(name),
            name=name,
            adapter="ssh",
            argv=argv,
            broadcast=broadcast,
            stdin_path=stdin_path,
            capture_output=capture,
        )
        return self._dispatch(action)

    def tool(
        self,
        tool: str,
        *args: str,
        name: str = "",
        env: dict[str, str] | None = None,
    ) -> Receipt:
        """Run a local restore helper as ``<tool> [args...] <host>``."""
        action = Action(
            id=self._next_id(name or tool),
            name=name or tool,
            adapter="tool",
            argv=[tool, *args],
        )
        return self._dispatch(action, env=env)

    def release(self) -> bool:
        """Drop multiplexed connections to the target."""
        return self.registry.release(self.host)
