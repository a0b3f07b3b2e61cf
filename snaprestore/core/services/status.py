"""
Status protocol — the restore state other processes on the target see.

One token (``restoring``, ``failed`` or ``complete``) is written to
``<data_user>/common/ghe-restore-status``. On a cluster the write is a
single broadcast so every node carries the same value.

The publisher enforces the monotonic lifecycle locally: once a
terminal state has been published, nothing else is.
"""

from __future__ import annotations

import logging

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.errors import StatusPublishError
from snaprestore.core.models.action import Receipt
from snaprestore.core.models.context import RemotePaths
from snaprestore.core.models.state import RestoreState

logger = logging.getLogger(__name__)

_WRITE_LINE = 'printf "%s\\n" "$1" > "$2"'


def write_line_argv(value: str, path: str) -> list[str]:
    """argv that replaces ``path`` on the target with one line of text.

    The value and path travel as positional parameters, so neither is
    ever interpolated into shell source.
    """
    return ["sudo", "sh", "-c", _WRITE_LINE, "sh", value, path]


class StatusPublisher:
    """Publishes RestoreState tokens for one run."""

    def __init__(self, session: RemoteSession, paths: RemotePaths, is_cluster: bool):
        self._session = session
        self._paths = paths
        self._is_cluster = is_cluster
        self._published: list[RestoreState] = []

    @property
    def published(self) -> list[RestoreState]:
        """Every state successfully written, in order."""
        return list(self._published)

    @property
    def current(self) -> RestoreState | None:
        return self._published[-1] if self._published else None

    def _allowed(self, state: RestoreState) -> bool:
        current = self.current
        if current is None:
            return state is RestoreState.RESTORING
        if current.terminal:
            return False
        return state.terminal

    def _write(self, state: RestoreState) -> Receipt:
        return self._session.remote(
            write_line_argv(state.value, self._paths.status_file),
            name=f"status-{state.value}",
            broadcast=self._is_cluster,
        )

    def publish(self, state: RestoreState) -> Receipt | None:
        """Write ``state`` to the target.

        Returns the receipt, or None when the transition is not allowed
        and nothing was sent.

        Raises:
            StatusPublishError: If ``restoring`` could not be written.
        """
        if not self._allowed(state):
            logger.debug("Not publishing %s after %s", state, self.current)
            return None

        receipt = self._write(state)
        if receipt.ok:
            self._published.append(state)
            logger.info("Restore status on %s: %s", self._session.host, state)
            return receipt

        if state is RestoreState.RESTORING:
            raise StatusPublishError(
                f"Could not set restore status on {self._session.host}: {receipt.error}",
                hint="Nothing has been restored. Check the target's disk and permissions.",
            )
        if state is RestoreState.FAILED:
            logger.warning("Could not mark restore as failed on %s: %s",
                           self._session.host, receipt.error)
        return receipt
