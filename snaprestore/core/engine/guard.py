"""
Restore guard — a well-defined terminal state on every exit path.

Entered just before ``restoring`` is published. Until the orchestrator
calls ``downgrade()``, leaving the block by any route (exception,
Ctrl-C, SIGTERM, or a plain return) publishes ``failed``, provided
``restoring`` made it out first. The transport is released on the way
out in every case.

    with RestoreGuard(publisher, session) as guard:
        publisher.publish(RestoreState.RESTORING)
        run_steps()
        guard.downgrade()
        publisher.publish(RestoreState.COMPLETE)
        run_finalize_steps()
"""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType, TracebackType

from snaprestore.core.engine.session import RemoteSession
from snaprestore.core.models.state import RestoreState
from snaprestore.core.services.status import StatusPublisher

logger = logging.getLogger(__name__)


def _terminate(signum: int, frame: FrameType | None) -> None:
    raise SystemExit(128 + signum)


class RestoreGuard:
    """Publish ``failed`` and release the transport if a run dies.

    Args:
        publisher: Status publisher for this run.
        session: Remote session whose connections are released on exit.
        handle_sigterm: Turn SIGTERM into SystemExit while armed
            (main thread only).
    """

    def __init__(
        self,
        publisher: StatusPublisher,
        session: RemoteSession,
        handle_sigterm: bool = True,
    ):
        self._publisher = publisher
        self._session = session
        self._handle_sigterm = handle_sigterm
        self._armed = False
        self._downgraded = False
        self._released = False
        self._failed_published = False
        self._previous_handler = None

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> RestoreGuard:
        self._armed = True
        if self._handle_sigterm and threading.current_thread() is threading.main_thread():
            self._previous_handler = signal.signal(signal.SIGTERM, _terminate)
        return self

    def downgrade(self) -> None:
        """Stop publishing ``failed`` on exit. Allowed once per run."""
        if self._downgraded:
            raise RuntimeError("Restore guard already downgraded")
        self._downgraded = True
        self._armed = False
        logger.debug("Restore guard downgraded")

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if self._previous_handler is not None:
            signal.signal(signal.SIGTERM, self._previous_handler)
            self._previous_handler = None

        try:
            if self._armed:
                self._mark_failed(exc)
        finally:
            self._release()
        return False

    def _mark_failed(self, exc: BaseException | None) -> None:
        if self._failed_published:
            return
        self._failed_published = True
        self._armed = False
        if exc is not None:
            logger.info("Restore interrupted: %s", exc.__class__.__name__)
        try:
            self._publisher.publish(RestoreState.FAILED)
        except Exception as e:
            logger.warning("Could not publish failed status: %s", e)

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        try:
            if not self._session.release():
                logger.debug("Transport for %s was not released cleanly", self._session.host)
        except Exception as e:
            logger.warning("Could not release transport for %s: %s", self._session.host, e)
