"""
Adapter registry — central dispatch for all adapter operations.

The registry is the single point of adapter management. The engine
never talks to adapters directly — always through the registry, which
guarantees a Receipt back for every action, whatever goes wrong.
"""

from __future__ import annotations

import logging
import time
from snaprestore.adapters.base import Adapter, ExecutionContext
from snaprestore.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters."""

    def __init__(self) -> None:
        self._adapters: dict[str, Adapter] = {}

    def register(self, adapter: Adapter) -> None:
        """Register an adapter under its name."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def execute_action(
        self,
        action: Action,
        host: str,
        env: dict[str, str] | None = None,
    ) -> Receipt:
        """Execute an action through the appropriate adapter.

        Resolves the adapter, validates, executes, and stamps timing.
        Never raises.
        """
        start_time = time.monotonic()

        context = ExecutionContext(action=action, host=host, env=env or {})

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                host=host,
                error=f"No adapter registered for '{action.adapter}'",
            )

        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    host=host,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                host=host,
                error=f"Validation error: {e}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                host=host,
                error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - start_time) * 1000)
        return receipt

    def release(self, host: str) -> bool:
        """Release per-host resources held by every adapter."""
        released = True
        for name, adapter in self._adapters.items():
            try:
                if not adapter.release(host):
                    logger.debug("Adapter %s could not release %s", name, host)
                    released = False
            except Exception as e:
                logger.warning("Adapter %s raised during release: %s", name, e)
                released = False
        return released
