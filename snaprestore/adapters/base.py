"""
Adapter base — the protocol contract between the engine and the
restore target.

The engine never shells out directly. Every remote query, status
write and restore tool invocation is an Action dispatched through an
adapter, and every adapter answers with a Receipt.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from snaprestore.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to run one action."""

    action: Action
    host: str
    env: dict[str, str] = Field(default_factory=dict)

    @property
    def hostname(self) -> str:
        return self.host.split(":", 1)[0]

    @property
    def port(self) -> str | None:
        if ":" in self.host:
            return self.host.split(":", 1)[1] or None
        return None


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier ('ssh', 'tool', ...)."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying binary exists. Fast, never raises."""

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Run the action and return a receipt. MUST never raise."""

    def release(self, host: str) -> bool:
        """Release per-host resources (e.g. a multiplexed connection).

        Returns True when there was nothing to release or the release
        succeeded.
        """
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
