"""
Mock adapter — scripted stand-in for the SSH and tool adapters.

Every command succeeds with empty output unless a response has been
scripted for it. Responses are matched by substring against the
action's space-joined argv, first match wins.
"""

from __future__ import annotations

from snaprestore.adapters.base import Adapter, ExecutionContext
from snaprestore.core.models.action import Receipt


class MockAdapter(Adapter):
    """Universal mock adapter for testing."""

    def __init__(
        self,
        adapter_name: str = "mock",
        available: bool = True,
        default_output: str = "",
    ):
        self._name = adapter_name
        self._available = available
        self._default_output = default_output
        self._responses: list[tuple[str, Receipt]] = []
        self._call_log: list[ExecutionContext] = []
        self._released: list[str] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        """All execution contexts this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[str]:
        """Space-joined argv of every call, in order."""
        return [" ".join(ctx.action.argv) for ctx in self._call_log]

    @property
    def released(self) -> list[str]:
        """Hosts passed to release(), in order."""
        return self._released

    def is_available(self) -> bool:
        return self._available

    def set_response(self, pattern: str, receipt: Receipt) -> None:
        """Answer commands containing ``pattern`` with ``receipt``."""
        self._responses.insert(0, (pattern, receipt))

    def set_output(self, pattern: str, output: str) -> None:
        """Succeed with ``output`` for commands containing ``pattern``."""
        self.set_response(
            pattern, Receipt.success(adapter=self._name, action_id=pattern, output=output)
        )

    def set_failure(self, pattern: str, error: str = "Mock failure") -> None:
        """Fail commands containing ``pattern``."""
        self.set_response(
            pattern,
            Receipt.failure(adapter=self._name, action_id=pattern, error=error, return_code=1),
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        command = " ".join(context.action.argv)

        for pattern, receipt in self._responses:
            if pattern in command:
                return receipt.model_copy(
                    update={"action_id": context.action.id, "host": context.host}
                )

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            host=context.host,
            output=self._default_output,
            return_code=0,
        )

    def release(self, host: str) -> bool:
        self._released.append(host)
        return True

    def reset(self) -> None:
        """Clear call log and scripted responses."""
        self._call_log.clear()
        self._responses.clear()
        self._released.clear()
