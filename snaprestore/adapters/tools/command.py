"""
Restore tool adapter — run a local restore helper against the target.

The datastore restores (MySQL, repositories, storage, ...) are done by
standalone helpers that take the target host as their last argument
and read the rest of the run from the environment. This adapter only
starts them and reports how they finished; each helper owns its own
retry behavior.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from snaprestore.adapters.base import Adapter, ExecutionContext
from snaprestore.core.models.action import Receipt

logger = logging.getLogger(__name__)


class ToolAdapter(Adapter):
    """Invoke ``<tool> [args...] <host>`` locally.

    Args:
        tools_dir: Directory searched before ``$PATH``.
        timeout: Per-tool timeout in seconds (None = no limit).
    """

    def __init__(self, tools_dir: str | None = None, timeout: float | None = None):
        self._tools_dir = tools_dir
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "tool"

    def is_available(self) -> bool:
        return True

    def resolve(self, tool: str) -> str | None:
        """Locate a tool binary, preferring the configured tools dir."""
        if self._tools_dir:
            candidate = Path(self._tools_dir) / tool
            if candidate.is_file() and os.access(candidate, os.X_OK):
                return str(candidate)
        return shutil.which(tool)

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.argv:
            return False, "Missing tool name"
        if self.resolve(context.action.argv[0]) is None:
            return False, f"Restore tool not found: {context.action.argv[0]}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        binary = self.resolve(action.argv[0]) or action.argv[0]
        argv = [binary, *action.argv[1:], context.host]
        env = {**os.environ, **context.env}

        logger.debug("Running tool: %s", " ".join(argv))
        start = time.monotonic()

        try:
            result = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                env=env,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                host=context.host,
                error=f"{action.argv[0]} timed out after {self._timeout}s",
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                host=context.host,
                error=f"Cannot run {action.argv[0]}: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.strip()
        stderr = result.stderr.strip()

        if stdout and not action.capture_output:
            for line in stdout.splitlines():
                logger.info("  %s", line)
            stdout = ""

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=action.id,
                host=context.host,
                output=stdout,
                duration_ms=elapsed_ms,
                return_code=0,
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=action.id,
            host=context.host,
            error=stderr or f"{action.argv[0]} exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            return_code=result.returncode,
        )
