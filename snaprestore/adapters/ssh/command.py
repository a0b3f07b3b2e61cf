"""
SSH adapter — run commands on the restore target.

Connections are multiplexed through a control socket so the dozens of
short probes and writes in a restore share one TCP session. The
socket is torn down by ``release()`` when the run ends.

Appliances listen for administrative SSH on port 122 as user
``admin``; ``host:port`` overrides the port.
"""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
import tempfile
import time
from pathlib import Path

from snaprestore.adapters.base import Adapter, ExecutionContext
from snaprestore.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)

DEFAULT_PORT = "122"
DEFAULT_USER = "admin"
CLUSTER_EACH = ["ghe-cluster-each", "--"]


def remote_command(action: Action) -> str:
    """The command string the remote shell receives.

    A broadcast action is wrapped in the cluster fan-out helper, with
    the inner command quoted as a single argument.
    """
    inner = shlex.join(action.argv)
    if action.broadcast:
        return f"{shlex.join(CLUSTER_EACH)} {shlex.quote(inner)}"
    return inner


class SshAdapter(Adapter):
    """Execute commands on the target over SSH.

    Args:
        ssh_command: Base command, e.g. ``["ssh"]``.
        options: Extra ``-o`` style options passed through verbatim.
        user: Remote login.
        timeout: Per-command timeout in seconds (None = no limit).
        control_dir: Where the multiplexing socket lives.
    """

    def __init__(
        self,
        ssh_command: list[str] | None = None,
        options: list[str] | None = None,
        user: str = DEFAULT_USER,
        timeout: float | None = None,
        control_dir: str | None = None,
    ):
        self._ssh = list(ssh_command or ["ssh"])
        self._options = list(options or [])
        self._user = user
        self._timeout = timeout
        self._control_dir = control_dir or tempfile.gettempdir()

    @property
    def name(self) -> str:
        return "ssh"

    def is_available(self) -> bool:
        return shutil.which(self._ssh[0]) is not None

    def control_path(self) -> str:
        return str(Path(self._control_dir) / ".snaprestore-ssh-%C")

    def base_argv(self, context: ExecutionContext) -> list[str]:
        """ssh invocation up to (and including) the host."""
        return [
            *self._ssh,
            "-p", context.port or DEFAULT_PORT,
            "-l", self._user,
            "-o", "BatchMode=yes",
            "-o", "ControlMaster=auto",
            "-o", f"ControlPath={self.control_path()}",
            "-o", "ControlPersist=10m",
            *self._options,
            context.hostname,
        ]

    def build_argv(self, context: ExecutionContext) -> list[str]:
        """Full local argv for an action."""
        return [*self.base_argv(context), "--", remote_command(context.action)]

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.action.argv:
            return False, "Missing remote command"
        if not context.hostname:
            return False, "Missing target host"
        stdin_path = context.action.stdin_path
        if stdin_path and not Path(stdin_path).is_file():
            return False, f"Input file does not exist: {stdin_path}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        action = context.action
        argv = self.build_argv(context)
        logger.debug("ssh %s: %s", context.hostname, remote_command(action))
        start = time.monotonic()

        try:
            if action.stdin_path:
                with open(action.stdin_path, "rb") as stdin:
                    result = subprocess.run(
                        argv, stdin=stdin, capture_output=True, timeout=self._timeout
                    )
            else:
                result = subprocess.run(
                    argv,
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    timeout=self._timeout,
                )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                host=context.host,
                error=f"Remote command timed out after {self._timeout}s",
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=action.id,
                host=context.host,
                error=f"Cannot run ssh: {e}",
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout.decode("utf-8", errors="replace").strip()
        stderr = result.stderr.decode("utf-8", errors="replace").strip()

        if not action.capture_output and stdout:
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
                metadata={"stderr": stderr} if stderr else {},
            )

        # 255 is ssh's own failure code (connection, auth, host key)
        error = stderr or f"Remote command exited with code {result.returncode}"
        return Receipt.failure(
            adapter=self.name,
            action_id=action.id,
            host=context.host,
            error=error,
            output=stdout,
            duration_ms=elapsed_ms,
            return_code=result.returncode,
            metadata={"transport_error": result.returncode == 255},
        )

    def release(self, host: str) -> bool:
        """Close the multiplexed master connection for ``host``."""
        context = ExecutionContext(action=Action(id="release", adapter=self.name, argv=["true"]), host=host)
        argv = [*self.base_argv(context)]
        # "-O exit" must precede the destination
        argv[len(self._ssh):len(self._ssh)] = ["-O", "exit"]
        try:
            result = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=30,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.debug("Could not close ssh master for %s: %s", host, e)
            return False
        # Exit 255 with "No such file" just means no master was running
        return result.returncode == 0 or b"No such file" in result.stderr
