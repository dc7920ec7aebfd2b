"""
Subprocess runner — the single place where external tools are invoked.

Every provider shells out through ``run_command`` so timeouts, sudo
handling, and error capture live in one spot. Providers accept a
``runner`` argument so tests can substitute a fake.

Security invariants:
    - A credential is only ever passed on stdin, never in argv
    - stdin contents are never logged
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

QUERY_TIMEOUT = 60
INSTALL_TIMEOUT = 1800


@dataclass
class CommandResult:
    """Outcome of one external command."""

    cmd: list[str]
    returncode: int = 0
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0
    error: str | None = None    # set when the command could not run at all

    @property
    def ok(self) -> bool:
        return self.error is None and self.returncode == 0

    @property
    def message(self) -> str:
        """Best available explanation of a failure."""
        if self.error:
            return self.error
        if self.stderr.strip():
            return self.stderr.strip()[-2000:]
        return f"Command failed (exit {self.returncode})"


Runner = Callable[..., CommandResult]


def run_command(
    cmd: list[str],
    *,
    sudo: str | None = None,
    input_text: str | None = None,
    timeout: int = QUERY_TIMEOUT,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    sensitive: bool = False,
) -> CommandResult:
    """Run a command and capture its output. Never raises.

    Args:
        cmd: Command list for ``subprocess.run()``.
        sudo: sudo executable. When set, the command runs through
            ``<sudo> -n``, relying on the credential cached by the
            privilege session.
        input_text: Data written to stdin.
        timeout: Seconds before the command is killed.
        cwd: Working directory.
        env: Extra environment variables, on top of the inherited ones.
        sensitive: argv carries a secret; log only the executable.
    """
    if sudo:
        cmd = [sudo, "-n", *cmd]

    logger.debug("Executing: %s", cmd[0] + " <redacted>" if sensitive else " ".join(cmd))
    start = time.monotonic()

    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input_text,
            cwd=cwd,
            env={**os.environ, **env} if env else None,
        )
    except subprocess.TimeoutExpired:
        return CommandResult(cmd=cmd, returncode=-1, error=f"Command timed out ({timeout}s)")
    except OSError as e:
        return CommandResult(cmd=cmd, returncode=-1, error=f"Cannot execute {cmd[0]}: {e}")

    elapsed_ms = int((time.monotonic() - start) * 1000)
    result = CommandResult(
        cmd=cmd,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        elapsed_ms=elapsed_ms,
    )
    if not result.ok:
        logger.debug("Command exited %d: %s", proc.returncode, result.message)
    return result
