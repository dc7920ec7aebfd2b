"""
Sudo privilege backend.

``verify`` validates the password once (``sudo -S -v``, password on
stdin) which caches the credential; ``refresh`` keeps the cache warm
with ``sudo -n true`` and fails as soon as sudo would prompt again.

Security invariants:
    - Password piped via stdin only, never in argv
    - Password never logged, never stored on the backend
"""

from __future__ import annotations

import logging
import os

from macsetup.adapters.base import PrivilegeBackend
from macsetup.adapters.shell.command import Runner, run_command

logger = logging.getLogger(__name__)


class SudoBackend(PrivilegeBackend):
    """Privilege grants through sudo's credential cache."""

    def __init__(self, sudo: str = "sudo", runner: Runner = run_command):
        self._sudo = sudo
        self._run = runner

    def verify(self, credential: str) -> bool:
        if os.geteuid() == 0:
            # Already root
            return True
        result = self._run(
            [self._sudo, "-S", "-p", "", "-v"],
            input_text=credential + "\n",
            timeout=30,
        )
        if not result.ok:
            logger.debug("sudo -v failed (exit %d)", result.returncode)
        return result.ok

    def refresh(self) -> bool:
        if os.geteuid() == 0:
            return True
        return self._run([self._sudo, "-n", "true"], timeout=30).ok
