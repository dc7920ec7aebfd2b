"""
Editor extension provider — VS Code extensions via the ``code`` CLI.
"""

from __future__ import annotations

import logging

from macsetup.adapters.base import PackageProvider
from macsetup.adapters.shell.command import INSTALL_TIMEOUT, Runner, run_command
from macsetup.core.models.desired import ActionKind, PackageSpec
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class VSCodeExtensionProvider(PackageProvider):
    """Install editor extensions. Extension IDs compare case-insensitively."""

    kinds = (ActionKind.EDITOR_EXTENSION,)

    def __init__(self, code: str = "code", runner: Runner = run_command):
        self._code = code
        self._run = runner
        self._installed: set[str] | None = None

    @property
    def name(self) -> str:
        return "vscode"

    def _extensions(self) -> set[str]:
        if self._installed is None:
            result = self._run([self._code, "--list-extensions"])
            if result.ok:
                self._installed = {
                    line.strip().lower() for line in result.stdout.splitlines() if line.strip()
                }
            else:
                logger.warning("code --list-extensions failed: %s", result.message)
                self._installed = set()
        return self._installed

    def is_installed(self, spec: PackageSpec) -> bool:
        return spec.name.lower() in self._extensions()

    def install(self, spec: PackageSpec) -> Receipt:
        result = self._run([self._code, "--install-extension", spec.name], timeout=INSTALL_TIMEOUT)
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id=spec.name,
                error=result.message,
                duration_ms=result.elapsed_ms,
            )
        self._extensions().add(spec.name.lower())
        return Receipt.success(
            provider=self.name,
            action_id=spec.name,
            output=result.stdout.strip(),
            duration_ms=result.elapsed_ms,
        )
