"""
App Store provider — installs Mac App Store apps with ``mas``.

``mas list`` prints one app per line::

    497799835  Xcode     (15.4)
    409203825  Numbers   (14.0)

Only the leading numeric ID matters here.
"""

from __future__ import annotations

import logging

from macsetup.adapters.base import AppStoreProvider, ProviderError
from macsetup.adapters.shell.command import INSTALL_TIMEOUT, Runner, run_command
from macsetup.core.models.desired import PackageSpec
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class MasProvider(AppStoreProvider):
    """Mac App Store via the mas CLI."""

    def __init__(self, mas: str = "mas", runner: Runner = run_command):
        self._mas = mas
        self._run = runner
        self._installed: set[str] | None = None
        self._signed_in: bool | None = None

    @property
    def name(self) -> str:
        return "mas"

    def is_signed_in(self) -> bool:
        if self._signed_in is None:
            result = self._run([self._mas, "account"])
            self._signed_in = result.ok and bool(result.stdout.strip())
            if not self._signed_in:
                logger.info("App Store account not available: %s", result.message)
        return self._signed_in

    def _ids(self) -> set[str]:
        if self._installed is None:
            result = self._run([self._mas, "list"])
            ids: set[str] = set()
            if result.ok:
                for line in result.stdout.splitlines():
                    parts = line.split()
                    if parts and parts[0].isdigit():
                        ids.add(parts[0])
            else:
                logger.warning("mas list failed: %s", result.message)
            self._installed = ids
        return self._installed

    def is_installed(self, spec: PackageSpec) -> bool:
        return _app_id(spec) in self._ids()

    def install(self, spec: PackageSpec) -> Receipt:
        app_id = _app_id(spec)
        result = self._run([self._mas, "install", app_id], timeout=INSTALL_TIMEOUT)
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id=app_id,
                error=result.message,
                duration_ms=result.elapsed_ms,
                metadata={"app": spec.name},
            )
        self._ids().add(app_id)
        return Receipt.success(
            provider=self.name,
            action_id=app_id,
            output=result.stdout.strip()[-2000:],
            duration_ms=result.elapsed_ms,
            metadata={"app": spec.name},
        )


def _app_id(spec: PackageSpec) -> str:
    if not spec.app_id:
        raise ProviderError(f"App Store app '{spec.name}' has no ID")
    return spec.app_id
