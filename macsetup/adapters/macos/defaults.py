"""
Defaults provider — macOS preference values via ``defaults``.

Reads with ``defaults read DOMAIN KEY`` (exit 1 when unset) and writes
with ``defaults write DOMAIN KEY -TYPE VALUE``. Domains given as an
absolute path (``/Library/Preferences/…``) are system-wide and are
written through ``sudo -n``.
"""

from __future__ import annotations

from macsetup.adapters.base import SettingsProvider
from macsetup.adapters.macos.processes import DOCK, FINDER, SYSTEM_UI, relaunch
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.desired import SettingSpec
from macsetup.core.models.receipt import Receipt


class DefaultsProvider(SettingsProvider):
    """Read and write preferences with the defaults CLI."""

    restart_processes = (FINDER, DOCK, SYSTEM_UI)

    def __init__(
        self,
        defaults: str = "defaults",
        killall: str = "killall",
        sudo: str = "sudo",
        runner: Runner = run_command,
    ):
        self._defaults = defaults
        self._killall = killall
        self._sudo = sudo
        self._run = runner

    @property
    def name(self) -> str:
        return "defaults"

    def current_value(self, spec: SettingSpec) -> str | None:
        result = self._run([self._defaults, "read", spec.domain, spec.key])
        if not result.ok:
            return None
        return result.stdout.strip()

    def apply_setting(self, spec: SettingSpec) -> Receipt:
        cmd = [self._defaults, "write", spec.domain, spec.key, f"-{spec.type}", format_value(spec)]
        result = self._run(cmd, sudo=self._sudo if spec.domain.startswith("/") else None)
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id=spec.label,
                error=result.message,
                duration_ms=result.elapsed_ms,
                metadata={"command": " ".join(cmd)},
            )
        return Receipt.success(
            provider=self.name,
            action_id=spec.label,
            duration_ms=result.elapsed_ms,
            metadata={"command": " ".join(cmd)},
        )

    def restart_ui(self) -> Receipt:
        return relaunch(
            self.restart_processes, provider=self.name, killall=self._killall, runner=self._run,
        )


def format_value(spec: SettingSpec) -> str:
    """Render a value the way ``defaults write`` expects it."""
    if spec.type == "bool":
        return "true" if spec.value else "false"
    if spec.type == "float":
        return repr(float(spec.value))
    return str(spec.value)
