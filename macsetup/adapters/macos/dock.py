"""
Dock provider — Dock layout via ``dockutil``.

``dockutil --list`` prints tab-separated rows whose first field is the
entry label. Every change is made with ``--no-restart``; the Dock is
restarted once after the whole group.
"""

from __future__ import annotations

import logging

from macsetup.adapters.base import DockProvider
from macsetup.adapters.macos.processes import DOCK, relaunch
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.desired import DockAction
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)


class DockutilProvider(DockProvider):
    """Add, remove and replace Dock entries."""

    restart_processes = (DOCK,)

    def __init__(
        self,
        dockutil: str = "dockutil",
        killall: str = "killall",
        runner: Runner = run_command,
    ):
        self._dockutil = dockutil
        self._killall = killall
        self._run = runner
        self._entries: set[str] | None = None

    @property
    def name(self) -> str:
        return "dockutil"

    def current_entries(self) -> set[str]:
        if self._entries is None:
            result = self._run([self._dockutil, "--list"])
            entries: set[str] = set()
            if result.ok:
                for line in result.stdout.splitlines():
                    label = line.split("\t", 1)[0].strip()
                    if label:
                        entries.add(label)
            else:
                logger.warning("dockutil --list failed: %s", result.message)
            self._entries = entries
        return self._entries

    def apply_dock(self, dock_action: DockAction) -> Receipt:
        if dock_action.op == "add":
            cmd = [self._dockutil, "--add", dock_action.path]
        elif dock_action.op == "remove":
            cmd = [self._dockutil, "--remove", dock_action.name]
        else:
            cmd = [self._dockutil, "--add", dock_action.path, "--replacing", dock_action.name]
        cmd.append("--no-restart")

        result = self._run(cmd)
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id=dock_action.label,
                error=result.message,
                duration_ms=result.elapsed_ms,
                metadata={"command": " ".join(cmd)},
            )

        entries = self.current_entries()
        if dock_action.name and dock_action.op != "add":
            entries.discard(dock_action.name)
        if dock_action.added_label:
            entries.add(dock_action.added_label)
        return Receipt.success(
            provider=self.name,
            action_id=dock_action.label,
            duration_ms=result.elapsed_ms,
            metadata={"command": " ".join(cmd)},
        )

    def restart_ui(self) -> Receipt:
        return relaunch(
            self.restart_processes, provider=self.name, killall=self._killall, runner=self._run,
        )
