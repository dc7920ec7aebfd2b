"""
UI process restarts — ``killall`` so launchd relaunches them with new prefs.
"""

from __future__ import annotations

import logging

from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

FINDER = "Finder"
DOCK = "Dock"
SYSTEM_UI = "SystemUIServer"


def relaunch(
    names: tuple[str, ...],
    provider: str,
    killall: str = "killall",
    runner: Runner = run_command,
) -> Receipt:
    """Send each named process a kill; launchd brings it back.

    A process that is not running is not an error.
    """
    restarted: list[str] = []
    errors: list[str] = []

    for name in names:
        result = runner([killall, name])
        if result.ok:
            restarted.append(name)
        elif "no matching processes" in result.stderr.lower():
            logger.debug("%s not running, nothing to restart", name)
        else:
            errors.append(f"{name}: {result.message}")

    if errors:
        return Receipt.failure(
            provider=provider,
            action_id="restart-ui",
            error="; ".join(errors),
            metadata={"restarted": restarted},
        )
    return Receipt.success(
        provider=provider,
        action_id="restart-ui",
        output=", ".join(restarted),
        metadata={"restarted": restarted},
    )
