"""
Capability probe — which external tools does this machine have?

Read-only: resolves each known tool's executable and records the
absolute path or None. Absence is a normal outcome, never an error;
downstream actions that need a missing tool are skipped, not failed.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Callable, Iterable

from macsetup.core.models.capabilities import TOOL_BINARIES, Capabilities

logger = logging.getLogger(__name__)

# Homebrew's default prefixes are often not on PATH during bootstrap.
EXTRA_SEARCH_PATHS: dict[str, tuple[str, ...]] = {
    "package_manager": ("/opt/homebrew/bin", "/usr/local/bin"),
    "app_store": ("/opt/homebrew/bin", "/usr/local/bin"),
    "dock": ("/opt/homebrew/bin", "/usr/local/bin"),
    "editor": (
        "/usr/local/bin",
        "/Applications/Visual Studio Code.app/Contents/Resources/app/bin",
    ),
}


def probe_capabilities(
    tools: dict[str, str] | None = None,
    which: Callable[[str], str | None] = shutil.which,
    extra_paths: dict[str, tuple[str, ...]] | None = None,
    is_executable: Callable[[str], bool] | None = None,
) -> Capabilities:
    """Look up every known tool and return the capability set.

    Args:
        tools: Capability name → binary name (default: TOOL_BINARIES).
        which: PATH lookup function.
        extra_paths: Fallback directories per capability.
        is_executable: Check for fallback candidates.

    Returns:
        Immutable Capabilities. Never raises.
    """
    tools = TOOL_BINARIES if tools is None else tools
    extra_paths = EXTRA_SEARCH_PATHS if extra_paths is None else extra_paths
    is_executable = is_executable or _is_executable

    found: dict[str, str | None] = {}
    for capability, binary in tools.items():
        try:
            path = which(binary) or _search(binary, extra_paths.get(capability, ()), is_executable)
        except Exception as e:
            logger.debug("Probe for %s (%s) failed: %s", capability, binary, e)
            path = None
        found[capability] = os.path.abspath(path) if path else None
        logger.debug("Capability %s: %s", capability, found[capability] or "absent")

    capabilities = Capabilities(tools=found)
    if capabilities.absent():
        logger.info("Missing tools: %s", ", ".join(capabilities.absent()))
    return capabilities


def _search(
    binary: str,
    directories: Iterable[str],
    is_executable: Callable[[str], bool],
) -> str | None:
    for directory in directories:
        candidate = os.path.join(directory, binary)
        if is_executable(candidate):
            return candidate
    return None


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)
