"""
Mount share use case — connect an SMB network share.

The password travels only inside the ``smb://`` URL handed to
``open``. It is never logged and never part of the result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from macsetup.adapters.network.smb import SmbShare, build_smb_url, mount_point, redacted_url

logger = logging.getLogger(__name__)

MOUNT_WAIT_S = 3.0


@dataclass
class MountResult:
    """Result of a share mount attempt."""

    mounted: bool = False
    mount_point: str = ""
    url: str = ""                  # redacted
    error: str | None = None
    warning: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        result: dict = {
            "ok": self.ok,
            "mounted": self.mounted,
            "mount_point": self.mount_point,
            "url": self.url,
        }
        if self.error:
            result["error"] = self.error
        if self.warning:
            result["warning"] = self.warning
        return result


def mount_share(
    server: str,
    username: str,
    password: str,
    share: str,
    smb: SmbShare | None = None,
    wait_seconds: float = MOUNT_WAIT_S,
    sleep: Callable[[float], None] | None = None,
) -> MountResult:
    """Mount ``smb://server/share`` and verify it shows up under /Volumes.

    Args:
        server: Host name or address of the file server.
        username: Account on the server.
        password: Account password (URL-quoted, never logged).
        share: Share name; mounted at ``/Volumes/<share>``.
        smb: SMB adapter (default: real ping/open/mount).
        wait_seconds: Pause between ``open`` and verification.
        sleep: Pause function (default: time.sleep).

    Returns:
        MountResult. An unverified mount is a warning, not an error.
    """
    fields = {"server": server, "username": username, "password": password, "share": share}
    missing = [name for name, value in fields.items() if not (value or "").strip()]
    if missing:
        return MountResult(error=f"Missing required field(s): {', '.join(missing)}")

    smb = smb or SmbShare()
    result = MountResult(mount_point=mount_point(share), url=redacted_url(server, username, share))

    if not smb.reachable(server):
        result.error = f"Server {server} is not reachable"
        return result

    logger.info("Opening %s", result.url)
    opened, message = smb.open(build_smb_url(server, username, password, share), result.url)
    if not opened:
        result.error = f"Failed to open share: {message}"
        return result

    if wait_seconds > 0:
        (sleep or time.sleep)(wait_seconds)

    if smb.is_mounted(share):
        result.mounted = True
        logger.info("Mounted %s at %s", result.url, result.mount_point)
    else:
        result.warning = f"{result.mount_point} not found in mount list; check Finder"
        logger.warning(result.warning)

    return result
