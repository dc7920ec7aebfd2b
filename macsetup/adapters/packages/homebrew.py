"""
Homebrew provider — formulae, casks and privileged casks.

Installed-package lists are read once per provider instance
(``brew list --formula -1`` / ``brew list --cask -1``) and updated as
installs succeed, so planning twenty packages costs two brew calls.

Privileged casks are installed exactly like regular casks: their
installers call sudo themselves and pick up the credential cached by
the privilege session. brew itself refuses to run as root.

On a fresh machine ``HomebrewInstaller`` installs brew itself with the
upstream unattended installer.
"""

from __future__ import annotations

import logging
import platform
from pathlib import Path

from macsetup.adapters.base import PackageProvider, Provider, ProviderError
from macsetup.adapters.shell.command import INSTALL_TIMEOUT, Runner, run_command
from macsetup.adapters.shell.profile import append_line, expand_home
from macsetup.core.models.desired import ActionKind, PackageSpec
from macsetup.core.models.plan import PlanAction
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

BREW_INSTALLER = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"


class HomebrewProvider(PackageProvider):
    """Install formulae and casks with brew."""

    kinds = (ActionKind.FORMULA, ActionKind.CASK, ActionKind.PRIVILEGED_CASK)

    def __init__(self, brew: str = "brew", runner: Runner = run_command):
        self._brew = brew
        self._run = runner
        self._installed: dict[str, set[str]] = {}

    @property
    def name(self) -> str:
        return "homebrew"

    def _listing(self, flavor: str) -> set[str]:
        if flavor not in self._installed:
            result = self._run([self._brew, "list", f"--{flavor}", "-1"])
            if result.ok:
                self._installed[flavor] = {
                    line.strip() for line in result.stdout.splitlines() if line.strip()
                }
            else:
                logger.warning("brew list --%s failed: %s", flavor, result.message)
                self._installed[flavor] = set()
        return self._installed[flavor]

    @staticmethod
    def _flavor(spec: PackageSpec) -> str:
        if spec.kind == ActionKind.FORMULA:
            return "formula"
        if spec.kind in (ActionKind.CASK, ActionKind.PRIVILEGED_CASK):
            return "cask"
        raise ProviderError(f"homebrew cannot handle {spec.kind} '{spec.name}'")

    def is_installed(self, spec: PackageSpec) -> bool:
        listing = self._listing(self._flavor(spec))
        return spec.install_target in listing

    def install(self, spec: PackageSpec) -> Receipt:
        flavor = self._flavor(spec)
        cmd = [self._brew, "install"]
        if flavor == "cask":
            cmd.append("--cask")
        cmd.append(spec.install_target)

        result = self._run(cmd, timeout=INSTALL_TIMEOUT)
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id=spec.install_target,
                error=result.message,
                duration_ms=result.elapsed_ms,
                metadata={"command": " ".join(cmd), "return_code": result.returncode},
            )

        self._listing(flavor).add(spec.install_target)
        return Receipt.success(
            provider=self.name,
            action_id=spec.install_target,
            output=result.stdout.strip()[-2000:],
            duration_ms=result.elapsed_ms,
            metadata={"command": " ".join(cmd)},
        )


def default_prefix() -> str:
    """Where the installer puts Homebrew on this machine."""
    return "/opt/homebrew" if platform.machine() == "arm64" else "/usr/local"


class HomebrewInstaller(Provider):
    """Install Homebrew itself when the probe found no brew.

    The upstream installer runs with ``NONINTERACTIVE=1`` and uses
    ``sudo -n``, so it needs the credential cached by the privilege
    session. Afterwards ``brew shellenv`` is added to the login profile
    and the formula index is refreshed.
    """

    kinds = (ActionKind.PACKAGE_MANAGER,)

    def __init__(
        self,
        brew: str | None = None,
        curl: str = "curl",
        prefix: str | None = None,
        login_profile: str | Path = "~/.zprofile",
        home: str | Path | None = None,
        runner: Runner = run_command,
    ):
        self._brew = brew
        self._curl = curl
        self._prefix = prefix or default_prefix()
        self._login_profile = expand_home(login_profile, Path(home).expanduser() if home else Path.home())
        self._run = runner

    @property
    def name(self) -> str:
        return "homebrew-installer"

    @property
    def brew(self) -> str:
        """The probed brew, or where the installer will put it."""
        return self._brew or f"{self._prefix}/bin/brew"

    def is_satisfied(self, action: PlanAction) -> bool:
        return self._brew is not None

    def apply(self, action: PlanAction) -> Receipt:
        download = self._run([self._curl, "-fsSL", BREW_INSTALLER])
        if not download.ok:
            return Receipt.failure(
                provider=self.name,
                action_id="homebrew",
                error=f"download failed: {download.message}",
            )

        result = self._run(
            ["/bin/bash", "-s"],
            input_text=download.stdout,
            env={"NONINTERACTIVE": "1"},
            timeout=INSTALL_TIMEOUT,
        )
        if not result.ok:
            return Receipt.failure(
                provider=self.name,
                action_id="homebrew",
                error=result.message,
                duration_ms=result.elapsed_ms,
            )

        brew = self.brew
        self._add_shellenv(brew)
        update = self._run([brew, "update"], timeout=INSTALL_TIMEOUT)
        if not update.ok:
            logger.warning("brew update failed: %s", update.message)

        self._brew = brew
        return Receipt.success(
            provider=self.name,
            action_id="homebrew",
            output=result.stdout.strip()[-2000:],
            duration_ms=result.elapsed_ms,
            metadata={"brew": brew, "updated": update.ok},
        )

    def _add_shellenv(self, brew: str) -> None:
        line = f'eval "$({brew} shellenv)"'
        try:
            existing = self._login_profile.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            existing = []
        if line in (entry.strip() for entry in existing):
            return
        try:
            append_line(self._login_profile, line)
        except OSError as e:
            logger.warning("Cannot add brew shellenv to %s: %s", self._login_profile, e)
