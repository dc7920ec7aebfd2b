"""
Shell profile provider — exports in the login profile and Oh My Zsh.

Exports are appended as ``export NAME="value"`` lines, once. Re-running
with the same exports changes nothing. Oh My Zsh is installed with its
upstream unattended installer when ``~/.oh-my-zsh`` is missing.
"""

from __future__ import annotations

import logging
from pathlib import Path

from macsetup.adapters.base import Provider, ProviderError
from macsetup.adapters.shell.command import INSTALL_TIMEOUT, Runner, run_command
from macsetup.core.models.desired import ActionKind, ShellExport
from macsetup.core.models.plan import PlanAction
from macsetup.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

OH_MY_ZSH_INSTALLER = "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"


class ShellProfileProvider(Provider):
    """Manage profile exports and the zsh framework."""

    kinds = (ActionKind.SHELL_EXPORT, ActionKind.SHELL_FRAMEWORK)

    def __init__(
        self,
        profile: str | Path = "~/.zshrc",
        home: str | Path | None = None,
        curl: str = "curl",
        runner: Runner = run_command,
    ):
        self._home = Path(home).expanduser() if home else Path.home()
        self._profile = expand_home(profile, self._home)
        self._curl = curl
        self._run = runner

    @property
    def name(self) -> str:
        return "shell"

    @property
    def profile(self) -> Path:
        return self._profile

    def _lines(self) -> list[str]:
        try:
            return self._profile.read_text(encoding="utf-8").splitlines()
        except FileNotFoundError:
            return []

    def has_export(self, export: ShellExport) -> bool:
        return any(export.matches(line) for line in self._lines())

    def add_export(self, export: ShellExport) -> Receipt:
        try:
            append_line(self._profile, export.line)
        except OSError as e:
            return Receipt.failure(provider=self.name, action_id=export.name, error=str(e))
        logger.debug("Appended %s to %s", export.name, self._profile)
        return Receipt.success(provider=self.name, action_id=export.name, output=str(self._profile))

    def has_oh_my_zsh(self) -> bool:
        return (self._home / ".oh-my-zsh").is_dir()

    def install_oh_my_zsh(self) -> Receipt:
        download = self._run([self._curl, "-fsSL", OH_MY_ZSH_INSTALLER])
        if not download.ok:
            return Receipt.failure(
                provider=self.name,
                action_id="oh-my-zsh",
                error=f"download failed: {download.message}",
            )
        result = self._run(
            ["sh", "-s", "--", "--unattended"],
            input_text=download.stdout,
            timeout=INSTALL_TIMEOUT,
        )
        if not result.ok:
            return Receipt.failure(provider=self.name, action_id="oh-my-zsh", error=result.message)
        return Receipt.success(provider=self.name, action_id="oh-my-zsh", output=result.stdout.strip()[-2000:])

    def is_satisfied(self, action: PlanAction) -> bool:
        if action.kind == ActionKind.SHELL_FRAMEWORK:
            return self.has_oh_my_zsh()
        return self.has_export(_export(action))

    def apply(self, action: PlanAction) -> Receipt:
        if action.kind == ActionKind.SHELL_FRAMEWORK:
            return self.install_oh_my_zsh()
        return self.add_export(_export(action))


def expand_home(profile: str | Path, home: Path) -> Path:
    """Resolve a leading ``~/`` against ``home``."""
    text = str(profile)
    if text == "~" or text.startswith("~/"):
        return home / text[2:]
    return Path(text)


def _export(action: PlanAction) -> ShellExport:
    if not isinstance(action.subject, ShellExport):
        raise ProviderError(f"{action.id}: expected a ShellExport")
    return action.subject


def append_line(path: Path, line: str) -> None:
    """Append one line, starting a new line if the file lacks a final newline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    prefix = "" if not existing or existing.endswith("\n") else "\n"
    with path.open("a", encoding="utf-8") as f:
        f.write(f"{prefix}{line}\n")
