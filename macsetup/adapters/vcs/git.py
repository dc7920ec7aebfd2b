"""
Git identity provider — global ``user.name`` / ``user.email``.

Uses the git CLI only. Setting an identity also turns on ``color.ui``.
"""

from __future__ import annotations

from macsetup.adapters.base import IdentityProvider
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.models.desired import Identity
from macsetup.core.models.receipt import Receipt


class GitIdentityProvider(IdentityProvider):
    """Configure the global git identity."""

    def __init__(self, git: str = "git", runner: Runner = run_command):
        self._git = git
        self._run = runner

    @property
    def name(self) -> str:
        return "git"

    def _get(self, key: str) -> str:
        result = self._run([self._git, "config", "--global", "--get", key])
        return result.stdout.strip() if result.ok else ""

    def current(self) -> Identity | None:
        name, email = self._get("user.name"), self._get("user.email")
        if not name or not email:
            return None
        return Identity(name=name, email=email)

    def set_identity(self, identity: Identity) -> Receipt:
        for key, value in (
            ("user.name", identity.name),
            ("user.email", identity.email),
            ("color.ui", "true"),
        ):
            result = self._run([self._git, "config", "--global", key, value])
            if not result.ok:
                return Receipt.failure(
                    provider=self.name,
                    action_id="identity",
                    error=f"git config {key}: {result.message}",
                )
        return Receipt.success(
            provider=self.name,
            action_id="identity",
            output=f"{identity.name} <{identity.email}>",
        )
