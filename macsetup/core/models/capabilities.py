"""
Capabilities — which external tools this machine has.

Produced once per run by the capability probe and never changed
afterwards. A capability is either an absolute executable path or None.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from macsetup.core.models.desired import ActionKind

# Capability name → executable looked up on PATH.
TOOL_BINARIES: dict[str, str] = {
    "package_manager": "brew",
    "app_store": "mas",
    "editor": "code",
    "dock": "dockutil",
    "settings": "defaults",
    "vcs": "git",
    "privilege": "sudo",
    "process_control": "killall",
    "downloader": "curl",
}

# Capability each action kind needs. Kinds not listed need none.
KIND_CAPABILITY: dict[ActionKind, str] = {
    ActionKind.PACKAGE_MANAGER: "downloader",
    ActionKind.FORMULA: "package_manager",
    ActionKind.CASK: "package_manager",
    ActionKind.PRIVILEGED_CASK: "package_manager",
    ActionKind.APP_STORE: "app_store",
    ActionKind.EDITOR_EXTENSION: "editor",
    ActionKind.SETTING: "settings",
    ActionKind.DOCK: "dock",
    ActionKind.IDENTITY: "vcs",
    ActionKind.SHELL_FRAMEWORK: "downloader",
}


class Capabilities(BaseModel):
    """Immutable map of capability name → executable path (None = absent)."""

    model_config = ConfigDict(frozen=True)

    tools: dict[str, str | None] = Field(default_factory=dict)

    def has(self, name: str) -> bool:
        return self.tools.get(name) is not None

    def path(self, name: str) -> str | None:
        return self.tools.get(name)

    def present(self) -> list[str]:
        return sorted(n for n, p in self.tools.items() if p is not None)

    def absent(self) -> list[str]:
        return sorted(n for n, p in self.tools.items() if p is None)

    def supports(self, kind: ActionKind) -> bool:
        """Whether actions of ``kind`` can run on this machine."""
        required = KIND_CAPABILITY.get(kind)
        return required is None or self.has(required)

    @classmethod
    def all_present(cls) -> Capabilities:
        """Every known tool present at its bare name, for mock runs."""
        return cls(tools={name: binary for name, binary in TOOL_BINARIES.items()})

    def to_dict(self) -> dict:
        return {"present": self.present(), "absent": self.absent(), "tools": dict(self.tools)}
