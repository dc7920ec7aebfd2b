"""
Desired state — what the workstation should look like after a run.

Built by the config loader from macsetup.yml. Every request the user
makes ends up in exactly one of these typed sequences; the plan builder
walks them in ``PLAN_ORDER`` and never looks at the raw YAML again.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import PurePosixPath
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class ActionKind(StrEnum):
    """Kinds of plannable work, declared in plan order."""

    PACKAGE_MANAGER = "package-manager"
    FORMULA = "formula"
    CASK = "cask"
    PRIVILEGED_CASK = "privileged-cask"
    APP_STORE = "app-store"
    EDITOR_EXTENSION = "editor-extension"
    SETTING = "setting"
    DOCK = "dock"
    IDENTITY = "identity"
    SHELL_EXPORT = "shell-export"
    SHELL_FRAMEWORK = "shell-framework"


# Declaration order of ActionKind is the plan order.
PLAN_ORDER: tuple[ActionKind, ...] = tuple(ActionKind)

PACKAGE_KINDS: frozenset[ActionKind] = frozenset({
    ActionKind.FORMULA,
    ActionKind.CASK,
    ActionKind.PRIVILEGED_CASK,
    ActionKind.APP_STORE,
    ActionKind.EDITOR_EXTENSION,
})

# Kinds that only run while the privilege session is active.
PRIVILEGED_KINDS: frozenset[ActionKind] = frozenset({
    ActionKind.PACKAGE_MANAGER,
    ActionKind.PRIVILEGED_CASK,
    ActionKind.SETTING,
    ActionKind.DOCK,
})

SettingType = Literal["string", "bool", "int", "float"]


class PackageSpec(BaseModel):
    """A single package request (formula, cask, App Store app, extension)."""

    name: str
    kind: ActionKind
    version: str | None = None
    app_id: str | None = None       # App Store numeric ID

    @property
    def key(self) -> str:
        """Identity of the package within its kind (``node@20`` and ``node`` differ)."""
        return self.app_id or self.install_target

    @property
    def install_target(self) -> str:
        """Name handed to the provider (``name@version`` when pinned)."""
        if self.version:
            return f"{self.name}@{self.version}"
        return self.name


class SettingSpec(BaseModel):
    """A ``defaults`` preference value."""

    domain: str
    key: str
    value: str | bool | int | float
    type: SettingType = "string"

    @property
    def setting_key(self) -> tuple[str, str]:
        return (self.domain, self.key)

    @property
    def label(self) -> str:
        return f"{self.domain} {self.key}"

    @model_validator(mode="after")
    def _check_value_type(self) -> SettingSpec:
        value = self.value
        if self.type == "bool":
            if not isinstance(value, bool):
                raise ValueError(f"{self.label}: expected a bool value, got {value!r}")
        elif self.type == "int":
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{self.label}: expected an int value, got {value!r}")
        elif self.type == "float":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{self.label}: expected a float value, got {value!r}")
            self.value = float(value)
        else:
            if isinstance(value, bool):
                raise ValueError(f"{self.label}: expected a string value, got {value!r}")
            self.value = str(value)
        return self


class DockAction(BaseModel):
    """One Dock change: add an app, remove an entry, or replace one with another."""

    op: Literal["add", "remove", "replace"]
    path: str | None = None         # app bundle path (add / replace)
    name: str | None = None         # existing entry label (remove / replace)

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().rstrip("/") or value.strip()

    @model_validator(mode="after")
    def _check_sides(self) -> DockAction:
        if self.op in ("add", "replace") and not self.path:
            raise ValueError(f"dock {self.op} requires an app path")
        if self.op in ("remove", "replace") and not self.name:
            raise ValueError(f"dock {self.op} requires an entry name")
        return self

    @property
    def added_label(self) -> str | None:
        """Dock label the added app will show up under."""
        if not self.path:
            return None
        return dock_label(self.path)

    @property
    def key(self) -> str:
        """Identity of the change: the app path for adds, the entry otherwise."""
        if self.op == "add":
            return f"add:{self.path}"
        return f"{self.op}:{self.name}"

    @property
    def label(self) -> str:
        if self.op == "add":
            return f"add {self.added_label}"
        if self.op == "remove":
            return f"remove {self.name}"
        return f"replace {self.name} with {self.added_label}"


def dock_label(path: str) -> str:
    """``/Applications/Safari.app`` → ``Safari``."""
    name = PurePosixPath(path.rstrip("/")).name
    return name.removesuffix(".app")


class Identity(BaseModel):
    """Version-control identity (git user.name / user.email)."""

    name: str
    email: str

    @field_validator("name", "email")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
        return value


EXPORT_NAME = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class ShellExport(BaseModel):
    """An ``export NAME="value"`` line in the shell profile.

    The value is double-quoted, so spaces survive and ``$VAR``
    references still expand when the profile is sourced.
    """

    name: str
    value: str

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        if not EXPORT_NAME.fullmatch(value):
            raise ValueError(f"invalid variable name {value!r}")
        return value

    @property
    def line(self) -> str:
        escaped = self.value.replace("\\", "\\\\").replace('"', '\\"')
        return f'export {self.name}="{escaped}"'

    def matches(self, line: str) -> bool:
        """Whether a profile line already exports this value.

        Unquoted lines written by hand count too when the value needs
        no quoting.
        """
        line = line.strip()
        if line == self.line:
            return True
        return (
            not any(c in self.value for c in " \t\"'\\")
            and line == f"export {self.name}={self.value}"
        )


class DesiredState(BaseModel):
    """Everything a run should make true, grouped by kind."""

    packages: list[PackageSpec] = Field(default_factory=list)
    settings: list[SettingSpec] = Field(default_factory=list)
    dock: list[DockAction] = Field(default_factory=list)
    identity: Identity | None = None
    shell_profile: str = "~/.zshrc"
    shell_exports: list[ShellExport] = Field(default_factory=list)
    oh_my_zsh: bool = False
    install_homebrew: bool = False

    @model_validator(mode="after")
    def _unique_requests(self) -> DesiredState:
        # Two requests with the same identity would plan the same action twice.
        ids = [f"{p.kind}:{p.key}" for p in self.packages]
        ids += [f"{ActionKind.SETTING}:{s.domain}:{s.key}" for s in self.settings]
        ids += [f"{ActionKind.DOCK}:{d.key}" for d in self.dock]
        ids += [f"{ActionKind.SHELL_EXPORT}:{e.name}" for e in self.shell_exports]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise ValueError(f"duplicate requests: {', '.join(dupes)}")
        return self

    def packages_of(self, kind: ActionKind) -> list[PackageSpec]:
        """Packages of one kind, in input order."""
        return [p for p in self.packages if p.kind == kind]

    @property
    def request_count(self) -> int:
        """Number of plan actions this state produces."""
        return (
            (1 if self.install_homebrew else 0)
            + len(self.packages)
            + len(self.settings)
            + len(self.dock)
            + (1 if self.identity else 0)
            + len(self.shell_exports)
            + (1 if self.oh_my_zsh else 0)
        )
