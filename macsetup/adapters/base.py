"""
Provider base — the contract between the engine and external tools.

The engine only talks to providers through these interfaces, never
directly to brew, mas, defaults or dockutil. Each provider family has
a typed interface (``is_installed``/``install``, ``current_value``/
``apply_setting`` …) plus the two generic hooks the planner and
executor use:

    is_satisfied(action)  →  bool      (read-only, never raises)
    apply(action)         →  Receipt   (failures captured, not raised)

To create a new provider:
    1. Subclass the family base (or Provider directly)
    2. Declare the action kinds it handles
    3. Register it in the ProviderRegistry
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from macsetup.core.models.desired import (
    ActionKind,
    DockAction,
    Identity,
    PackageSpec,
    SettingSpec,
)
from macsetup.core.models.plan import PlanAction
from macsetup.core.models.receipt import Receipt

_TRUE_STRINGS = frozenset({"1", "true", "yes"})
_FALSE_STRINGS = frozenset({"0", "false", "no"})


class ProviderError(Exception):
    """Raised by a provider that cannot complete a call at all.

    Ordinary tool failures are reported through a failed Receipt; this
    is for broken invariants (wrong subject type, missing executable).
    The registry converts it into a failed Receipt.
    """


class Provider(ABC):
    """Abstract base class for all providers."""

    #: Action kinds this provider handles.
    kinds: tuple[ActionKind, ...] = ()

    #: UI processes restarted after a group of successful applies.
    restart_processes: tuple[str, ...] = ()

    @property
    @abstractmethod
    def name(self) -> str:
        """The provider identifier (e.g., 'homebrew', 'defaults')."""

    @abstractmethod
    def is_satisfied(self, action: PlanAction) -> bool:
        """Whether the machine already matches the action's subject."""

    @abstractmethod
    def apply(self, action: PlanAction) -> Receipt:
        """Make the action's subject true. MUST NOT raise for tool failures."""

    def is_usable(self) -> tuple[bool, str]:
        """Whether the provider can act right now (e.g. signed in).

        Returns:
            (usable, reason). reason is empty when usable.
        """
        return True, ""

    def restart_ui(self) -> Receipt:
        """Restart UI processes so applied changes become visible."""
        return Receipt.skip(provider=self.name, action_id="restart-ui", reason="nothing to restart")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def _subject(action: PlanAction, expected: type) -> object:
    if not isinstance(action.subject, expected):
        raise ProviderError(
            f"{action.id}: expected a {expected.__name__}, "
            f"got {type(action.subject).__name__}"
        )
    return action.subject


# ── Packages ────────────────────────────────────────────────────


class PackageProvider(Provider):
    """Installs packages: ``is_installed(spec)`` / ``install(spec)``."""

    @abstractmethod
    def is_installed(self, spec: PackageSpec) -> bool:
        """Whether the package is already present."""

    @abstractmethod
    def install(self, spec: PackageSpec) -> Receipt:
        """Install the package."""

    def is_satisfied(self, action: PlanAction) -> bool:
        return self.is_installed(_subject(action, PackageSpec))

    def apply(self, action: PlanAction) -> Receipt:
        return self.install(_subject(action, PackageSpec))


class AppStoreProvider(PackageProvider):
    """Mac App Store installs; requires a signed-in account."""

    kinds = (ActionKind.APP_STORE,)

    @abstractmethod
    def is_signed_in(self) -> bool:
        """Whether an App Store account is signed in."""

    def is_usable(self) -> tuple[bool, str]:
        if self.is_signed_in():
            return True, ""
        return False, "not signed in to the App Store"


# ── Settings ────────────────────────────────────────────────────


class SettingsProvider(Provider):
    """Reads and writes preference values."""

    kinds = (ActionKind.SETTING,)

    @abstractmethod
    def current_value(self, spec: SettingSpec) -> str | None:
        """Current raw value of the setting, or None when unset."""

    @abstractmethod
    def apply_setting(self, spec: SettingSpec) -> Receipt:
        """Write the desired value."""

    def is_satisfied(self, action: PlanAction) -> bool:
        spec = _subject(action, SettingSpec)
        current = self.current_value(spec)
        return current is not None and setting_matches(spec, current)

    def apply(self, action: PlanAction) -> Receipt:
        return self.apply_setting(_subject(action, SettingSpec))


def setting_matches(spec: SettingSpec, current: str) -> bool:
    """Compare a raw ``defaults read`` value against the desired one."""
    current = current.strip()
    if spec.type == "bool":
        lowered = current.lower()
        if lowered in _TRUE_STRINGS:
            return spec.value is True
        if lowered in _FALSE_STRINGS:
            return spec.value is False
        return False
    if spec.type == "int":
        try:
            return int(current) == spec.value
        except ValueError:
            return False
    if spec.type == "float":
        try:
            return float(current) == float(spec.value)
        except ValueError:
            return False
    return current == spec.value


# ── Dock ────────────────────────────────────────────────────────


class DockProvider(Provider):
    """Manipulates Dock entries by label."""

    kinds = (ActionKind.DOCK,)

    @abstractmethod
    def current_entries(self) -> set[str]:
        """Labels currently in the Dock."""

    @abstractmethod
    def apply_dock(self, dock_action: DockAction) -> Receipt:
        """Perform one add / remove / replace."""

    def is_satisfied(self, action: PlanAction) -> bool:
        return dock_satisfied(_subject(action, DockAction), self.current_entries())

    def apply(self, action: PlanAction) -> Receipt:
        return self.apply_dock(_subject(action, DockAction))


def dock_satisfied(dock_action: DockAction, entries: set[str]) -> bool:
    """Whether the Dock already reflects the action."""
    if dock_action.op == "add":
        return dock_action.added_label in entries
    if dock_action.op == "remove":
        return dock_action.name not in entries
    return dock_action.added_label in entries and dock_action.name not in entries


# ── Identity ────────────────────────────────────────────────────


class IdentityProvider(Provider):
    """Version-control identity: ``current()`` / ``set_identity()``."""

    kinds = (ActionKind.IDENTITY,)

    @abstractmethod
    def current(self) -> Identity | None:
        """Configured identity, or None when incomplete."""

    @abstractmethod
    def set_identity(self, identity: Identity) -> Receipt:
        """Configure name and email."""

    def is_satisfied(self, action: PlanAction) -> bool:
        return self.current() == _subject(action, Identity)

    def apply(self, action: PlanAction) -> Receipt:
        return self.set_identity(_subject(action, Identity))


# ── Privilege ───────────────────────────────────────────────────


class PrivilegeBackend(ABC):
    """Grants and keeps alive elevated privileges."""

    @abstractmethod
    def verify(self, credential: str) -> bool:
        """Check the credential and open a grant. Never raises."""

    @abstractmethod
    def refresh(self) -> bool:
        """Extend the grant. False means it is gone."""
