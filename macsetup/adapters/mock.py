"""
Mock providers — test doubles for every provider family.

Used by ``run --mock`` and the test suite to exercise planning and
execution without touching brew, mas, defaults or dockutil. Each mock
is configurable: which actions are already satisfied, which ones
fail, whether the provider is usable.
"""

from __future__ import annotations

from collections.abc import Iterable

from macsetup.adapters.base import PrivilegeBackend, Provider
from macsetup.adapters.registry import ProviderRegistry
from macsetup.core.models.desired import ActionKind
from macsetup.core.models.plan import PlanAction
from macsetup.core.models.receipt import Receipt


class MockProvider(Provider):
    """Universal mock provider.

    By default nothing is satisfied and every apply succeeds. Applied
    actions become satisfied, so a second plan over the same mock is
    all skips.
    """

    def __init__(
        self,
        kinds: Iterable[ActionKind] = tuple(ActionKind),
        provider_name: str = "mock",
        satisfied: Iterable[str] = (),
        usable: bool = True,
        unusable_reason: str = "mock provider unusable",
        restart_processes: tuple[str, ...] = (),
    ):
        self.kinds = tuple(kinds)
        self.restart_processes = restart_processes
        self._name = provider_name
        self._satisfied: set[str] = set(satisfied)
        self._usable = usable
        self._unusable_reason = unusable_reason
        self._failures: dict[str, str] = {}
        self._raises: dict[str, Exception] = {}
        self._restart_error: str | None = None
        self._call_log: list[PlanAction] = []
        self._check_log: list[PlanAction] = []
        self.restart_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[PlanAction]:
        """All actions this mock has applied, in order."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def check_log(self) -> list[PlanAction]:
        """All actions this mock was asked about."""
        return self._check_log

    def set_satisfied(self, action_id: str) -> None:
        self._satisfied.add(action_id)

    def set_failure(self, action_id: str, error: str = "Mock failure") -> None:
        """Configure a specific action to fail."""
        self._failures[action_id] = error

    def set_raises(self, action_id: str, exc: Exception) -> None:
        """Configure a specific action to raise from apply()."""
        self._raises[action_id] = exc

    def set_restart_failure(self, error: str = "Mock restart failure") -> None:
        self._restart_error = error

    def is_usable(self) -> tuple[bool, str]:
        return (True, "") if self._usable else (False, self._unusable_reason)

    def is_satisfied(self, action: PlanAction) -> bool:
        self._check_log.append(action)
        return action.id in self._satisfied

    def apply(self, action: PlanAction) -> Receipt:
        self._call_log.append(action)
        if action.id in self._raises:
            raise self._raises[action.id]
        if action.id in self._failures:
            return Receipt.failure(provider=self._name, action_id=action.id, error=self._failures[action.id])
        self._satisfied.add(action.id)
        return Receipt.success(
            provider=self._name,
            action_id=action.id,
            output="[mock] applied",
            metadata={"mock": True},
        )

    def restart_ui(self) -> Receipt:
        self.restart_count += 1
        if self._restart_error:
            return Receipt.failure(provider=self._name, action_id="restart-ui", error=self._restart_error)
        return Receipt.success(provider=self._name, action_id="restart-ui", metadata={"mock": True})

    def reset(self) -> None:
        """Clear logs, failures and satisfied state."""
        self._call_log.clear()
        self._check_log.clear()
        self._failures.clear()
        self._raises.clear()
        self._satisfied.clear()
        self.restart_count = 0


class MockPrivilegeBackend(PrivilegeBackend):
    """Privilege backend that accepts one credential.

    ``refresh_results`` is consumed one value per refresh; once empty,
    refresh keeps returning ``refresh_default``.
    """

    def __init__(
        self,
        credential: str = "secret",
        refresh_results: Iterable[bool] = (),
        refresh_default: bool = True,
    ):
        self._credential = credential
        self._refresh_results = list(refresh_results)
        self._refresh_default = refresh_default
        self.verify_calls = 0
        self.refresh_calls = 0

    def verify(self, credential: str) -> bool:
        self.verify_calls += 1
        return credential == self._credential

    def refresh(self) -> bool:
        self.refresh_calls += 1
        if self._refresh_results:
            return self._refresh_results.pop(0)
        return self._refresh_default


def mock_registry(**kwargs) -> tuple[ProviderRegistry, MockProvider]:
    """A registry whose every kind is served by one MockProvider."""
    provider = MockProvider(**kwargs)
    registry = ProviderRegistry()
    registry.register(provider)
    return registry, provider
