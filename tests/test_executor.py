"""
Tests for the action executor — isolation, privilege gating, dry run, interrupts.
"""

import time

import pytest

from macsetup.adapters.mock import MockPrivilegeBackend, mock_registry
from macsetup.core.engine.executor import execute_plan
from macsetup.core.engine.planner import build_plan
from macsetup.core.engine.report import EXIT_FAILED, EXIT_INTERRUPTED, EXIT_OK
from macsetup.core.models.capabilities import Capabilities
from macsetup.core.models.desired import (
    ActionKind,
    DesiredState,
    DockAction,
    PackageSpec,
    SettingSpec,
)
from macsetup.core.models.plan import (
    ALREADY_SATISFIED,
    DRY_RUN,
    INTERRUPTED,
    PRIVILEGE_UNAVAILABLE,
    PROVIDER_ERROR,
)
from macsetup.core.privilege.session import PrivilegeSession, SessionState


def _formulae(*names: str) -> DesiredState:
    return DesiredState(packages=[PackageSpec(name=n, kind=ActionKind.FORMULA) for n in names])


def _mixed() -> DesiredState:
    return DesiredState(
        packages=[
            PackageSpec(name="git", kind=ActionKind.FORMULA),
            PackageSpec(name="docker", kind=ActionKind.PRIVILEGED_CASK),
        ],
        settings=[SettingSpec(domain="com.apple.dock", key="autohide", value=True, type="bool")],
        dock=[DockAction(op="remove", name="Mail")],
    )


@pytest.fixture
def active_session():
    session = PrivilegeSession(MockPrivilegeBackend(), refresh_interval=3600)
    session.acquire("secret")
    yield session
    session.terminate()


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class TestExecutePlan:
    def test_scenario_all_succeed(self):
        registry, provider = mock_registry()
        caps = Capabilities(tools={"package_manager": "/opt/homebrew/bin/brew"})
        plan = build_plan(_formulae("git", "curl"), caps, registry)

        report = execute_plan(plan, registry)
        assert report.succeeded == 2
        assert report.exit_code == EXIT_OK
        assert [a.id for a in provider.call_log] == ["formula:git", "formula:curl"]

    def test_scenario_one_fails(self):
        registry, provider = mock_registry()
        provider.set_failure("formula:curl", error="Error: curl: no bottle available")
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry)
        assert report.outcome_of("formula:git").status == "succeeded"
        curl = report.outcome_of("formula:curl")
        assert str(curl) == "failed(provider-error)"
        assert "no bottle" in curl.detail
        assert report.exit_code == EXIT_FAILED
        assert report.status == "partial"

    def test_failure_does_not_stop_the_run(self):
        registry, provider = mock_registry()
        provider.set_failure("formula:a")
        provider.set_failure("formula:c")
        plan = build_plan(_formulae("a", "b", "c", "d"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry)
        assert provider.call_count == 4
        assert report.total == 4
        assert [e.outcome.status for e in report.entries] == ["failed", "succeeded", "failed", "succeeded"]

    def test_raising_provider_is_contained(self):
        registry, provider = mock_registry()
        provider.set_raises("formula:git", RuntimeError("kaboom"))
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry)
        git = report.outcome_of("formula:git")
        assert git.reason == PROVIDER_ERROR
        assert "kaboom" in git.detail
        assert report.outcome_of("formula:curl").status == "succeeded"

    def test_plan_skips_carried_over(self):
        registry, provider = mock_registry(satisfied={"formula:git"})
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry)
        assert report.outcome_of("formula:git").reason == ALREADY_SATISFIED
        assert [a.id for a in provider.call_log] == ["formula:curl"]
        assert report.exit_code == EXIT_OK

    def test_one_outcome_per_action_in_order(self, active_session):
        registry, _ = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, session=active_session)
        assert [e.action.id for e in report.entries] == [a.id for a in plan.actions]

    def test_on_outcome_callback(self):
        registry, _ = mock_registry()
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)
        seen = []

        execute_plan(plan, registry, on_outcome=lambda action, outcome: seen.append((action.id, outcome.status)))
        assert seen == [("formula:git", "succeeded"), ("formula:curl", "succeeded")]


class TestPrivilegeGating:
    def test_no_session(self):
        registry, provider = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, session=None)
        assert report.outcome_of("formula:git").status == "succeeded"
        for action_id in ("privileged-cask:docker", "setting:com.apple.dock:autohide", "dock:remove:Mail"):
            assert report.outcome_of(action_id).reason == PRIVILEGE_UNAVAILABLE
        assert [a.id for a in provider.call_log] == ["formula:git"]

    def test_active_session(self, active_session):
        registry, provider = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, session=active_session)
        assert report.all_ok
        assert provider.call_count == 4

    def test_expired_session(self):
        registry, provider = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)
        session = PrivilegeSession(MockPrivilegeBackend(refresh_results=[False]), refresh_interval=0.01)
        session.acquire("secret")
        try:
            assert _wait_for(lambda: session.state == SessionState.EXPIRED)
            report = execute_plan(plan, registry, session=session)
        finally:
            session.terminate()

        privileged = [e for e in report.entries if e.action.requires_privilege]
        assert len(privileged) == 3
        for entry in privileged:
            assert str(entry.outcome) == "failed(privilege-unavailable)"
            assert "expired" in entry.outcome.detail
        assert [a.id for a in provider.call_log] == ["formula:git"]

    def test_terminated_session(self, active_session):
        registry, provider = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)
        active_session.terminate()

        report = execute_plan(plan, registry, session=active_session)
        assert report.outcome_of("dock:remove:Mail").reason == PRIVILEGE_UNAVAILABLE


class TestDryRun:
    def test_never_calls_providers(self):
        registry, provider = mock_registry()
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, dry_run=True)
        assert provider.call_count == 0
        assert all(e.outcome.reason == DRY_RUN for e in report.entries)
        assert report.exit_code == EXIT_OK
        assert report.dry_run

    def test_plan_skips_keep_their_reason(self):
        registry, _ = mock_registry(satisfied={"formula:git"})
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, dry_run=True)
        assert report.outcome_of("formula:git").reason == ALREADY_SATISFIED
        assert report.outcome_of("formula:curl").reason == DRY_RUN


class TestInterrupt:
    def test_partial_report(self):
        registry, provider = mock_registry()
        provider.set_raises("formula:curl", KeyboardInterrupt())
        plan = build_plan(_formulae("git", "curl", "jq"), Capabilities.all_present(), registry)

        report = execute_plan(plan, registry)
        assert report.interrupted
        assert report.total == 3
        assert report.outcome_of("formula:git").status == "succeeded"
        assert report.outcome_of("formula:curl").reason == INTERRUPTED
        assert report.outcome_of("formula:jq").reason == INTERRUPTED
        assert report.exit_code == EXIT_INTERRUPTED
        assert report.status == "interrupted"

    def test_remaining_providers_not_called(self):
        registry, provider = mock_registry()
        provider.set_raises("formula:git", KeyboardInterrupt())
        plan = build_plan(_formulae("git", "curl"), Capabilities.all_present(), registry)

        execute_plan(plan, registry)
        assert [a.id for a in provider.call_log] == ["formula:git"]

    def test_only_unrecorded_actions_marked(self):
        registry, provider = mock_registry()
        provider.set_raises("formula:jq", KeyboardInterrupt())
        first = build_plan(_formulae("git"), Capabilities.all_present(), registry)
        report = execute_plan(first, registry)

        rest = build_plan(_formulae("curl", "jq", "wget"), Capabilities.all_present(), registry)
        execute_plan(rest, registry, report=report)
        assert report.interrupted
        assert [e.action.id for e in report.entries] == [
            "formula:git", "formula:curl", "formula:jq", "formula:wget",
        ]
        assert report.outcome_of("formula:git").status == "succeeded"
        assert report.outcome_of("formula:wget").reason == INTERRUPTED


class TestPhasedExecution:
    def test_appends_to_existing_report(self):
        registry, _ = mock_registry()
        first = build_plan(_formulae("git"), Capabilities.all_present(), registry)
        report = execute_plan(first, registry)

        second = build_plan(_formulae("curl"), Capabilities.all_present(), registry)
        assert execute_plan(second, registry, report=report) is report
        assert report.total == 2
        assert report.succeeded == 2
        assert report.exit_code == EXIT_OK


class TestRestartUI:
    def test_restart_after_successful_group(self, active_session):
        registry, provider = mock_registry(restart_processes=("Dock",))
        state = DesiredState(dock=[DockAction(op="remove", name="Mail"), DockAction(op="remove", name="Maps")])
        plan = build_plan(state, Capabilities.all_present(), registry)

        execute_plan(plan, registry, session=active_session)
        assert provider.restart_count == 1

    def test_no_restart_when_nothing_applied(self, active_session):
        registry, provider = mock_registry(restart_processes=("Dock",), satisfied={"dock:remove:Mail"})
        state = DesiredState(dock=[DockAction(op="remove", name="Mail")])
        plan = build_plan(state, Capabilities.all_present(), registry)

        execute_plan(plan, registry, session=active_session)
        assert provider.restart_count == 0

    def test_restart_failure_is_a_warning(self, active_session):
        registry, provider = mock_registry(restart_processes=("Dock",))
        provider.set_restart_failure("killall: permission denied")
        state = DesiredState(dock=[DockAction(op="remove", name="Mail")])
        plan = build_plan(state, Capabilities.all_present(), registry)

        report = execute_plan(plan, registry, session=active_session)
        assert report.all_ok
        assert len(report.warnings) == 1
        assert "permission denied" in report.warnings[0]

    def test_restart_once_per_group(self, active_session):
        registry, provider = mock_registry(restart_processes=("Dock",))
        plan = build_plan(_mixed(), Capabilities.all_present(), registry)

        execute_plan(plan, registry, session=active_session)
        # formula, privileged-cask, setting and dock groups
        assert provider.restart_count == 4
