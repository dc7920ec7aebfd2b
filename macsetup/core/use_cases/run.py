"""
Run use case — provision the machine from macsetup.yml.

This is the top-level orchestrator: it loads config, probes tools,
plans actions, opens the privilege session, executes, and records the
run in the ledger. The full vertical slice from YAML to report.

    load → probe → plan → acquire privilege → execute → ledger

When the plan installs Homebrew, execution happens in two phases: the
install runs first, then the machine is probed again and everything
after it is re-planned against the new tools.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from macsetup.adapters.base import PrivilegeBackend
from macsetup.adapters.mock import MockPrivilegeBackend, mock_registry
from macsetup.adapters.registry import ProviderRegistry
from macsetup.adapters.shell.command import Runner, run_command
from macsetup.core.config.loader import ConfigError, find_config_file, load_desired_state
from macsetup.core.engine.executor import OutcomeCallback, execute_plan
from macsetup.core.engine.planner import Plan, build_plan
from macsetup.core.engine.probe import probe_capabilities
from macsetup.core.engine.report import EXIT_FAILED, EXIT_INTERRUPTED, EXIT_OK, Report
from macsetup.core.models.capabilities import Capabilities
from macsetup.core.models.desired import ActionKind, DesiredState
from macsetup.core.models.plan import INTERRUPTED, ActionOutcome, PlanAction
from macsetup.core.persistence.audit import AuditEntry, AuditWriter
from macsetup.core.privilege.session import REFRESH_INTERVAL_S, PrivilegeError, PrivilegeSession

logger = logging.getLogger(__name__)

MOCK_CREDENTIAL = "mock"


@dataclass
class RunResult:
    """Result of a provisioning run (or of planning one)."""

    report: Report | None = None
    plan: Plan | None = None
    desired: DesiredState | None = None
    capabilities: Capabilities | None = None
    config_path: Path | None = None
    registry: ProviderRegistry | None = field(default=None, repr=False)
    ledger_written: bool = False
    interrupted: bool = False       # Ctrl-C before a plan existed
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.error:
            return EXIT_FAILED
        if self.report is not None:
            return self.report.exit_code
        return EXIT_OK

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            if self.interrupted:
                result["interrupted"] = True
            return result

        result["config_path"] = str(self.config_path) if self.config_path else None
        if self.capabilities:
            result["capabilities"] = self.capabilities.to_dict()
        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def build_registry(
    capabilities: Capabilities,
    shell_profile: str = "~/.zshrc",
    runner: Runner = run_command,
) -> ProviderRegistry:
    """Register the real providers, pointed at the probed executables."""
    from macsetup.adapters.macos.defaults import DefaultsProvider
    from macsetup.adapters.macos.dock import DockutilProvider
    from macsetup.adapters.packages.appstore import MasProvider
    from macsetup.adapters.packages.homebrew import HomebrewInstaller, HomebrewProvider
    from macsetup.adapters.packages.vscode import VSCodeExtensionProvider
    from macsetup.adapters.shell.profile import ShellProfileProvider
    from macsetup.adapters.vcs.git import GitIdentityProvider

    def tool(name: str, default: str) -> str:
        return capabilities.path(name) or default

    killall = tool("process_control", "killall")

    registry = ProviderRegistry()
    registry.register(HomebrewInstaller(
        brew=capabilities.path("package_manager"), curl=tool("downloader", "curl"), runner=runner,
    ))
    registry.register(HomebrewProvider(brew=tool("package_manager", "brew"), runner=runner))
    registry.register(MasProvider(mas=tool("app_store", "mas"), runner=runner))
    registry.register(VSCodeExtensionProvider(code=tool("editor", "code"), runner=runner))
    registry.register(DefaultsProvider(
        defaults=tool("settings", "defaults"), killall=killall, sudo=tool("privilege", "sudo"), runner=runner,
    ))
    registry.register(DockutilProvider(dockutil=tool("dock", "dockutil"), killall=killall, runner=runner))
    registry.register(GitIdentityProvider(git=tool("vcs", "git"), runner=runner))
    registry.register(ShellProfileProvider(profile=shell_profile, curl=tool("downloader", "curl"), runner=runner))
    return registry


def prepare_run(
    config_path: Path | None = None,
    mock_mode: bool = False,
    registry: ProviderRegistry | None = None,
    capabilities: Capabilities | None = None,
) -> RunResult:
    """Load, probe and plan. Everything short of executing.

    Args:
        config_path: Optional explicit path to macsetup.yml.
        mock_mode: Use mock providers and assume every tool is present.
        registry: Optional pre-configured provider registry.
        capabilities: Optional pre-probed capabilities.

    Returns:
        RunResult with desired state, capabilities and plan (or error).
    """
    result = RunResult()

    # ── Load config ──────────────────────────────────────────────
    try:
        if config_path is None:
            config_path = find_config_file()
        if config_path is None:
            result.error = "No macsetup.yml found."
            return result
        result.config_path = config_path
        desired = load_desired_state(config_path)
    except ConfigError as e:
        result.error = str(e)
        return result
    result.desired = desired

    # ── Probe ────────────────────────────────────────────────────
    if capabilities is None:
        capabilities = Capabilities.all_present() if mock_mode else probe_capabilities()
    result.capabilities = capabilities

    # ── Providers ────────────────────────────────────────────────
    if registry is None:
        if mock_mode:
            registry, _ = mock_registry()
        else:
            registry = build_registry(capabilities, shell_profile=desired.shell_profile)

    # ── Plan ─────────────────────────────────────────────────────
    result.plan = build_plan(desired, capabilities, registry)
    result.registry = registry
    return result


def run_provisioning(
    config_path: Path | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    no_sudo: bool = False,
    credential_prompt: Callable[[], str] | None = None,
    registry: ProviderRegistry | None = None,
    capabilities: Capabilities | None = None,
    privilege_backend: PrivilegeBackend | None = None,
    audit_writer: AuditWriter | None = None,
    on_outcome: OutcomeCallback | None = None,
    refresh_interval: float = REFRESH_INTERVAL_S,
    probe: Callable[[], Capabilities] | None = None,
) -> RunResult:
    """Provision the machine.

    Args:
        config_path: Optional explicit path to macsetup.yml.
        dry_run: Plan and report, change nothing.
        mock_mode: Use mock providers and a mock privilege backend.
        no_sudo: Never acquire privilege; privileged actions fail.
        credential_prompt: Asked once for the sudo password when the
            plan has pending privileged actions. None means run without
            privilege; privileged actions then fail. Raising
            KeyboardInterrupt abandons the whole plan.
        registry: Optional pre-configured provider registry.
        capabilities: Optional pre-probed capabilities.
        privilege_backend: Optional backend (default: sudo, or mock).
        audit_writer: Optional ledger writer (default: ~/.macsetup).
        on_outcome: Progress callback, called per recorded outcome.
        refresh_interval: Seconds between privilege refreshes.
        probe: Re-probes tools after Homebrew is installed
            (default: the real probe, or all tools present in mock mode).

    Returns:
        RunResult with plan and report. ``error`` is set for the fatal
        cases only: bad config, rejected credential, Ctrl-C while
        planning.
    """
    started = time.monotonic()
    injected_registry = registry is not None

    try:
        result = prepare_run(
            config_path=config_path,
            mock_mode=mock_mode,
            registry=registry,
            capabilities=capabilities,
        )
    except KeyboardInterrupt:
        logger.warning("Interrupted while planning")
        return RunResult(interrupted=True, error="Interrupted while planning")
    if result.error:
        return result

    plan = result.plan
    capabilities = result.capabilities
    registry = result.registry
    desired = result.desired
    assert plan is not None and capabilities is not None and registry is not None and desired is not None

    if no_sudo:
        credential_prompt = None
    elif mock_mode and credential_prompt is None:
        credential_prompt = lambda: MOCK_CREDENTIAL  # noqa: E731

    if probe is None:
        probe = Capabilities.all_present if mock_mode else probe_capabilities

    def replan() -> tuple[ProviderRegistry, Plan]:
        caps = probe()
        reg = result.registry
        if not (injected_registry or mock_mode):
            reg = build_registry(caps, shell_profile=desired.shell_profile)
        result.capabilities, result.registry = caps, reg
        return reg, build_plan(desired, caps, reg, operation_id=plan.operation_id)

    report = Report(operation_id=plan.operation_id, dry_run=dry_run)
    result.report = report
    session: PrivilegeSession | None = None
    try:
        # ── Privilege (once, up front) ───────────────────────────
        if plan.needs_privilege and not dry_run and credential_prompt is not None:
            backend = privilege_backend or _default_backend(capabilities, mock_mode)
            if backend is None:
                logger.warning("sudo not found, privileged actions will fail")
            else:
                credential = credential_prompt()
                session = PrivilegeSession(backend, refresh_interval=refresh_interval)
                session.acquire(credential)

        # ── Execute ──────────────────────────────────────────────
        result.plan = _execute(plan, registry, session, report, dry_run, on_outcome, replan)

    except KeyboardInterrupt:
        logger.warning("Interrupted before execution, abandoning the plan")
        _abandon(plan.actions, report, on_outcome)

    except PrivilegeError as e:
        result.report = None
        result.error = str(e)
        return result

    finally:
        if session is not None:
            session.terminate()

    # ── Ledger ───────────────────────────────────────────────────
    if not dry_run:
        writer = audit_writer or AuditWriter()
        entry = AuditEntry.from_report(
            report,
            config_path=str(result.config_path),
            duration_ms=int((time.monotonic() - started) * 1000),
            context={"mock": mock_mode},
        )
        result.ledger_written = writer.write(entry)

    return result


def _execute(
    plan: Plan,
    registry: ProviderRegistry,
    session: PrivilegeSession | None,
    report: Report,
    dry_run: bool,
    on_outcome: OutcomeCallback | None,
    replan: Callable[[], tuple[ProviderRegistry, Plan]],
) -> Plan:
    """Execute ``plan`` into ``report``, bootstrapping Homebrew first.

    Returns the plan that was actually executed: after a successful
    bootstrap, the re-planned actions replace the original ones.
    """
    bootstrap = [a for a in plan.of_kind(ActionKind.PACKAGE_MANAGER) if a.pending]
    if bootstrap and not dry_run:
        execute_plan(
            Plan(operation_id=plan.operation_id, actions=bootstrap),
            registry,
            session=session,
            on_outcome=on_outcome,
            report=report,
        )
        if report.interrupted:
            _abandon(plan.actions, report, on_outcome)
            return plan
        outcome = report.outcome_of(bootstrap[0].id)
        if outcome is not None and outcome.status == "succeeded":
            logger.info("Homebrew installed, re-planning against the new tools")
            registry, replanned = replan()
            plan = Plan(
                operation_id=plan.operation_id,
                actions=bootstrap + [a for a in replanned.actions if a.kind != ActionKind.PACKAGE_MANAGER],
            )

    remaining = [a for a in plan.actions if report.outcome_of(a.id) is None]
    execute_plan(
        Plan(operation_id=plan.operation_id, actions=remaining),
        registry,
        session=session,
        dry_run=dry_run,
        on_outcome=on_outcome,
        report=report,
    )
    return plan


def _abandon(actions: list[PlanAction], report: Report, on_outcome: OutcomeCallback | None) -> None:
    report.interrupted = True
    for action in actions:
        if report.outcome_of(action.id) is None:
            outcome = ActionOutcome.skipped(INTERRUPTED)
            report.record(action, outcome)
            if on_outcome is not None:
                on_outcome(action, outcome)


def _default_backend(capabilities: Capabilities, mock_mode: bool) -> PrivilegeBackend | None:
    if mock_mode:
        return MockPrivilegeBackend(credential=MOCK_CREDENTIAL)
    sudo = capabilities.path("privilege")
    if sudo is None:
        return None
    from macsetup.adapters.privilege.sudo import SudoBackend

    return SudoBackend(sudo=sudo)
