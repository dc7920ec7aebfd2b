"""
Action executor — runs the plan, one action at a time, in order.

Flow per action:
    skip in plan        → skipped(reason), provider not consulted again
    dry run             → skipped(dry-run)
    privileged, no live session → failed(privilege-unavailable), provider not called
    provider receipt ok → succeeded
    provider receipt failed → failed(provider-error)

A failed action never stops the run; the next action is attempted.
After each kind group with at least one success, the owning provider
restarts its UI processes (Finder, Dock …). A Ctrl-C marks the
in-flight and remaining actions skipped(interrupted) and returns the
partial report.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from itertools import groupby

from macsetup.adapters.registry import ProviderRegistry
from macsetup.core.engine.planner import Plan
from macsetup.core.engine.report import Report
from macsetup.core.models.desired import ActionKind
from macsetup.core.models.plan import (
    DRY_RUN,
    INTERRUPTED,
    PRIVILEGE_UNAVAILABLE,
    PROVIDER_ERROR,
    ActionOutcome,
    PlanAction,
)
from macsetup.core.privilege.session import PrivilegeSession

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[PlanAction, ActionOutcome], None]

_MARKERS = {"succeeded": "✓", "failed": "✗", "skipped": "⊘"}


def execute_plan(
    plan: Plan,
    registry: ProviderRegistry,
    session: PrivilegeSession | None = None,
    dry_run: bool = False,
    on_outcome: OutcomeCallback | None = None,
    report: Report | None = None,
) -> Report:
    """Execute all actions in a plan through the provider registry.

    Args:
        plan: The plan to execute.
        registry: Provider registry for dispatch.
        session: Privilege session (referenced, not owned).
        dry_run: If True, record pending actions as skipped.
        on_outcome: Called after each outcome is recorded.
        report: Existing report to append to (a run executed in phases).

    Returns:
        Report with one outcome per plan action.
    """
    if report is None:
        report = Report(operation_id=plan.operation_id, dry_run=dry_run)

    def record(action: PlanAction, outcome: ActionOutcome) -> None:
        report.record(action, outcome)
        logger.info("%s %s → %s", _MARKERS[outcome.status], action.id, outcome)
        if on_outcome is not None:
            on_outcome(action, outcome)

    try:
        for kind, group in groupby(plan.actions, key=lambda a: a.kind):
            applied = 0
            for action in group:
                outcome = _execute_one(action, registry, session, dry_run)
                record(action, outcome)
                if outcome.status == "succeeded":
                    applied += 1
            if applied:
                _restart_ui(kind, registry, report)
    except KeyboardInterrupt:
        logger.warning("Interrupted, abandoning remaining actions")
        report.interrupted = True
        for action in plan.actions:
            if report.outcome_of(action.id) is None:
                record(action, ActionOutcome.skipped(INTERRUPTED))

    return report


def _execute_one(
    action: PlanAction,
    registry: ProviderRegistry,
    session: PrivilegeSession | None,
    dry_run: bool,
) -> ActionOutcome:
    if not action.pending:
        return ActionOutcome.skipped(action.skip_reason or "skipped", action.detail)

    if dry_run:
        return ActionOutcome.skipped(DRY_RUN)

    if action.requires_privilege and (session is None or not session.is_active):
        state = session.state if session is not None else "unacquired"
        return ActionOutcome.failed(PRIVILEGE_UNAVAILABLE, f"privilege session {state}")

    receipt = registry.execute(action)
    if receipt.ok:
        return ActionOutcome.succeeded(receipt.output[-500:])
    if receipt.failed:
        return ActionOutcome.failed(PROVIDER_ERROR, receipt.error or "")
    return ActionOutcome.skipped(receipt.output or "skipped by provider")


def _restart_ui(kind: ActionKind, registry: ProviderRegistry, report: Report) -> None:
    """Restart UI processes after a group; failures are warnings only."""
    receipt = registry.restart_ui(kind)
    if receipt is None:
        return
    if receipt.failed:
        message = f"UI restart after {kind} failed: {receipt.error}"
        logger.warning(message)
        report.warnings.append(message)
    else:
        logger.debug("Restarted UI after %s: %s", kind, receipt.output)
