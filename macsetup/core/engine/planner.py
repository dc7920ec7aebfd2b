"""
Plan builder — diff desired state against the machine.

Every request in the DesiredState becomes exactly one PlanAction, in
PLAN_ORDER and input order within a kind:

    capability missing / provider unusable → skip(capability-missing)
    provider says already done             → skip(already-satisfied)
    otherwise                              → pending

Nothing is dropped, so the report can explain why nothing happened to
an item. Action ids are unique per run; the desired state rejects two
requests that would share one. The privilege session is acquired once
up front whenever any pending action needs it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from macsetup.adapters.registry import ProviderRegistry
from macsetup.core.models.capabilities import KIND_CAPABILITY, Capabilities
from macsetup.core.models.desired import PLAN_ORDER, ActionKind, DesiredState
from macsetup.core.models.plan import (
    ALREADY_SATISFIED,
    CAPABILITY_MISSING,
    PlanAction,
    Subject,
)

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Ordered, annotated list of actions for one run."""

    operation_id: str = ""
    actions: list[PlanAction] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.actions)

    @property
    def pending(self) -> list[PlanAction]:
        return [a for a in self.actions if a.pending]

    @property
    def skipped(self) -> list[PlanAction]:
        return [a for a in self.actions if not a.pending]

    @property
    def needs_privilege(self) -> bool:
        """Whether any pending action requires the privilege session."""
        return any(a.pending and a.requires_privilege for a in self.actions)

    def of_kind(self, kind: ActionKind) -> list[PlanAction]:
        return [a for a in self.actions if a.kind == kind]

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "total": self.total,
            "pending": len(self.pending),
            "skipped": len(self.skipped),
            "actions": [
                {
                    "id": a.id,
                    "kind": str(a.kind),
                    "target": a.target,
                    "status": a.status,
                    "skip_reason": a.skip_reason,
                    "detail": a.detail,
                    "requires_privilege": a.requires_privilege,
                }
                for a in self.actions
            ],
        }


def requests_of(desired: DesiredState, kind: ActionKind) -> list[tuple[str, str, Subject | None]]:
    """(action id, label, subject) for every request of one kind, in input order."""
    if kind == ActionKind.PACKAGE_MANAGER:
        return [(f"{kind}:homebrew", "Homebrew", None)] if desired.install_homebrew else []
    if kind in (
        ActionKind.FORMULA,
        ActionKind.CASK,
        ActionKind.PRIVILEGED_CASK,
        ActionKind.APP_STORE,
        ActionKind.EDITOR_EXTENSION,
    ):
        return [(f"{kind}:{p.key}", p.install_target, p) for p in desired.packages_of(kind)]
    if kind == ActionKind.SETTING:
        return [(f"{kind}:{s.domain}:{s.key}", s.label, s) for s in desired.settings]
    if kind == ActionKind.DOCK:
        return [
            (f"{kind}:{d.key}", d.label, d)
            for d in desired.dock
        ]
    if kind == ActionKind.IDENTITY:
        if desired.identity is None:
            return []
        label = f"{desired.identity.name} <{desired.identity.email}>"
        return [(f"{kind}:git", label, desired.identity)]
    if kind == ActionKind.SHELL_EXPORT:
        return [(f"{kind}:{e.name}", e.line, e) for e in desired.shell_exports]
    if kind == ActionKind.SHELL_FRAMEWORK:
        return [(f"{kind}:oh-my-zsh", "oh-my-zsh", None)] if desired.oh_my_zsh else []
    return []


def build_plan(
    desired: DesiredState,
    capabilities: Capabilities,
    registry: ProviderRegistry,
    operation_id: str | None = None,
) -> Plan:
    """Build the ordered plan for a run.

    Args:
        desired: What the machine should look like.
        capabilities: Probed tools.
        registry: Providers used for satisfaction checks.
        operation_id: Identifier for the run (generated when omitted).

    Returns:
        Plan with one action per request.
    """
    plan = Plan(operation_id=operation_id or generate_operation_id())

    for kind in PLAN_ORDER:
        requests = requests_of(desired, kind)
        if not requests:
            continue

        gate = _capability_gate(kind, capabilities, registry)
        for action_id, target, subject in requests:
            action = PlanAction(id=action_id, kind=kind, target=target, subject=subject)
            if gate is not None:
                action = action.model_copy(
                    update={"status": "skip", "skip_reason": CAPABILITY_MISSING, "detail": gate}
                )
            elif registry.is_satisfied(action):
                action = action.model_copy(
                    update={"status": "skip", "skip_reason": ALREADY_SATISFIED}
                )
            plan.actions.append(action)

    logger.info(
        "Planned %d actions (%d pending, %d skipped)",
        plan.total, len(plan.pending), len(plan.skipped),
    )
    return plan


def _capability_gate(
    kind: ActionKind,
    capabilities: Capabilities,
    registry: ProviderRegistry,
) -> str | None:
    """Why actions of ``kind`` cannot run, or None when they can."""
    if not capabilities.supports(kind):
        return f"{KIND_CAPABILITY[kind]} tool not found"
    usable, reason = registry.is_usable(kind)
    if not usable:
        return reason
    return None


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
