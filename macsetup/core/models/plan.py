"""
Plan action and outcome models.

A PlanAction is one unit of requested work with its pre-execution
verdict (pending, or skipped with a reason). An ActionOutcome is what
actually happened to it. Actions are never mutated once planned; the
executor pairs each with an outcome in the report.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

from macsetup.core.models.desired import (
    PRIVILEGED_KINDS,
    ActionKind,
    DockAction,
    Identity,
    PackageSpec,
    SettingSpec,
    ShellExport,
)

# ── Outcome reasons ──────────────────────────────────────────────
ALREADY_SATISFIED = "already-satisfied"
CAPABILITY_MISSING = "capability-missing"
PRIVILEGE_UNAVAILABLE = "privilege-unavailable"
PROVIDER_ERROR = "provider-error"
DRY_RUN = "dry-run"
INTERRUPTED = "interrupted"

Subject = PackageSpec | SettingSpec | DockAction | Identity | ShellExport


class PlanAction(BaseModel):
    """A planned unit of work."""

    model_config = ConfigDict(frozen=True)

    id: str                             # e.g. "formula:git"
    kind: ActionKind
    target: str                         # human-readable label
    subject: Subject | None = None      # None for package-manager, shell-framework
    status: Literal["pending", "skip"] = "pending"
    skip_reason: str | None = None
    detail: str = ""

    @property
    def pending(self) -> bool:
        return self.status == "pending"

    @property
    def requires_privilege(self) -> bool:
        return self.kind in PRIVILEGED_KINDS


class ActionOutcome(BaseModel):
    """What happened to a plan action."""

    model_config = ConfigDict(frozen=True)

    status: Literal["succeeded", "skipped", "failed"]
    reason: str | None = None
    detail: str = ""

    @classmethod
    def succeeded(cls, detail: str = "") -> ActionOutcome:
        return cls(status="succeeded", detail=detail)

    @classmethod
    def skipped(cls, reason: str, detail: str = "") -> ActionOutcome:
        return cls(status="skipped", reason=reason, detail=detail)

    @classmethod
    def failed(cls, reason: str, detail: str = "") -> ActionOutcome:
        return cls(status="failed", reason=reason, detail=detail)

    def __str__(self) -> str:
        if self.reason:
            return f"{self.status}({self.reason})"
        return self.status
