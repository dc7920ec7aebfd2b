"""
Report — per-action outcomes and the final summary.

Pure aggregation: the executor records one outcome per plan action, in
plan order, and the report answers "what happened" for the CLI and the
run ledger. Outcomes are append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from macsetup.core.models.plan import ActionOutcome, PlanAction

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class ReportEntry:
    action: PlanAction
    outcome: ActionOutcome


@dataclass
class Report:
    """Result of executing a plan."""

    operation_id: str = ""
    dry_run: bool = False
    interrupted: bool = False
    entries: list[ReportEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def record(self, action: PlanAction, outcome: ActionOutcome) -> None:
        """Attach an outcome to an action. Each action gets exactly one."""
        if any(e.action.id == action.id for e in self.entries):
            raise ValueError(f"Outcome already recorded for {action.id}")
        self.entries.append(ReportEntry(action=action, outcome=outcome))

    def outcome_of(self, action_id: str) -> ActionOutcome | None:
        for entry in self.entries:
            if entry.action.id == action_id:
                return entry.outcome
        return None

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def succeeded(self) -> int:
        return sum(1 for e in self.entries if e.outcome.status == "succeeded")

    @property
    def failed(self) -> int:
        return sum(1 for e in self.entries if e.outcome.status == "failed")

    @property
    def skipped(self) -> int:
        return sum(1 for e in self.entries if e.outcome.status == "skipped")

    def counts(self) -> dict[str, int]:
        """Counts per outcome kind, e.g. ``{"succeeded": 3, "skipped(already-satisfied)": 2}``."""
        result: dict[str, int] = {}
        for entry in self.entries:
            key = str(entry.outcome)
            result[key] = result.get(key, 0) + 1
        return result

    def failures(self) -> list[ReportEntry]:
        """Failed actions, in plan order."""
        return [e for e in self.entries if e.outcome.status == "failed"]

    def skips(self) -> list[ReportEntry]:
        """Skipped actions, in plan order."""
        return [e for e in self.entries if e.outcome.status == "skipped"]

    @property
    def all_ok(self) -> bool:
        return self.failed == 0 and not self.interrupted

    @property
    def status(self) -> str:
        if self.interrupted:
            return "interrupted"
        if self.failed == 0:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    @property
    def exit_code(self) -> int:
        if self.interrupted:
            return EXIT_INTERRUPTED
        return EXIT_OK if self.failed == 0 else EXIT_FAILED

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "dry_run": self.dry_run,
            "interrupted": self.interrupted,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "counts": self.counts(),
            "warnings": list(self.warnings),
            "outcomes": [
                {
                    "id": e.action.id,
                    "kind": str(e.action.kind),
                    "target": e.action.target,
                    "status": e.outcome.status,
                    "reason": e.outcome.reason,
                    "detail": e.outcome.detail,
                }
                for e in self.entries
            ],
        }
