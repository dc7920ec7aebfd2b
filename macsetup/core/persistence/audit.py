"""
Run ledger — append-only provisioning history.

Every non-dry run writes one entry to an NDJSON (newline-delimited
JSON) file, by default ``~/.macsetup/audit.ndjson``. Entries are never
modified or deleted; ``macsetup history`` reads the tail.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from macsetup.core.engine.report import Report

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = "~/.macsetup"
DEFAULT_AUDIT_FILE = "audit.ndjson"
STATE_DIR_ENV = "MACSETUP_STATE_DIR"


class AuditEntry(BaseModel):
    """One ledger entry per provisioning run."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation_id: str = ""
    config_path: str = ""

    # Results
    status: str = ""               # ok, partial, failed, interrupted
    actions_total: int = 0
    actions_succeeded: int = 0
    actions_failed: int = 0
    actions_skipped: int = 0
    duration_ms: int = 0

    # Failed action ids with reasons
    errors: list[str] = Field(default_factory=list)

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_report(cls, report: Report, **kwargs: Any) -> AuditEntry:
        return cls(
            operation_id=report.operation_id,
            status=report.status,
            actions_total=report.total,
            actions_succeeded=report.succeeded,
            actions_failed=report.failed,
            actions_skipped=report.skipped,
            errors=[f"{e.action.id}: {e.outcome}" for e in report.failures()],
            **kwargs,
        )


def default_audit_path() -> Path:
    """Ledger location, honoring MACSETUP_STATE_DIR."""
    state_dir = os.environ.get(STATE_DIR_ENV) or DEFAULT_STATE_DIR
    return Path(state_dir).expanduser() / DEFAULT_AUDIT_FILE


class AuditWriter:
    """Append-only ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None):
        self._path = path if path is not None else default_audit_path()

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> bool:
        """Append an entry to the ledger.

        Returns:
            True when written. A ledger failure never fails the run.
        """
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Failed to write ledger entry: %s", e)
            return False
        logger.debug("Ledger entry written: %s", entry.operation_id)
        return True

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt ledger entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
