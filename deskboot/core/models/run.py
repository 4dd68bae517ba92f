"""
Run models — step states, log entries, outcomes and the run report.

The RunReport is the single document describing how a provisioning
run ended.  The CLI derives its exit code and summary from it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Criticality(StrEnum):
    """Whether a step's failure aborts the whole plan."""

    FATAL = "fatal"
    ADVISORY = "advisory"


class StepState(StrEnum):
    """Per-step state machine.

    PENDING → SKIPPED                 (precondition already satisfied)
    PENDING → RUNNING → SUCCEEDED
    PENDING → RUNNING → FAILED
    """

    PENDING = "pending"
    SKIPPED = "skipped"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RunStatus(StrEnum):
    """Terminal state of a whole plan."""

    COMPLETED_CLEAN = "completed_clean"
    COMPLETED_WITH_WARNINGS = "completed_with_warnings"
    ABORTED = "aborted"


class LogEntry(BaseModel):
    """One line of the run's append-only log."""

    timestamp: str = Field(default_factory=_now_iso)
    level: str = "INFO"
    message: str = ""


class StepOutcome(BaseModel):
    """What happened to one step."""

    name: str
    state: StepState = StepState.PENDING
    criticality: Criticality = Criticality.FATAL
    attempts: int = 0
    error: str | None = None
    duration_ms: int = 0


class RunReport(BaseModel):
    """Result of executing a plan."""

    status: RunStatus = RunStatus.COMPLETED_CLEAN
    outcomes: list[StepOutcome] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    log_path: str | None = None
    backup_dir: str | None = None
    aborted_at: str | None = None
    error: str | None = None
    cleanup_errors: list[str] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def exit_code(self) -> int:
        return 1 if self.status == RunStatus.ABORTED else 0

    def outcome(self, name: str) -> StepOutcome | None:
        for o in self.outcomes:
            if o.name == name:
                return o
        return None

    def count(self, state: StepState) -> int:
        return sum(1 for o in self.outcomes if o.state == state)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["exit_code"] = self.exit_code
        return data
