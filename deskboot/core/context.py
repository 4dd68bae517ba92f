"""
Execution context — the run's single piece of shared mutable state.

One ExecutionContext is created per run and owned by the Orchestrator.
It is passed explicitly into every call that needs it (runner, steps,
predicates) and is never reachable through module-level globals.
Nothing here is persisted across runs: a fresh run relies on step
preconditions for idempotence, not on saved progress.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from deskboot.core.execution.backup import BackupManager
from deskboot.core.models.options import PlanOptions
from deskboot.core.models.run import LogEntry

# Entries mirrored here land in the per-run log file.
run_logger = logging.getLogger("deskboot.run")


@dataclass
class ExecutionContext:
    """Global run configuration, failure flag, log sink and backups."""

    options: PlanOptions
    backups: BackupManager
    log_path: Path | None = None

    log: list[LogEntry] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    build_dirs: list[Path] = field(default_factory=list)
    _failed: bool = field(default=False, repr=False)

    @classmethod
    def create(cls, options: PlanOptions, log_path: Path | None = None) -> ExecutionContext:
        """Build a context with a BackupManager rooted at ``options.backup_root``."""
        return cls(
            options=options,
            backups=BackupManager(options.backup_root, dry_run=options.dry_run),
            log_path=log_path,
        )

    # ── Failure flag (monotonic) ────────────────────────────────

    @property
    def failed(self) -> bool:
        return self._failed

    def mark_failed(self) -> None:
        self._failed = True

    # ── Convenience views of options ────────────────────────────

    @property
    def dry_run(self) -> bool:
        return self.options.dry_run

    @property
    def auto_yes(self) -> bool:
        return self.options.auto_yes

    # ── Log sink ────────────────────────────────────────────────

    def record(self, level: int | str, message: str) -> LogEntry:
        """Append a log entry and mirror it to the ``deskboot.run`` logger."""
        if isinstance(level, str):
            level_no = logging.getLevelName(level.upper())
            level_no = level_no if isinstance(level_no, int) else logging.INFO
        else:
            level_no = level
        entry = LogEntry(level=logging.getLevelName(level_no), message=message)
        self.log.append(entry)
        run_logger.log(level_no, message)
        return entry

    def info(self, message: str) -> LogEntry:
        return self.record(logging.INFO, message)

    def warn(self, message: str) -> LogEntry:
        """Record a warning that must be surfaced in the final summary."""
        self.warnings.append(message)
        return self.record(logging.WARNING, message)

    def error(self, message: str) -> LogEntry:
        return self.record(logging.ERROR, message)

    # ── Build directory tracking ────────────────────────────────

    def track_build_dir(self, path: Path) -> None:
        if path not in self.build_dirs:
            self.build_dirs.append(path)

    def untrack_build_dir(self, path: Path) -> None:
        if path in self.build_dirs:
            self.build_dirs.remove(path)
