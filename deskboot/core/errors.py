"""
Error taxonomy for provisioning runs.

The engine uses exceptions for control flow between the runner, the
retry policy, the steps and the orchestrator.  Severity is never
decided here: a Step's declared criticality decides whether an error
aborts the run or is recorded as a warning.

    DeskbootError
    ├── ConfigError
    ├── PlanError
    ├── PreconditionUnmet
    ├── PostconditionUnmet
    ├── CommandError
    │   ├── CommandFailed
    │   ├── CommandTimedOut
    │   └── CommandNotFound
    ├── UserCancelled
    │   └── RunInterrupted
    └── BackupError
        ├── PathNotFound
        ├── BackupFailed
        └── RestoreFailed
"""

from __future__ import annotations

from typing import Sequence


class DeskbootError(Exception):
    """Base class for every error raised by deskboot."""


class ConfigError(DeskbootError):
    """Raised when the configuration file is invalid or missing."""


class PlanError(DeskbootError):
    """Raised when a Plan is malformed (e.g. duplicate step names)."""


class PreconditionUnmet(DeskbootError):
    """A step's precondition is not satisfied (benign: the step runs)."""


class PostconditionUnmet(DeskbootError):
    """The action exited cleanly but did not achieve its effect."""

    def __init__(self, step: str, detail: str = ""):
        self.step = step
        self.detail = detail
        msg = f"Postcondition not met for step '{step}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


# ── Command errors ──────────────────────────────────────────────


class CommandError(DeskbootError):
    """Base class for failures of an external command."""

    def __init__(self, message: str, argv: Sequence[str] = ()):
        self.argv = tuple(argv)
        self.attempts = 1
        super().__init__(message)


class CommandFailed(CommandError):
    """The command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], exit_code: int, stderr: str = ""):
        self.exit_code = exit_code
        self.stderr = stderr
        message = f"Command failed (exit {exit_code}): {' '.join(argv)}"
        tail = stderr.strip().splitlines()[-1:] if stderr else []
        if tail:
            message = f"{message} — {tail[0]}"
        super().__init__(message, argv)


class CommandTimedOut(CommandError):
    """The command exceeded its timeout and was killed."""

    def __init__(self, argv: Sequence[str], timeout: float):
        self.timeout = timeout
        super().__init__(f"Command timed out ({timeout:g}s): {' '.join(argv)}", argv)


class CommandNotFound(CommandError):
    """The program could not be spawned at all (deterministic, never retried)."""

    def __init__(self, argv: Sequence[str], reason: str = ""):
        program = argv[0] if argv else "?"
        message = f"Cannot execute '{program}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, argv)


# ── Cancellation ────────────────────────────────────────────────


class UserCancelled(DeskbootError):
    """The user declined a confirmation prompt."""


class RunInterrupted(UserCancelled):
    """A signal (SIGINT/SIGTERM/SIGHUP) interrupted the run."""

    def __init__(self, signum: int, signame: str = ""):
        self.signum = signum
        super().__init__(f"Interrupted by {signame or f'signal {signum}'}")


# ── Backups ─────────────────────────────────────────────────────


class BackupError(DeskbootError):
    """Base class for snapshot/restore errors."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message)


class PathNotFound(BackupError):
    """The path to snapshot does not exist; nothing was recorded."""

    def __init__(self, path: str):
        super().__init__(f"Nothing to back up, path does not exist: {path}", path)


class BackupFailed(BackupError):
    """Copying a path into the backup directory failed."""


class RestoreFailed(BackupError):
    """Copying a backup back over its source failed."""
