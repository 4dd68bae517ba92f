"""
Orchestrator — drives a Plan against an ExecutionContext.

Flow per step:
    precondition → (confirm) → snapshot mutated paths → action
    (through RetryPolicy when retryable) → postcondition → outcome

Fatal failure, a declined confirmation, or a signal all take the same
route: stop iterating, remove partial build trees, restore backups,
report ABORTED.  Package-manager effects are never rolled back; only
filesystem snapshots are restorable.

Execution is strictly sequential.  The Orchestrator is the only owner
of the ExecutionContext for the run's duration.
"""

from __future__ import annotations

import logging
import shutil
import signal
import threading
import time
from pathlib import Path
from typing import Callable

import click

from deskboot.core.context import ExecutionContext
from deskboot.core.engine.plan import Plan
from deskboot.core.engine.step import Predicate, Step
from deskboot.core.errors import (
    BackupFailed,
    DeskbootError,
    PathNotFound,
    PostconditionUnmet,
    RunInterrupted,
    UserCancelled,
)
from deskboot.core.execution.command_runner import CommandRunner
from deskboot.core.models.backup import BackupRecord
from deskboot.core.models.command import CommandSpec
from deskboot.core.models.run import (
    RunReport,
    RunStatus,
    StepOutcome,
    StepState,
)
from deskboot.core.reliability.retry import RetryPolicy

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]

_HANDLED_SIGNALS = tuple(
    s for s in (
        getattr(signal, "SIGINT", None),
        getattr(signal, "SIGTERM", None),
        getattr(signal, "SIGHUP", None),
    ) if s is not None
)


def prompt_confirm(question: str) -> bool:
    """Default confirmation: ask on the terminal, default *no*.

    No answer (closed stdin, Ctrl-D) counts as *no*.
    """
    try:
        return click.confirm(question, default=False)
    except click.Abort:
        return False


def sudo_restore(runner: CommandRunner, ctx: ExecutionContext) -> Callable[[BackupRecord], None]:
    """Restore callback for root-owned paths: copies back through sudo."""

    def restore(record: BackupRecord) -> None:
        source, backup = str(record.source_path), str(record.backup_path)
        if record.is_dir:
            runner.execute(CommandSpec.of("rm", "-rf", "--", source, privileged=True), ctx)
            runner.execute(CommandSpec.of("cp", "-a", "--", backup, source, privileged=True), ctx)
        else:
            runner.execute(
                CommandSpec.of("cp", "-a", "--remove-destination", "--", backup, source, privileged=True),
                ctx,
            )

    return restore


class Orchestrator:
    """Run a Plan step by step and roll back on fatal abort.

    Args:
        plan: The plan to execute.
        runner: Command runner (defaults to one using the plan's timeout).
        confirm: Callback asked for confirmable steps unless auto-yes.
        retry_policy: Policy for retryable steps (defaults from options).
        log_path: Path of the run's log file, named in the summary.
        handle_signals: Install SIGINT/SIGTERM/SIGHUP handlers during run().
    """

    def __init__(
        self,
        plan: Plan,
        *,
        runner: CommandRunner | None = None,
        confirm: Confirm | None = None,
        retry_policy: RetryPolicy | None = None,
        log_path: Path | None = None,
        handle_signals: bool = True,
    ):
        options = plan.options
        self.plan = plan
        self.runner = runner or CommandRunner(default_timeout=options.command_timeout)
        self.confirm = confirm or prompt_confirm
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=options.retry.attempts,
            initial_delay=options.retry.delay,
            increment=options.retry.increment,
        )
        self.log_path = log_path
        self.handle_signals = handle_signals
        self.context: ExecutionContext | None = None

        self._cleaning = False
        self._current_step: Step | None = None
        self._previous_handlers: dict[int, object] = {}

    # ── Public entry point ──────────────────────────────────────

    def run(self) -> RunReport:
        """Execute the plan and return its report (never raises for step errors)."""
        ctx = ExecutionContext.create(self.plan.options, log_path=self.log_path)
        self.context = ctx
        self._cleaning = False

        report = RunReport(
            dry_run=ctx.dry_run,
            log_path=str(self.log_path) if self.log_path else None,
            outcomes=[
                StepOutcome(name=s.name, criticality=s.criticality)
                for s in self.plan.steps
            ],
        )

        mode = "dry run" if ctx.dry_run else "run"
        ctx.info(f"Starting {mode}: {len(self.plan)} step(s), theme '{ctx.options.theme}'")

        self._install_signal_handlers()
        try:
            self._run_steps(ctx, report)
        except (UserCancelled, KeyboardInterrupt) as e:
            # Signal delivered between steps rather than inside one.
            if report.status != RunStatus.ABORTED:
                self._abort(ctx, report, self._current_step, str(e) or "Interrupted")
        finally:
            self._restore_signal_handlers()

        report.warnings = list(ctx.warnings)
        run_dir = ctx.backups.run_dir
        if run_dir is not None and run_dir.exists():
            report.backup_dir = str(run_dir)

        ctx.info(f"Run finished: {report.status.value}")
        if self.log_path:
            ctx.info(f"Full log: {self.log_path}")
        return report

    # ── Step loop ───────────────────────────────────────────────

    def _run_steps(self, ctx: ExecutionContext, report: RunReport) -> None:
        total = len(self.plan)
        advisory_failures = 0

        for index, (step, outcome) in enumerate(zip(self.plan.steps, report.outcomes), start=1):
            self._current_step = step
            try:
                self._run_step(step, ctx, outcome, index, total)
            except (UserCancelled, KeyboardInterrupt) as e:
                error = e if isinstance(e, UserCancelled) else RunInterrupted(signal.SIGINT, "SIGINT")
                outcome.state = StepState.FAILED
                outcome.error = str(error) or "Cancelled by user"
                ctx.error(f"[{step.name}] cancelled: {outcome.error}")
                self._abort(ctx, report, step, outcome.error)
                return
            except Exception as e:
                # Programming error inside a step: never let it skip rollback.
                logger.exception("Unexpected error in step '%s'", step.name)
                outcome.state = StepState.FAILED
                outcome.error = f"Unexpected error: {e}"
                self._abort(ctx, report, step, outcome.error)
                return

            if outcome.state != StepState.FAILED:
                continue

            if step.fatal:
                ctx.error(f"[{step.name}] fatal failure: {outcome.error}")
                self._abort(ctx, report, step, outcome.error or "step failed")
                return

            advisory_failures += 1
            ctx.warn(f"[{step.name}] advisory step failed, continuing: {outcome.error}")

        # ── Completed ──
        for leftover in ctx.build_dirs:
            ctx.warn(f"Partial build directory left in place: {leftover}")

        try:
            ctx.backups.write_manifest()
        except OSError as e:
            ctx.warn(f"Could not write backup manifest: {e}")

        if advisory_failures or ctx.warnings:
            report.status = RunStatus.COMPLETED_WITH_WARNINGS
        else:
            report.status = RunStatus.COMPLETED_CLEAN

        ctx.backups.discard_all()

    def _run_step(
        self,
        step: Step,
        ctx: ExecutionContext,
        outcome: StepOutcome,
        index: int,
        total: int,
    ) -> None:
        prefix = f"[{index}/{total}] {step.name}"

        # ── 1. Precondition ──
        if step.precondition is not None and self._evaluate(step, step.precondition, ctx, "precondition"):
            outcome.state = StepState.SKIPPED
            ctx.info(f"{prefix}: already present, skipping")
            return

        # ── 2. Confirmation ──
        if step.confirmable and not ctx.auto_yes:
            if not self.confirm(step.confirm or f"Run step '{step.name}'?"):
                raise UserCancelled(f"Declined confirmation for step '{step.name}'")

        outcome.state = StepState.RUNNING
        ctx.info(f"{prefix}: {step.description or 'running'}")
        start = time.monotonic()

        # ── 3. Backups + build dir tracking (before any mutation) ──
        self._snapshot(step, ctx)
        if step.workdir is not None and not (step.workdir.exists() or step.workdir.is_symlink()):
            ctx.track_build_dir(step.workdir)

        # ── 4. Action (+ retry) and 5. postcondition ──
        try:
            if step.retryable:
                result = self.retry_policy.run_with_retry(
                    lambda: step.action(ctx, self.runner), label=step.name,
                )
                outcome.attempts = result.attempts
            else:
                outcome.attempts = 1
                step.action(ctx, self.runner)

            if step.postcondition is not None and not ctx.dry_run:
                if not self._evaluate(step, step.postcondition, ctx, "postcondition"):
                    raise PostconditionUnmet(step.name, "expected effect is not present")
        except UserCancelled:
            raise
        except (DeskbootError, OSError) as e:
            outcome.state = StepState.FAILED
            outcome.error = str(e)
            outcome.attempts = max(outcome.attempts, getattr(e, "attempts", 1))
            ctx.error(f"{prefix}: failed — {e}")
        else:
            outcome.state = StepState.SUCCEEDED
            if step.workdir is not None:
                ctx.untrack_build_dir(step.workdir)
            ctx.info(f"{prefix}: done")
        finally:
            outcome.duration_ms = int((time.monotonic() - start) * 1000)

    @staticmethod
    def _evaluate(step: Step, predicate: Predicate, ctx: ExecutionContext, kind: str) -> bool:
        try:
            return bool(predicate(ctx))
        except (UserCancelled, KeyboardInterrupt):
            raise
        except Exception as e:
            ctx.warn(f"[{step.name}] {kind} check raised, treating as unmet: {e}")
            return False

    @staticmethod
    def _snapshot(step: Step, ctx: ExecutionContext) -> None:
        for path in step.mutates:
            try:
                record = ctx.backups.snapshot(path, privileged=step.is_privileged(path))
                ctx.record(logging.DEBUG, f"[{step.name}] snapshot {record.source_path} → {record.backup_path}")
            except PathNotFound:
                ctx.record(logging.DEBUG, f"[{step.name}] nothing to back up at {path}")
            except BackupFailed as e:
                ctx.warn(f"[{step.name}] BACKUP FAILED, proceeding without it: {e}")

    # ── Abort / cleanup path ────────────────────────────────────

    def _abort(
        self, ctx: ExecutionContext, report: RunReport, step: Step | None, error: str,
    ) -> None:
        ctx.mark_failed()
        report.status = RunStatus.ABORTED
        report.aborted_at = step.name if step else None
        report.error = error

        self._cleaning = True
        where = f"at step '{step.name}'" if step else "between steps"
        ctx.error(f"Aborting {where}; running cleanup")
        report.cleanup_errors = self._cleanup(ctx)
        self._cleaning = False

    def _cleanup(self, ctx: ExecutionContext) -> list[str]:
        """Best-effort rollback; errors are collected, never raised."""
        errors: list[str] = []

        # (a) partial source trees created by this run
        for build_dir in reversed(list(ctx.build_dirs)):
            if ctx.dry_run:
                ctx.info(f"[dry-run] Would remove partial build directory {build_dir}")
                continue
            try:
                if build_dir.exists():
                    shutil.rmtree(build_dir)
                ctx.info(f"Removed partial build directory {build_dir}")
                ctx.untrack_build_dir(build_dir)
            except OSError as e:
                msg = f"Could not remove {build_dir}: {e}"
                ctx.error(msg)
                errors.append(msg)

        # (b) restore snapshots
        try:
            ctx.backups.write_manifest()
        except OSError as e:
            msg = f"Could not write backup manifest: {e}"
            ctx.error(msg)
            errors.append(msg)

        for failure in ctx.backups.restore_all(privileged_restore=self._privileged_restore(ctx)):
            ctx.error(str(failure))
            errors.append(str(failure))

        # (c) point at the log
        if self.log_path:
            ctx.error(f"Run aborted. See the log for details: {self.log_path}")
        else:
            ctx.error("Run aborted.")
        return errors

    def _privileged_restore(self, ctx: ExecutionContext) -> Callable[[BackupRecord], None]:
        return sudo_restore(self.runner, ctx)

    # ── Signals ─────────────────────────────────────────────────

    def _install_signal_handlers(self) -> None:
        if not self.handle_signals or threading.current_thread() is not threading.main_thread():
            return
        for signum in _HANDLED_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _on_signal(self, signum: int, frame) -> None:
        name = signal.Signals(signum).name
        if self._cleaning:
            logger.warning("Received %s during cleanup; finishing cleanup first", name)
            return
        raise RunInterrupted(signum, name)


__all__ = ["Confirm", "Orchestrator", "prompt_confirm", "sudo_restore"]
