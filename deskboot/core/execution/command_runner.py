"""
Command runner — the single place where provisioning commands are spawned.

Every external command a step runs goes through ``CommandRunner.execute``:
privilege escalation, environment, timeout, output capture, dry-run
simulation and logging are centralised here.

The runner never decides severity.  Failures are raised as
``CommandFailed`` / ``CommandTimedOut`` / ``CommandNotFound`` and the
caller (RetryPolicy, Step, Orchestrator) decides what they mean.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import time

from deskboot.core.errors import CommandFailed, CommandNotFound, CommandTimedOut
from deskboot.core.models.command import CommandResult, CommandSpec

logger = logging.getLogger(__name__)

# Keep logged output bounded; build logs can be megabytes.
_OUTPUT_TAIL = 2000

# Seconds between SIGTERM and SIGKILL when stopping a command.
_KILL_GRACE = 5.0


class CommandRunner:
    """Run CommandSpecs as subprocesses, or simulate them under dry-run.

    Args:
        default_timeout: Seconds before a command is killed, unless the
            call or the CommandSpec says otherwise.
    """

    def __init__(self, default_timeout: float = 600.0):
        self.default_timeout = default_timeout

    def execute(
        self,
        command: CommandSpec,
        ctx,
        timeout: float | None = None,
    ) -> CommandResult:
        """Execute ``command`` and return its result.

        Args:
            command: The structured command to run.
            ctx: The run's ExecutionContext (log sink + dry-run flag).
                Used for this call only, never stored.
            timeout: Per-call timeout override.

        Returns:
            CommandResult with exit status 0.  Under dry-run the result
            is synthetic (``simulated=True``) and no process is spawned.

        Raises:
            CommandTimedOut: The process exceeded the timeout (it is stopped,
                together with its process group where it has one).
            CommandFailed: The process exited with a non-zero status.
            CommandNotFound: The program could not be spawned.
        """
        if timeout is not None:
            limit = timeout
        elif command.timeout is not None:
            limit = command.timeout
        else:
            limit = self.default_timeout
        display = command.display()

        # ── Dry run: log, never spawn ──
        if ctx.dry_run:
            ctx.info(f"[dry-run] {display}")
            return CommandResult(argv=command.argv, simulated=True)

        ctx.info(f"$ {display}")
        argv = self._build_argv(command)
        env = dict(os.environ)
        env.update(command.env)
        own_group = self._own_process_group(command)

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=command.cwd,
                env=env,
                text=True,
                stdin=subprocess.PIPE if command.input_text is not None else None,
                stdout=subprocess.PIPE if command.capture else None,
                stderr=subprocess.PIPE if command.capture else None,
                process_group=0 if own_group else None,
            )
        except OSError as e:
            ctx.error(f"Cannot execute {display}: {e}")
            raise CommandNotFound(command.argv, str(e)) from e

        try:
            out, err = proc.communicate(input=command.input_text, timeout=limit)
        except subprocess.TimeoutExpired as e:
            _terminate(proc, own_group)
            ctx.error(f"Timed out after {limit:g}s: {display}")
            raise CommandTimedOut(command.argv, limit) from e
        except BaseException:
            # Interrupted mid-command: the process must not outlive the step
            _terminate(proc, own_group)
            raise

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = (out or "")[-_OUTPUT_TAIL:]
        stderr = (err or "")[-_OUTPUT_TAIL:]

        if stdout.strip():
            logger.debug("STDOUT %s", stdout.strip())
        if stderr.strip():
            logger.debug("STDERR %s", stderr.strip())

        if proc.returncode != 0:
            ctx.error(f"Exit {proc.returncode} after {elapsed_ms} ms: {display}")
            raise CommandFailed(command.argv, proc.returncode, stderr)

        ctx.record(logging.DEBUG, f"Exit 0 after {elapsed_ms} ms: {display}")
        return CommandResult(
            argv=command.argv,
            exit_status=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            duration_ms=elapsed_ms,
        )

    @staticmethod
    def _build_argv(command: CommandSpec) -> list[str]:
        argv = list(command.argv)
        if not command.privileged or os.geteuid() == 0:
            return argv
        # sudo resets the environment; pass overrides explicitly via env(1)
        if command.env:
            pairs = [f"{k}={v}" for k, v in sorted(command.env.items())]
            return ["sudo", "env", *pairs, *argv]
        return ["sudo", *argv]

    @staticmethod
    def _own_process_group(command: CommandSpec) -> bool:
        """Whether ``command`` runs in a process group of its own.

        A separate group lets a timeout or interrupt stop every
        descendant, not just the direct child.  Commands that may talk to
        the terminal (pass-through output, or sudo asking for a password)
        stay in the foreground group while stdin is a terminal, since a
        background group is stopped as soon as it reads the tty.
        """
        needs_terminal = not command.capture or (command.privileged and os.geteuid() != 0)
        return not (needs_terminal and os.isatty(0))


def _send(proc: subprocess.Popen, signum: int, own_group: bool) -> None:
    try:
        if own_group:
            os.killpg(proc.pid, signum)
        elif proc.poll() is None:
            # sudo relays SIGTERM to the command it runs
            proc.send_signal(signum)
    except (ProcessLookupError, PermissionError):
        pass


def _terminate(proc: subprocess.Popen, own_group: bool) -> None:
    """Stop ``proc`` (and its group): SIGTERM, a grace period, then SIGKILL."""
    _send(proc, signal.SIGTERM, own_group)
    try:
        proc.wait(timeout=_KILL_GRACE)
    except subprocess.TimeoutExpired:
        logger.debug("pid %d ignored SIGTERM, killing", proc.pid)
    _send(proc, signal.SIGKILL, own_group)
    for stream in (proc.stdin, proc.stdout, proc.stderr):
        if stream is not None:
            stream.close()
    proc.wait()
