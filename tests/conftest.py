"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import pytest

from deskboot.core.context import ExecutionContext
from deskboot.core.errors import CommandFailed
from deskboot.core.models.command import CommandResult, CommandSpec
from deskboot.core.models.options import PlanOptions, RetrySettings


class RecordingRunner:
    """Test double for CommandRunner.

    Records every command it receives and never spawns a process.  By
    default every command succeeds; ``fail()`` makes commands whose
    display text contains a substring exit non-zero, and ``on()``
    attaches a side effect to run when a matching command succeeds.
    """

    def __init__(self):
        self.calls: list[CommandSpec] = []
        self._failures: dict[str, int | None] = {}
        self._effects: list[tuple[str, Callable[[CommandSpec], None]]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def displays(self) -> list[str]:
        return [c.display() for c in self.calls]

    def fail(self, match: str, times: int | None = None, exit_code: int = 1) -> None:
        """Fail matching commands ``times`` times (None = always)."""
        self._failures[match] = times
        self._exit_code = exit_code

    def on(self, match: str, effect: Callable[[CommandSpec], None]) -> None:
        self._effects.append((match, effect))

    def execute(self, command: CommandSpec, ctx, timeout: float | None = None) -> CommandResult:
        self.calls.append(command)
        display = command.display()
        ctx.info(f"$ {display}")

        for match, remaining in list(self._failures.items()):
            if match not in display:
                continue
            if remaining is None or remaining > 0:
                if remaining is not None:
                    self._failures[match] = remaining - 1
                raise CommandFailed(command.argv, self._exit_code, "mock failure")

        for match, effect in self._effects:
            if match in display:
                effect(command)

        return CommandResult(argv=command.argv, simulated=ctx.dry_run)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """setup_logging() installs root handlers; drop them after each test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if not type(handler).__module__.startswith("_pytest"):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def fake_home(tmp_path: Path) -> Path:
    """An empty home directory for one test."""
    home = tmp_path / "home"
    home.mkdir()
    return home


@pytest.fixture
def make_options(fake_home: Path) -> Callable[..., PlanOptions]:
    """Factory for PlanOptions rooted in ``fake_home`` with instant retries."""

    def _make(**overrides) -> PlanOptions:
        data = {
            "home": fake_home,
            "retry": RetrySettings(attempts=3, delay=0, increment=0),
        }
        data.update(overrides)
        return PlanOptions(**data)

    return _make


@pytest.fixture
def options(make_options) -> PlanOptions:
    return make_options()


@pytest.fixture
def ctx(options: PlanOptions) -> ExecutionContext:
    return ExecutionContext.create(options)


@pytest.fixture
def dry_ctx(make_options) -> ExecutionContext:
    return ExecutionContext.create(make_options(dry_run=True))


@pytest.fixture
def recording_runner() -> RecordingRunner:
    return RecordingRunner()
