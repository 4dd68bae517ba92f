"""
CommandSpec and CommandResult — the runner's I/O contract.

A CommandSpec is a structured command value (program + argument list),
never an interpolated shell string, so arguments are not re-interpreted
and dry-run output is deterministic.
"""

from __future__ import annotations

import shlex
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CommandSpec(BaseModel):
    """An external command to run through the CommandRunner."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    privileged: bool = False          # run through sudo unless already root
    cwd: str | None = None
    env: dict[str, str] = Field(default_factory=dict)
    input_text: str | None = None     # piped to stdin
    timeout: float | None = None      # overrides the runner default
    capture: bool = True              # False = stream to the terminal

    @field_validator("argv")
    @classmethod
    def _argv_not_empty(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        if not value or not value[0]:
            raise ValueError("argv must name a program")
        return value

    @classmethod
    def of(cls, *argv: str, **kwargs: Any) -> CommandSpec:
        """Shorthand: ``CommandSpec.of("pacman", "-S", "git", privileged=True)``."""
        return cls(argv=tuple(str(a) for a in argv), **kwargs)

    @property
    def program(self) -> str:
        return self.argv[0]

    def display(self) -> str:
        """Shell-quoted rendering for logs and dry-run output."""
        text = shlex.join(self.argv)
        if self.env:
            prefix = " ".join(f"{k}={shlex.quote(v)}" for k, v in sorted(self.env.items()))
            text = f"{prefix} {text}"
        if self.privileged:
            text = f"sudo {text}"
        if self.cwd:
            text = f"(cd {shlex.quote(self.cwd)} && {text})"
        return text


class CommandResult(BaseModel):
    """Outcome of a command that exited with status 0 (or was simulated)."""

    argv: tuple[str, ...]
    exit_status: int = 0
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    simulated: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_status == 0
