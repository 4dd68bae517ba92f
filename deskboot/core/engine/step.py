"""
Step — one named unit of provisioning work.

A Step is declared once, when the Plan is built, and never changes:

    precondition   "already satisfied?"  True → the step is skipped
    action         the work, via the CommandRunner
    postcondition  "did the action achieve its effect?"
    criticality    FATAL aborts the plan, ADVISORY only warns
    retryable      wrap the action in the RetryPolicy
    confirm        ask the user first (unless --yes)
    mutates        paths snapshotted before the action runs
    workdir        source tree the step creates (removed on abort)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Callable

from deskboot.core.models.run import Criticality, StepState

if TYPE_CHECKING:
    from deskboot.core.context import ExecutionContext
    from deskboot.core.execution.command_runner import CommandRunner

Predicate = Callable[["ExecutionContext"], bool]
Action = Callable[["ExecutionContext", "CommandRunner"], None]

__all__ = ["Action", "Criticality", "Predicate", "Step", "StepState"]


@dataclass(frozen=True)
class Step:
    """Declarative description of one provisioning step."""

    name: str
    action: Action
    description: str = ""
    precondition: Predicate | None = None
    postcondition: Predicate | None = None
    criticality: Criticality = Criticality.FATAL
    retryable: bool = False
    confirm: str | None = None
    mutates: tuple[Path, ...] = ()
    privileged_paths: frozenset[Path] = field(default_factory=frozenset)
    workdir: Path | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Step name must not be empty")
        # Accept lists for convenience; keep the dataclass hashable.
        object.__setattr__(self, "mutates", tuple(Path(p) for p in self.mutates))
        object.__setattr__(
            self, "privileged_paths", frozenset(Path(p) for p in self.privileged_paths),
        )

    @property
    def fatal(self) -> bool:
        return self.criticality == Criticality.FATAL

    @property
    def confirmable(self) -> bool:
        return self.confirm is not None

    def is_privileged(self, path: Path) -> bool:
        return Path(path) in self.privileged_paths

    def describe(self) -> dict:
        """JSON-friendly summary (used by ``deskboot plan --json``)."""
        return {
            "name": self.name,
            "description": self.description,
            "criticality": self.criticality.value,
            "retryable": self.retryable,
            "confirm": self.confirm,
            "mutates": [str(p) for p in self.mutates],
            "workdir": str(self.workdir) if self.workdir else None,
        }
