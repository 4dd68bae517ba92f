"""
Plan — the fixed, ordered sequence of Steps for one run.

Dependency order is the sequence order: no DAG, no parallel branches.
The order is frozen at build time.  At runtime a step can only be
skipped (precondition satisfied) or the plan aborted (fatal failure).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence

from deskboot.core.engine.step import Step
from deskboot.core.errors import PlanError
from deskboot.core.models.options import PlanOptions


@dataclass(frozen=True)
class Plan:
    """Ordered steps plus the options they were built from."""

    steps: tuple[Step, ...]
    options: PlanOptions

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        seen: set[str] = set()
        for step in self.steps:
            if step.name in seen:
                raise PlanError(f"Duplicate step name in plan: '{step.name}'")
            seen.add(step.name)

    @classmethod
    def build(cls, steps: Sequence[Step], options: PlanOptions) -> Plan:
        return cls(steps=tuple(steps), options=options)

    def __iter__(self) -> Iterator[Step]:
        return iter(self.steps)

    def __len__(self) -> int:
        return len(self.steps)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.steps]

    def get(self, name: str) -> Step | None:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> dict:
        return {
            "options": self.options.model_dump(mode="json"),
            "steps": [s.describe() for s in self.steps],
        }
