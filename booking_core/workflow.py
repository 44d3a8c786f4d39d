"""Ordered approval workflow definitions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

from .exceptions import StepOutOfRange
from .models import RoleEnum, WorkflowNode


@dataclass(frozen=True)
class WorkflowStep:
    id: int
    name: str
    approver_role: RoleEnum

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "approver_role": self.approver_role.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowStep:
        return cls(id=data["id"], name=data["name"], approver_role=RoleEnum(data["approver_role"]))


class WorkflowDefinition:
    """Read-only sequence of approval steps; an empty definition means no approval."""

    def __init__(self, steps: Iterable[WorkflowStep] = ()) -> None:
        self._steps: tuple[WorkflowStep, ...] = tuple(steps)

    @classmethod
    def from_nodes(cls, nodes: Sequence[WorkflowNode]) -> WorkflowDefinition:
        ordered = sorted(nodes, key=lambda node: (node.sort_order, node.id))
        return cls(WorkflowStep(id=node.id, name=node.name, approver_role=node.approver_role) for node in ordered)

    @classmethod
    def from_snapshot(cls, snapshot: Iterable[dict[str, Any]] | None) -> WorkflowDefinition:
        return cls(WorkflowStep.from_dict(item) for item in snapshot or [])

    def to_snapshot(self) -> list[dict[str, Any]]:
        return [step.to_dict() for step in self._steps]

    def length(self) -> int:
        return len(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[WorkflowStep]:
        return iter(self._steps)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorkflowDefinition):
            return NotImplemented
        return self._steps == other._steps

    def __repr__(self) -> str:
        return f"WorkflowDefinition({[step.name for step in self._steps]!r})"

    @property
    def is_empty(self) -> bool:
        return not self._steps

    def step_at(self, index: int) -> WorkflowStep:
        if not 0 <= index < len(self._steps):
            raise StepOutOfRange(index, len(self._steps))
        return self._steps[index]

    def approver_role_at(self, index: int) -> RoleEnum:
        return self.step_at(index).approver_role

    def is_last(self, index: int) -> bool:
        return index == len(self._steps) - 1
