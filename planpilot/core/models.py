"""Value types shared by the store, rollup engine and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from planpilot.core.errors import InvalidInputError

if TYPE_CHECKING:
    from planpilot.core.db_models import Goal, Plan, Step


class Status(str, Enum):
    """Status shared by plans, steps and goals."""

    TODO = "todo"
    DONE = "done"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]


class Executor(str, Enum):
    """Who is expected to carry out a step."""

    AI = "ai"
    HUMAN = "human"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]

    @classmethod
    def from_str(cls, value: str) -> "Executor":
        """Convert a string to Executor, raising InvalidInputError on unknown values."""
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise InvalidInputError(f"invalid executor '{value}', expected ai|human")


class EntityKind(str, Enum):
    PLAN = "plan"
    STEP = "step"
    GOAL = "goal"


class PlanOrder(str, Enum):
    ID = "id"
    TITLE = "title"
    CREATED = "created"
    UPDATED = "updated"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]


class StepOrder(str, Enum):
    ORDER = "order"
    ID = "id"
    CREATED = "created"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass
class PlanChanges:
    title: Optional[str] = None
    content: Optional[str] = None
    status: Optional[Status] = None
    comment: Optional[str] = None


@dataclass
class StepChanges:
    content: Optional[str] = None
    status: Optional[Status] = None
    executor: Optional[Executor] = None
    comment: Optional[str] = None


@dataclass
class GoalChanges:
    content: Optional[str] = None
    status: Optional[Status] = None
    comment: Optional[str] = None


@dataclass
class PlanQuery:
    status: Optional[Status] = None
    order: PlanOrder = PlanOrder.UPDATED
    desc: bool = False
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class StepQuery:
    status: Optional[Status] = None
    executor: Optional[Executor] = None
    limit: Optional[int] = None
    offset: Optional[int] = None
    order: StepOrder = StepOrder.ORDER
    desc: bool = False


@dataclass
class GoalQuery:
    status: Optional[Status] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class StepInput:
    """One step of a plan tree, with the goals created alongside it."""

    content: str
    executor: Executor = Executor.AI
    goals: list[str] = field(default_factory=list)


@dataclass
class PlanDetail:
    plan: "Plan"
    steps: list["Step"]
    goals: dict[int, list["Goal"]]

    def steps_done(self) -> int:
        return sum(1 for step in self.steps if step.status == Status.DONE.value)


@dataclass
class StepDetail:
    step: "Step"
    goals: list["Goal"]


@dataclass
class GoalDetail:
    goal: "Goal"
    step: "Step"


@dataclass
class StatusChange:
    """One automatic status flip produced by rollup."""

    kind: EntityKind
    entity_id: int
    previous: str
    current: str
    reason: str


@dataclass
class ActivePlanCleared:
    plan_id: int
    reason: str


@dataclass
class StatusChanges:
    """Auto status updates collected over one operation, leaf to root."""

    updates: list[StatusChange] = field(default_factory=list)
    active_plans_cleared: list[ActivePlanCleared] = field(default_factory=list)

    @property
    def steps(self) -> list[StatusChange]:
        return [change for change in self.updates if change.kind is EntityKind.STEP]

    @property
    def plans(self) -> list[StatusChange]:
        return [change for change in self.updates if change.kind is EntityKind.PLAN]

    def merge(self, other: "StatusChanges") -> None:
        self.updates.extend(other.updates)
        self.active_plans_cleared.extend(other.active_plans_cleared)

    def is_empty(self) -> bool:
        return not self.updates and not self.active_plans_cleared
