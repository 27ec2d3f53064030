"""Entity Store: transactional CRUD for plans, steps and goals.

Each public mutating method is one logical operation and runs inside one
transaction; rollup for affected ancestors happens inside that same
transaction so no other invocation can observe a half-rolled-up state.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Type, Union

from loguru import logger
from sqlalchemy import func
from sqlmodel import col, select

from planpilot.core.db import Db
from planpilot.core.db_models import Goal, Plan, Step, utcnow
from planpilot.core.errors import InvalidInputError, NotFoundError, missing_ids_error
from planpilot.core.models import (
    EntityKind,
    Executor,
    GoalChanges,
    GoalDetail,
    GoalQuery,
    PlanChanges,
    PlanDetail,
    PlanOrder,
    PlanQuery,
    StatusChanges,
    Status,
    StepChanges,
    StepDetail,
    StepInput,
    StepOrder,
    StepQuery,
)
from planpilot.core.rollup import refresh_plan_status, refresh_step_status
from planpilot.core.sessions import SessionLock, clear_plan_bindings
from planpilot.formatting import format_step_detail

Entity = Union[Plan, Step, Goal]

_KIND_MODELS: dict[EntityKind, Type[Entity]] = {
    EntityKind.PLAN: Plan,
    EntityKind.STEP: Step,
    EntityKind.GOAL: Goal,
}


def require_non_empty(label: str, value: str) -> None:
    if not value.strip():
        raise InvalidInputError(f"{label} cannot be empty")


def unique_ids(ids: Iterable[int]) -> list[int]:
    """Deduplicate while keeping first-seen order."""
    return list(dict.fromkeys(ids))


def normalize_comment_entries(entries: Sequence[tuple[int, str]]) -> list[tuple[int, str]]:
    """Collapse duplicate ids: first position is kept, last comment wins."""
    ordered: dict[int, str] = {}
    for entity_id, comment in entries:
        ordered[entity_id] = comment
    return list(ordered.items())


class PlanStore:
    """Plan/Step/Goal operations for one agent session."""

    def __init__(self, db: Db) -> None:
        self.db = db
        self.sessions = SessionLock(db)

    @property
    def session_id(self) -> str:
        return self.db.session_id

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_plan(self, plan_id: int) -> Plan:
        plan = self.db.session.get(Plan, plan_id)
        if plan is None:
            raise NotFoundError(f"plan id {plan_id}")
        return plan

    def get_step(self, step_id: int) -> Step:
        step = self.db.session.get(Step, step_id)
        if step is None:
            raise NotFoundError(f"step id {step_id}")
        return step

    def get_goal(self, goal_id: int) -> Goal:
        goal = self.db.session.get(Goal, goal_id)
        if goal is None:
            raise NotFoundError(f"goal id {goal_id}")
        return goal

    def steps_for_plan(self, plan_id: int) -> list[Step]:
        statement = (
            select(Step).where(Step.plan_id == plan_id).order_by(col(Step.sort_order), col(Step.id))
        )
        return list(self.db.session.exec(statement).all())

    def goals_for_step(self, step_id: int) -> list[Goal]:
        statement = select(Goal).where(Goal.step_id == step_id).order_by(col(Goal.id))
        return list(self.db.session.exec(statement).all())

    def goals_for_steps(self, step_ids: Sequence[int]) -> dict[int, list[Goal]]:
        grouped: dict[int, list[Goal]] = {}
        if not step_ids:
            return grouped
        statement = (
            select(Goal).where(col(Goal.step_id).in_(list(step_ids))).order_by(col(Goal.step_id), col(Goal.id))
        )
        for goal in self.db.session.exec(statement).all():
            grouped.setdefault(goal.step_id, []).append(goal)
        return grouped

    def next_step(self, plan_id: int) -> Optional[Step]:
        """Lowest-position pending step; ties on position fall back to id."""
        statement = (
            select(Step)
            .where(Step.plan_id == plan_id, Step.status == Status.TODO.value)
            .order_by(col(Step.sort_order), col(Step.id))
        )
        return self.db.session.exec(statement).first()

    def next_goal(self, step_id: int) -> Optional[Goal]:
        statement = (
            select(Goal).where(Goal.step_id == step_id, Goal.status == Status.TODO.value).order_by(col(Goal.id))
        )
        return self.db.session.exec(statement).first()

    def get_plan_detail(self, plan_id: int) -> PlanDetail:
        plan = self.get_plan(plan_id)
        steps = self.steps_for_plan(plan_id)
        goals = self.goals_for_steps([step.id for step in steps if step.id is not None])
        return PlanDetail(plan=plan, steps=steps, goals=goals)

    def get_plan_details(self, plans: Sequence[Plan]) -> list[PlanDetail]:
        if not plans:
            return []
        plan_ids = [plan.id for plan in plans]
        statement = (
            select(Step).where(col(Step.plan_id).in_(plan_ids)).order_by(col(Step.sort_order), col(Step.id))
        )
        steps_by_plan: dict[int, list[Step]] = {}
        all_steps = self.db.session.exec(statement).all()
        for step in all_steps:
            steps_by_plan.setdefault(step.plan_id, []).append(step)
        goals = self.goals_for_steps([step.id for step in all_steps if step.id is not None])

        details = []
        for plan in plans:
            steps = steps_by_plan.get(plan.id or 0, [])
            plan_goals = {step.id: goals[step.id] for step in steps if step.id in goals}
            details.append(PlanDetail(plan=plan, steps=steps, goals=plan_goals))
        return details

    def get_step_detail(self, step_id: int) -> StepDetail:
        step = self.get_step(step_id)
        return StepDetail(step=step, goals=self.goals_for_step(step_id))

    def get_steps_detail(self, steps: Sequence[Step]) -> list[StepDetail]:
        goals = self.goals_for_steps([step.id for step in steps if step.id is not None])
        return [StepDetail(step=step, goals=goals.get(step.id or 0, [])) for step in steps]

    def get_goal_detail(self, goal_id: int) -> GoalDetail:
        goal = self.get_goal(goal_id)
        return GoalDetail(goal=goal, step=self.get_step(goal.step_id))

    def plan_ids_for_steps(self, step_ids: Sequence[int]) -> list[int]:
        if not step_ids:
            return []
        steps = self.db.session.exec(select(Step).where(col(Step.id).in_(unique_ids(step_ids)))).all()
        return unique_ids(step.plan_id for step in steps)

    def plan_ids_for_goals(self, goal_ids: Sequence[int]) -> list[int]:
        if not goal_ids:
            return []
        goals = self.db.session.exec(select(Goal).where(col(Goal.id).in_(unique_ids(goal_ids)))).all()
        return self.plan_ids_for_steps(unique_ids(goal.step_id for goal in goals))

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def add_plan(self, title: str, content: str) -> Plan:
        require_non_empty("plan title", title)
        require_non_empty("plan content", content)
        with self.db.transaction() as db_session:
            now = utcnow()
            plan = Plan(
                title=title,
                content=content,
                status=Status.TODO.value,
                last_session_id=self.session_id,
                created_at=now,
                updated_at=now,
            )
            db_session.add(plan)
            db_session.flush()
        logger.debug("Created plan", plan_id=plan.id)
        return plan

    def add_plan_tree(self, title: str, content: str, steps: Sequence[StepInput]) -> tuple[Plan, int, int]:
        """Create a plan with its steps and goals in one transaction.

        Returns:
            (plan, step_count, goal_count)
        """
        require_non_empty("plan title", title)
        require_non_empty("plan content", content)
        for step_input in steps:
            require_non_empty("step content", step_input.content)
            for goal_content in step_input.goals:
                require_non_empty("goal content", goal_content)

        goal_count = 0
        with self.db.transaction() as db_session:
            now = utcnow()
            plan = Plan(
                title=title,
                content=content,
                status=Status.TODO.value,
                last_session_id=self.session_id,
                created_at=now,
                updated_at=now,
            )
            db_session.add(plan)
            db_session.flush()

            for position, step_input in enumerate(steps, start=1):
                step = Step(
                    plan_id=plan.id,
                    content=step_input.content,
                    status=Status.TODO.value,
                    executor=step_input.executor.value,
                    sort_order=position,
                    created_at=now,
                    updated_at=now,
                )
                db_session.add(step)
                db_session.flush()
                for goal_content in step_input.goals:
                    db_session.add(
                        Goal(step_id=step.id, content=goal_content, status=Status.TODO.value, created_at=now, updated_at=now)
                    )
                    goal_count += 1
        logger.debug("Created plan tree", plan_id=plan.id, steps=len(steps), goals=goal_count)
        return plan, len(steps), goal_count

    def list_plans(self, query: Optional[PlanQuery] = None) -> list[Plan]:
        query = query or PlanQuery()
        order_columns = {
            PlanOrder.ID: col(Plan.id),
            PlanOrder.TITLE: col(Plan.title),
            PlanOrder.CREATED: col(Plan.created_at),
            PlanOrder.UPDATED: col(Plan.updated_at),
        }
        order_column = order_columns[query.order]
        statement = select(Plan)
        if query.status is not None:
            statement = statement.where(Plan.status == query.status.value)
        statement = statement.order_by(order_column.desc() if query.desc else order_column, col(Plan.id))
        if query.limit is not None:
            statement = statement.limit(query.limit)
        if query.offset is not None:
            statement = statement.offset(query.offset)
        return list(self.db.session.exec(statement).all())

    def update_plan(self, plan_id: int, changes: PlanChanges) -> tuple[Plan, bool]:
        """Apply manual edits to a plan.

        Returns:
            (plan, cleared) where `cleared` tells whether this session's
            binding was dropped because the plan ended done.

        Raises:
            NotFoundError: If the plan does not exist.
            InvalidInputError: On empty fields or a status that contradicts the steps.
        """
        if changes.title is not None:
            require_non_empty("plan title", changes.title)
        if changes.content is not None:
            require_non_empty("plan content", changes.content)

        with self.db.transaction() as db_session:
            plan = self.get_plan(plan_id)
            if changes.status is not None:
                self._check_plan_status(plan_id, changes.status)

            if changes.title is not None:
                plan.title = changes.title
            if changes.content is not None:
                plan.content = changes.content
            if changes.status is not None:
                plan.status = changes.status.value
            if changes.comment is not None:
                plan.comment = changes.comment
            plan.last_session_id = self.session_id
            plan.updated_at = utcnow()
            db_session.add(plan)

            cleared = False
            if plan.status == Status.DONE.value:
                cleared = clear_plan_bindings(self.db, plan_id)
        return plan, cleared

    def _check_plan_status(self, plan_id: int, status: Status) -> None:
        steps = self.steps_for_plan(plan_id)
        if not steps:
            return
        if status is Status.DONE:
            pending = self.next_step(plan_id)
            if pending is not None:
                detail = format_step_detail(pending, self.goals_for_step(pending.id or 0))
                raise InvalidInputError(f"cannot mark plan done; next pending step:\n{detail}")
        elif all(step.status == Status.DONE.value for step in steps):
            raise InvalidInputError(
                f"cannot mark plan todo; all steps are done ({len(steps)}/{len(steps)}); reopen a step instead"
            )

    def delete_plan(self, plan_id: int) -> None:
        """Remove a plan with its steps, goals and bindings."""
        with self.db.transaction() as db_session:
            plan = self.get_plan(plan_id)
            clear_plan_bindings(self.db, plan_id)
            steps = self.steps_for_plan(plan_id)
            goals = self.goals_for_steps([step.id for step in steps if step.id is not None])
            for step_goals in goals.values():
                for goal in step_goals:
                    db_session.delete(goal)
            db_session.flush()
            for step in steps:
                db_session.delete(step)
            db_session.flush()
            db_session.delete(plan)
        logger.debug("Removed plan", plan_id=plan_id, steps=len(steps))

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _normalize_positions(self, plan_id: int) -> list[Step]:
        """Renumber a plan's steps to 1..n, writing only rows that move."""
        steps = self.steps_for_plan(plan_id)
        self._renumber(steps)
        return steps

    def _renumber(self, steps: list[Step]) -> None:
        now = utcnow()
        for position, step in enumerate(steps, start=1):
            if step.sort_order != position:
                step.sort_order = position
                step.updated_at = now
                self.db.session.add(step)

    def add_steps(
        self,
        plan_id: int,
        contents: Sequence[str],
        executor: Executor = Executor.AI,
        at: Optional[int] = None,
    ) -> tuple[list[Step], StatusChanges]:
        """Insert steps at a 1-based position (default: append).

        `at` beyond the end appends; `at == 0` inserts first.
        """
        with self.db.transaction() as db_session:
            self.get_plan(plan_id)
            if not contents:
                return [], StatusChanges()
            for content in contents:
                require_non_empty("step content", content)

            existing = self._normalize_positions(plan_id)
            total = len(existing)
            if at is None:
                insert_pos = total + 1
            elif at > 0:
                insert_pos = min(at, total + 1)
            else:
                insert_pos = 1

            now = utcnow()
            shift_by = len(contents)
            for step in existing:
                if step.sort_order >= insert_pos:
                    step.sort_order += shift_by
                    step.updated_at = now
                    db_session.add(step)

            created = []
            for offset, content in enumerate(contents):
                step = Step(
                    plan_id=plan_id,
                    content=content,
                    status=Status.TODO.value,
                    executor=executor.value,
                    sort_order=insert_pos + offset,
                    created_at=now,
                    updated_at=now,
                )
                db_session.add(step)
                created.append(step)
            db_session.flush()

            changes = refresh_plan_status(self.db, plan_id)
            self.db.touch_plan(plan_id)
        logger.debug("Added steps", plan_id=plan_id, count=len(created), position=insert_pos)
        return created, changes

    def add_step_tree(
        self, plan_id: int, content: str, executor: Executor, goals: Sequence[str]
    ) -> tuple[Step, list[Goal], StatusChanges]:
        """Append one step with its goals."""
        require_non_empty("step content", content)
        for goal_content in goals:
            require_non_empty("goal content", goal_content)

        with self.db.transaction() as db_session:
            self.get_plan(plan_id)
            existing = self._normalize_positions(plan_id)
            now = utcnow()
            step = Step(
                plan_id=plan_id,
                content=content,
                status=Status.TODO.value,
                executor=executor.value,
                sort_order=len(existing) + 1,
                created_at=now,
                updated_at=now,
            )
            db_session.add(step)
            db_session.flush()

            created_goals = [
                Goal(step_id=step.id, content=goal_content, status=Status.TODO.value, created_at=now, updated_at=now)
                for goal_content in goals
            ]
            for goal in created_goals:
                db_session.add(goal)
            db_session.flush()

            changes = refresh_plan_status(self.db, plan_id)
            self.db.touch_plan(plan_id)
        return step, created_goals, changes

    def _step_filters(self, statement, plan_id: int, query: StepQuery):  # type: ignore[no-untyped-def]
        statement = statement.where(Step.plan_id == plan_id)
        if query.status is not None:
            statement = statement.where(Step.status == query.status.value)
        if query.executor is not None:
            statement = statement.where(Step.executor == query.executor.value)
        return statement

    def list_steps(self, plan_id: int, query: Optional[StepQuery] = None) -> list[Step]:
        query = query or StepQuery()
        self.get_plan(plan_id)
        order_columns = {
            StepOrder.ORDER: col(Step.sort_order),
            StepOrder.ID: col(Step.id),
            StepOrder.CREATED: col(Step.created_at),
        }
        order_column = order_columns[query.order]
        statement = self._step_filters(select(Step), plan_id, query)
        statement = statement.order_by(order_column.desc() if query.desc else order_column, col(Step.id))
        if query.limit is not None:
            statement = statement.limit(query.limit)
        if query.offset is not None:
            statement = statement.offset(query.offset)
        return list(self.db.session.exec(statement).all())

    def count_steps(self, plan_id: int, query: Optional[StepQuery] = None) -> int:
        self.get_plan(plan_id)
        statement = self._step_filters(select(func.count()).select_from(Step), plan_id, query or StepQuery())
        return int(self.db.session.exec(statement).one())

    def update_step(self, step_id: int, changes: StepChanges) -> tuple[Step, StatusChanges]:
        with self.db.transaction():
            return self._update_step(step_id, changes)

    def _update_step(self, step_id: int, changes: StepChanges) -> tuple[Step, StatusChanges]:
        if changes.content is not None:
            require_non_empty("step content", changes.content)

        step = self.get_step(step_id)
        if changes.status is not None:
            self._check_step_status(step_id, changes.status)

        if changes.content is not None:
            step.content = changes.content
        if changes.status is not None:
            step.status = changes.status.value
        if changes.executor is not None:
            step.executor = changes.executor.value
        if changes.comment is not None:
            step.comment = changes.comment
        step.updated_at = utcnow()
        self.db.session.add(step)

        updates = StatusChanges()
        if changes.status is not None:
            updates.merge(refresh_plan_status(self.db, step.plan_id))
        self.db.touch_plan(step.plan_id)
        return step, updates

    def _check_step_status(self, step_id: int, status: Status) -> None:
        goals = self.goals_for_step(step_id)
        if not goals:
            return
        if status is Status.DONE:
            pending = self.next_goal(step_id)
            if pending is not None:
                raise InvalidInputError(f"cannot mark step done; next pending goal: {pending.content} (id {pending.id})")
        elif all(goal.status == Status.DONE.value for goal in goals):
            raise InvalidInputError(
                f"cannot mark step todo; all goals are done ({len(goals)}/{len(goals)}); reopen a goal instead"
            )

    def complete_step(self, step_id: int, all_goals: bool = False) -> tuple[Step, StatusChanges]:
        """Mark a step done; with `all_goals`, force its goals done first."""
        merged = StatusChanges()
        with self.db.transaction():
            if all_goals:
                self.get_step(step_id)
                goal_ids = [goal.id for goal in self.goals_for_step(step_id) if goal.id is not None]
                if goal_ids:
                    merged.merge(self._set_goals_status(goal_ids, Status.DONE)[1])
            step, changes = self._update_step(step_id, StepChanges(status=Status.DONE))
            merged.merge(changes)
        return step, merged

    def delete_steps(self, step_ids: Sequence[int]) -> tuple[int, StatusChanges]:
        """Remove steps (and their goals); report all missing ids at once."""
        changes = StatusChanges()
        if not step_ids:
            return 0, changes
        ids = unique_ids(step_ids)
        with self.db.transaction() as db_session:
            steps = db_session.exec(select(Step).where(col(Step.id).in_(ids))).all()
            found = {step.id for step in steps}
            missing = [step_id for step_id in ids if step_id not in found]
            if missing:
                raise missing_ids_error(EntityKind.STEP.value, missing)

            plan_ids = unique_ids(step.plan_id for step in steps)
            for step_goals in self.goals_for_steps(ids).values():
                for goal in step_goals:
                    db_session.delete(goal)
            db_session.flush()
            for step in steps:
                db_session.delete(step)
            db_session.flush()

            for plan_id in plan_ids:
                self._normalize_positions(plan_id)
                changes.merge(refresh_plan_status(self.db, plan_id))
            self.db.touch_plans(plan_ids)
        logger.debug("Removed steps", count=len(steps), plans=plan_ids)
        return len(steps), changes

    def move_step(self, step_id: int, to: int) -> list[Step]:
        """Move a step to 1-based position `to` (clamped) and renumber its plan."""
        with self.db.transaction():
            target = self.get_step(step_id)
            steps = self.steps_for_plan(target.plan_id)
            current_index = next(idx for idx, step in enumerate(steps) if step.id == step_id)
            desired_index = min(max(to - 1, 0), len(steps) - 1)

            moving = steps.pop(current_index)
            steps.insert(desired_index, moving)
            self._renumber(steps)
            self.db.touch_plan(target.plan_id)
        logger.debug("Moved step", step_id=step_id, position=desired_index + 1)
        return steps

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def add_goals(self, step_id: int, contents: Sequence[str]) -> tuple[list[Goal], StatusChanges]:
        """Add todo goals to a step; a done step (and plan) reopens."""
        if not contents:
            return [], StatusChanges()
        for content in contents:
            require_non_empty("goal content", content)

        with self.db.transaction() as db_session:
            step = self.get_step(step_id)
            now = utcnow()
            created = [
                Goal(step_id=step_id, content=content, status=Status.TODO.value, created_at=now, updated_at=now)
                for content in contents
            ]
            for goal in created:
                db_session.add(goal)
            db_session.flush()

            changes = refresh_step_status(self.db, step_id)
            self.db.touch_plan(step.plan_id)
        return created, changes

    def _goal_filters(self, statement, step_id: int, query: GoalQuery):  # type: ignore[no-untyped-def]
        statement = statement.where(Goal.step_id == step_id)
        if query.status is not None:
            statement = statement.where(Goal.status == query.status.value)
        return statement

    def list_goals(self, step_id: int, query: Optional[GoalQuery] = None) -> list[Goal]:
        query = query or GoalQuery()
        self.get_step(step_id)
        statement = self._goal_filters(select(Goal), step_id, query).order_by(col(Goal.id))
        if query.limit is not None:
            statement = statement.limit(query.limit)
        if query.offset is not None:
            statement = statement.offset(query.offset)
        return list(self.db.session.exec(statement).all())

    def count_goals(self, step_id: int, query: Optional[GoalQuery] = None) -> int:
        self.get_step(step_id)
        statement = self._goal_filters(select(func.count()).select_from(Goal), step_id, query or GoalQuery())
        return int(self.db.session.exec(statement).one())

    def update_goal(self, goal_id: int, changes: GoalChanges) -> tuple[Goal, StatusChanges]:
        if changes.content is not None:
            require_non_empty("goal content", changes.content)

        with self.db.transaction():
            goal = self.get_goal(goal_id)
            if changes.content is not None:
                goal.content = changes.content
            if changes.status is not None:
                goal.status = changes.status.value
            if changes.comment is not None:
                goal.comment = changes.comment
            goal.updated_at = utcnow()
            self.db.session.add(goal)

            updates = refresh_step_status(self.db, goal.step_id)
            self.db.touch_plan(self.get_step(goal.step_id).plan_id)
        return goal, updates

    def set_goal_status(self, goal_id: int, status: Status) -> tuple[Goal, StatusChanges]:
        """Set one goal's status; a goal already in `status` is left untouched."""
        with self.db.transaction():
            goal = self.get_goal(goal_id)
            if goal.status == status.value:
                return goal, StatusChanges()
            _, changes = self._set_goals_status([goal_id], status)
        return goal, changes

    def set_goals_status(self, goal_ids: Sequence[int], status: Status) -> tuple[int, StatusChanges]:
        with self.db.transaction():
            return self._set_goals_status(goal_ids, status)

    def _set_goals_status(self, goal_ids: Sequence[int], status: Status) -> tuple[int, StatusChanges]:
        """Batch status write; each affected step is rolled up once."""
        changes = StatusChanges()
        if not goal_ids:
            return 0, changes
        ids = unique_ids(goal_ids)
        goals = self.db.session.exec(select(Goal).where(col(Goal.id).in_(ids))).all()
        found = {goal.id for goal in goals}
        missing = [goal_id for goal_id in ids if goal_id not in found]
        if missing:
            raise missing_ids_error(EntityKind.GOAL.value, missing)

        now = utcnow()
        for goal in goals:
            if goal.status != status.value:
                goal.status = status.value
                goal.updated_at = now
                self.db.session.add(goal)

        step_ids = unique_ids(goal.step_id for goal in goals)
        for step_id in step_ids:
            changes.merge(refresh_step_status(self.db, step_id))
        self.db.touch_plans(self.plan_ids_for_steps(step_ids))
        return len(ids), changes

    def delete_goals(self, goal_ids: Sequence[int]) -> tuple[int, StatusChanges]:
        """Remove goals; a step left with zero goals keeps its status."""
        changes = StatusChanges()
        if not goal_ids:
            return 0, changes
        ids = unique_ids(goal_ids)
        with self.db.transaction() as db_session:
            goals = db_session.exec(select(Goal).where(col(Goal.id).in_(ids))).all()
            found = {goal.id for goal in goals}
            missing = [goal_id for goal_id in ids if goal_id not in found]
            if missing:
                raise missing_ids_error(EntityKind.GOAL.value, missing)

            step_ids = unique_ids(goal.step_id for goal in goals)
            for goal in goals:
                db_session.delete(goal)
            db_session.flush()

            for step_id in step_ids:
                changes.merge(refresh_step_status(self.db, step_id))
            self.db.touch_plans(self.plan_ids_for_steps(step_ids))
        return len(goals), changes

    # ------------------------------------------------------------------
    # Comments (any kind)
    # ------------------------------------------------------------------

    def comment(self, kind: EntityKind, entries: Sequence[tuple[int, str]]) -> list[int]:
        """Set comments on entities of one kind.

        Returns:
            Ids of the plans that own the commented entities.
        """
        normalized = normalize_comment_entries(entries)
        if not normalized:
            return []
        for _, text in normalized:
            require_non_empty("comment", text)

        model = _KIND_MODELS[kind]
        ids = [entity_id for entity_id, _ in normalized]
        with self.db.transaction() as db_session:
            rows = db_session.exec(select(model).where(col(model.id).in_(ids))).all()
            by_id = {row.id: row for row in rows}
            missing = [entity_id for entity_id in ids if entity_id not in by_id]
            if missing:
                raise missing_ids_error(kind.value, missing)

            now = utcnow()
            for entity_id, text in normalized:
                row = by_id[entity_id]
                row.comment = text
                row.updated_at = now
                db_session.add(row)

            if kind is EntityKind.PLAN:
                plan_ids = ids
            elif kind is EntityKind.STEP:
                plan_ids = unique_ids(row.plan_id for row in rows)  # type: ignore[union-attr]
            else:
                plan_ids = self.plan_ids_for_steps(unique_ids(row.step_id for row in rows))  # type: ignore[union-attr]
            self.db.touch_plans(plan_ids)
        return plan_ids
