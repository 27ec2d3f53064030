"""Rollup Engine: derive step status from goals and plan status from steps.

A parent with children is done iff every child is done. A parent without
children keeps its manually set status. Recomputing a consistent parent
writes nothing and reports nothing.
"""

from __future__ import annotations

from loguru import logger
from sqlmodel import select

from planpilot.core.db import Db
from planpilot.core.db_models import Goal, Plan, Step, utcnow
from planpilot.core.errors import NotFoundError
from planpilot.core.models import ActivePlanCleared, EntityKind, Status, StatusChange, StatusChanges
from planpilot.core.sessions import clear_plan_bindings


def _target_status(done: int, total: int) -> Status:
    return Status.DONE if done == total else Status.TODO


def refresh_plan_status(db: Db, plan_id: int) -> StatusChanges:
    """Recompute a plan's status from its steps (no-op for zero steps)."""
    changes = StatusChanges()
    steps = db.session.exec(select(Step).where(Step.plan_id == plan_id)).all()
    if not steps:
        return changes

    total = len(steps)
    done = sum(1 for step in steps if step.status == Status.DONE.value)
    target = _target_status(done, total)

    plan = db.session.get(Plan, plan_id)
    if plan is None:
        raise NotFoundError(f"plan id {plan_id}")
    if plan.status == target.value:
        return changes

    reason = f"all steps are done ({done}/{total})" if target is Status.DONE else f"steps done {done}/{total}"
    changes.updates.append(StatusChange(EntityKind.PLAN, plan_id, plan.status, target.value, reason))
    plan.status = target.value
    plan.updated_at = utcnow()
    db.session.add(plan)
    logger.debug("Plan status rolled up", plan_id=plan_id, status=target.value, done=done, total=total)

    if target is Status.DONE and clear_plan_bindings(db, plan_id):
        changes.active_plans_cleared.append(ActivePlanCleared(plan_id, "plan marked done"))
    return changes


def refresh_step_status(db: Db, step_id: int) -> StatusChanges:
    """Recompute a step's status from its goals, then roll up its plan.

    A step with zero goals is left alone, and so is its plan.
    """
    changes = StatusChanges()
    step = db.session.get(Step, step_id)
    if step is None:
        raise NotFoundError(f"step id {step_id}")

    goals = db.session.exec(select(Goal).where(Goal.step_id == step_id)).all()
    if not goals:
        return changes

    total = len(goals)
    done = sum(1 for goal in goals if goal.status == Status.DONE.value)
    target = _target_status(done, total)
    if step.status != target.value:
        reason = f"all goals are done ({done}/{total})" if target is Status.DONE else f"goals done {done}/{total}"
        changes.updates.append(StatusChange(EntityKind.STEP, step_id, step.status, target.value, reason))
        step.status = target.value
        step.updated_at = utcnow()
        db.session.add(step)
        logger.debug("Step status rolled up", step_id=step_id, status=target.value, done=done, total=total)

    changes.merge(refresh_plan_status(db, step.plan_id))
    return changes
