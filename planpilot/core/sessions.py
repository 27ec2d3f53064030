"""Session Lock Manager: exclusive binding of an agent session to a plan.

The binding lives in the ``active_plan`` table, unique on both session_id and
plan_id, so at most one session holds a plan and a session holds at most one
plan. Check-then-set runs inside a single immediate transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy import or_
from sqlmodel import select

from planpilot.core.db import Db
from planpilot.core.db_models import ActivePlan, Plan, utcnow
from planpilot.core.errors import InvalidInputError, NotFoundError
from planpilot.core.models import Status


def clear_plan_bindings(db: Db, plan_id: int) -> bool:
    """Drop every binding of `plan_id`.

    Returns:
        True if the current session was one of the holders.
    """
    rows = db.session.exec(select(ActivePlan).where(ActivePlan.plan_id == plan_id)).all()
    held = any(row.session_id == db.session_id for row in rows)
    for row in rows:
        db.session.delete(row)
    if rows:
        db.session.flush()
        logger.debug("Cleared plan bindings", plan_id=plan_id, count=len(rows))
    return held


@dataclass
class ActiveState:
    """Result of `SessionLock.show_active`.

    `state` is one of "none", "missing" or "ok".
    """

    state: str
    plan_id: Optional[int] = None
    binding: Optional[ActivePlan] = None


class SessionLock:
    """Active-plan bindings for the session that owns `db`."""

    def __init__(self, db: Db) -> None:
        self.db = db

    def get_active(self) -> Optional[ActivePlan]:
        return self.db.session.exec(select(ActivePlan).where(ActivePlan.session_id == self.db.session_id)).first()

    def binding_for_plan(self, plan_id: int) -> Optional[ActivePlan]:
        return self.db.session.exec(select(ActivePlan).where(ActivePlan.plan_id == plan_id)).first()

    def activate(self, plan_id: int, force: bool = False) -> ActivePlan:
        """Bind `plan_id` to this session.

        Args:
            plan_id: Plan to bind.
            force: Take the plan over from another session.

        Returns:
            The new binding row.

        Raises:
            NotFoundError: If the plan does not exist.
            InvalidInputError: If the plan is done, or held elsewhere without force.
        """
        with self.db.transaction() as db_session:
            plan = db_session.get(Plan, plan_id)
            if plan is None:
                raise NotFoundError(f"plan id {plan_id}")
            if plan.status == Status.DONE.value:
                raise InvalidInputError("cannot activate plan; plan is done")

            existing = self.binding_for_plan(plan_id)
            if existing is not None and existing.session_id != self.db.session_id and not force:
                raise InvalidInputError(
                    f"plan id {plan_id} is already active in session {existing.session_id} "
                    "(use --force to take over)"
                )
            if existing is not None and existing.session_id != self.db.session_id:
                logger.info("Plan taken over", plan_id=plan_id, previous_session=existing.session_id)

            stale = db_session.exec(
                select(ActivePlan).where(or_(ActivePlan.session_id == self.db.session_id, ActivePlan.plan_id == plan_id))
            ).all()
            for row in stale:
                db_session.delete(row)
            db_session.flush()

            binding = ActivePlan(session_id=self.db.session_id, plan_id=plan_id, updated_at=utcnow())
            db_session.add(binding)
            self.db.touch_plan(plan_id)

        logger.debug("Activated plan", plan_id=plan_id, session_id=self.db.session_id[:8])
        return binding

    def deactivate(self) -> Optional[int]:
        """Release this session's binding, if any.

        Returns:
            The plan id that was bound, or None.
        """
        with self.db.transaction() as db_session:
            binding = self.get_active()
            if binding is None:
                return None
            plan_id = binding.plan_id
            db_session.delete(binding)
        logger.debug("Deactivated plan", plan_id=plan_id)
        return plan_id

    def clear_for_plan(self, plan_id: int) -> bool:
        with self.db.transaction():
            return clear_plan_bindings(self.db, plan_id)

    def show_active(self) -> ActiveState:
        """Resolve this session's binding, clearing it if the plan vanished."""
        binding = self.get_active()
        if binding is None:
            return ActiveState("none")
        if self.db.session.get(Plan, binding.plan_id) is None:
            plan_id = binding.plan_id
            self.deactivate()
            logger.info("Cleared stale binding", plan_id=plan_id)
            return ActiveState("missing", plan_id=plan_id)
        return ActiveState("ok", plan_id=binding.plan_id, binding=binding)
