"""Stop-Decision Protocol: may the agent end its turn?

The answer depends only on the session's binding and the bound plan's next
pending step. Anything that is not an ai-owned pending step approves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from loguru import logger

from planpilot.constants import STOP_INSTRUCTIONS, STOP_MARKER
from planpilot.core.models import Executor, Status
from planpilot.core.store import PlanStore
from planpilot.formatting import format_step_detail

APPROVE = "approve"
BLOCK = "block"


@dataclass
class StopDecision:
    decision: str
    reason: Optional[str] = None

    @classmethod
    def approve(cls) -> "StopDecision":
        return cls(APPROVE)

    @classmethod
    def block(cls, reason: str) -> "StopDecision":
        return cls(BLOCK, reason)

    def to_payload(self) -> dict[str, str]:
        if self.decision == BLOCK and self.reason is not None:
            return {"decision": BLOCK, "reason": self.reason}
        return {"decision": APPROVE}


def block_reason(detail: str) -> str:
    return f"{STOP_MARKER}\n{STOP_INSTRUCTIONS}\n\n{detail}"


def evaluate_stop(store: PlanStore) -> StopDecision:
    """Decide whether the session bound to `store` may stop."""
    active = store.sessions.show_active()
    if active.plan_id is None or active.state != "ok":
        logger.debug("Stop approved", reason=f"binding {active.state}")
        return StopDecision.approve()

    plan = store.get_plan(active.plan_id)
    if plan.status == Status.DONE.value:
        # Rollup clears bindings of done plans; this catches manual edits made elsewhere.
        store.sessions.clear_for_plan(plan.id or active.plan_id)
        logger.debug("Stop approved", reason="plan done", plan_id=plan.id)
        return StopDecision.approve()

    step = store.next_step(active.plan_id)
    if step is None:
        logger.debug("Stop approved", reason="no pending step", plan_id=plan.id)
        return StopDecision.approve()

    if step.executor != Executor.AI.value:
        logger.debug("Stop approved", reason="human step", step_id=step.id)
        return StopDecision.approve()

    detail = format_step_detail(step, store.goals_for_step(step.id or 0))
    logger.debug("Stop blocked", plan_id=plan.id, step_id=step.id)
    return StopDecision.block(block_reason(detail))
