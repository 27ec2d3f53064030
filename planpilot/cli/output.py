"""Follow-up output shared by the command handlers.

Auto status updates, next-step notifications and the per-plan markdown
files all derive from the `StatusChanges` an operation returns.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable

from loguru import logger

from planpilot import paths
from planpilot.core.errors import NotFoundError, UnavailableError
from planpilot.core.models import Executor, Status, StatusChanges
from planpilot.core.store import PlanStore, unique_ids
from planpilot.formatting import format_plan_markdown, format_step_detail

PLAN_COMPLETE = "Plan ID: {plan_id} is complete. Summarize the completed results to the user, then end this turn."
NEXT_AI_STEP = "Next step is assigned to ai (step ID: {step_id}). Please end this turn so Planpilot can surface it."
NEXT_HUMAN_STEP = "Next step requires human action:"
HUMAN_STEP_FOLLOWUP = (
    "Tell the user to complete the above step and goals. Confirm each goal when done, then end this turn."
)
PLAN_DONE_DEACTIVATED = "Active plan deactivated because plan is done."


def print_status_changes(changes: StatusChanges) -> None:
    if changes.is_empty():
        return

    print("Auto status updates:")
    for change in changes.steps:
        print(
            f"- Step ID: {change.entity_id} status auto-updated from {change.previous} "
            f"to {change.current} ({change.reason})."
        )
    for change in changes.plans:
        print(
            f"- Plan ID: {change.entity_id} status auto-updated from {change.previous} "
            f"to {change.current} ({change.reason})."
        )
    for cleared in changes.active_plans_cleared:
        print(f"- Active plan deactivated for plan ID: {cleared.plan_id} ({cleared.reason}).")


def notify_plan_completed(plan_id: int) -> None:
    print(PLAN_COMPLETE.format(plan_id=plan_id))


def notify_next_step_for_plan(store: PlanStore, plan_id: int) -> None:
    step = store.next_step(plan_id)
    if step is None:
        return
    if step.executor == Executor.AI.value:
        print(NEXT_AI_STEP.format(step_id=step.id))
        return

    print(NEXT_HUMAN_STEP)
    print(format_step_detail(step, store.goals_for_step(step.id or 0)))
    print(HUMAN_STEP_FOLLOWUP)


def notify_after_step_changes(store: PlanStore, changes: StatusChanges) -> None:
    """Surface the next step of every plan where a step just closed."""
    done_steps = [change.entity_id for change in changes.steps if change.current == Status.DONE.value]
    for plan_id in store.plan_ids_for_steps(done_steps):
        notify_next_step_for_plan(store, plan_id)


def notify_plans_completed(store: PlanStore, changes: StatusChanges) -> None:
    closed = unique_ids(change.entity_id for change in changes.plans if change.current == Status.DONE.value)
    for plan_id in closed:
        if store.get_plan(plan_id).status == Status.DONE.value:
            notify_plan_completed(plan_id)


def write_plan_markdown(store: PlanStore, plan_id: int, target: Path) -> None:
    """Render one plan to `target`, marking it active if this session holds it."""
    detail = store.get_plan_detail(plan_id)
    binding = store.sessions.get_active()
    is_active = binding is not None and binding.plan_id == plan_id
    activated_at = binding.updated_at if is_active and binding is not None else None
    markdown = format_plan_markdown(is_active, activated_at, detail.plan, detail.steps, detail.goals)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(markdown, encoding="utf-8")
    except OSError as exc:
        raise UnavailableError(f"cannot write {target}: {exc}") from exc


def sync_plan_md(store: PlanStore, claude_home: Path, plan_ids: Iterable[int]) -> None:
    """Refresh ``plans/plan_<id>.md``; a plan that no longer exists loses its file.

    Runs after the command committed, so a failed write is logged, not raised.
    """
    for plan_id in unique_ids(plan_ids):
        target = paths.plan_md_path(claude_home, plan_id)
        try:
            write_plan_markdown(store, plan_id, target)
        except NotFoundError:
            try:
                target.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Plan markdown not removed", plan_id=plan_id, error=str(exc))
                continue
            logger.debug("Removed plan markdown", plan_id=plan_id)
        except UnavailableError as exc:
            logger.warning("Plan markdown not written", plan_id=plan_id, error=exc.message)
