"""Text renderers for plans, steps and goals.

Detail and list output goes to stdout; the markdown form is written to the
per-plan file under the store directory. All functions are pure.
"""

from __future__ import annotations

from datetime import datetime
from typing import Mapping, Optional, Sequence

from planpilot.constants import DATETIME_FORMAT
from planpilot.core.db_models import Goal, Plan, Step
from planpilot.core.models import PlanDetail, Status, StepDetail


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _done_count(items: Sequence[Step] | Sequence[Goal]) -> int:
    return sum(1 for item in items if item.status == Status.DONE.value)


def format_datetime(value: datetime) -> str:
    return value.strftime(DATETIME_FORMAT)


def format_step_detail(step: Step, goals: Sequence[Goal]) -> str:
    lines = [
        f"Step ID: {step.id}",
        f"Plan ID: {step.plan_id}",
        f"Status: {step.status}",
        f"Executor: {step.executor}",
        f"Content: {step.content}",
    ]
    if _has_text(step.comment):
        lines.append(f"Comment: {step.comment}")
    lines.append(f"Created: {format_datetime(step.created_at)}")
    lines.append(f"Updated: {format_datetime(step.updated_at)}")
    lines.append("")
    if not goals:
        lines.append("Goals: (none)")
        return "\n".join(lines)

    lines.append("Goals:")
    for goal in goals:
        lines.append(f"- [{goal.status}] {goal.content} (goal id {goal.id})")
        if _has_text(goal.comment):
            lines.append(f"  Comment: {goal.comment}")
    return "\n".join(lines).rstrip()


def format_goal_detail(goal: Goal, step: Step) -> str:
    lines = [
        f"Goal ID: {goal.id}",
        f"Step ID: {goal.step_id}",
        f"Plan ID: {step.plan_id}",
        f"Status: {goal.status}",
        f"Content: {goal.content}",
    ]
    if _has_text(goal.comment):
        lines.append(f"Comment: {goal.comment}")
    lines.append(f"Created: {format_datetime(goal.created_at)}")
    lines.append(f"Updated: {format_datetime(goal.updated_at)}")
    lines.append("")
    lines.append(f"Step Status: {step.status}")
    lines.append(f"Step Executor: {step.executor}")
    lines.append(f"Step Content: {step.content}")
    if _has_text(step.comment):
        lines.append(f"Step Comment: {step.comment}")
    return "\n".join(lines).rstrip()


def format_plan_detail(plan: Plan, steps: Sequence[Step], goals: Mapping[int, Sequence[Goal]]) -> str:
    lines = [
        f"Plan ID: {plan.id}",
        f"Title: {plan.title}",
        f"Status: {plan.status}",
        f"Content: {plan.content}",
    ]
    if _has_text(plan.comment):
        lines.append(f"Comment: {plan.comment}")
    lines.append(f"Created: {format_datetime(plan.created_at)}")
    lines.append(f"Updated: {format_datetime(plan.updated_at)}")
    lines.append("")
    if not steps:
        lines.append("Steps: (none)")
        return "\n".join(lines)

    lines.append("Steps:")
    for step in steps:
        step_goals = goals.get(step.id or 0)
        if step_goals is not None:
            counts = f", goals {_done_count(step_goals)}/{len(step_goals)}"
        else:
            counts = ""
        lines.append(f"- [{step.status}] {step.content} (step id {step.id}, exec {step.executor}{counts})")
        if _has_text(step.comment):
            lines.append(f"  Comment: {step.comment}")
        for goal in step_goals or []:
            lines.append(f"  - [{goal.status}] {goal.content} (goal id {goal.id})")
            if _has_text(goal.comment):
                lines.append(f"    Comment: {goal.comment}")
    return "\n".join(lines).rstrip()


# ---------------------------------------------------------------------------
# List tables
# ---------------------------------------------------------------------------

_PLAN_ROW = "{:<4} {:<6} {:<7} {:<30} {}"
_STEP_ROW = "{:<4} {:<6} {:<6} {:<9} {:<30} {}"
_GOAL_ROW = "{:<4} {:<6} {:<30} {}"


def format_plan_list(details: Sequence[PlanDetail]) -> str:
    rows = [_PLAN_ROW.format("ID", "STAT", "STEPS", "TITLE", "COMMENT")]
    for detail in details:
        plan = detail.plan
        progress = f"{detail.steps_done()}/{len(detail.steps)}"
        rows.append(_PLAN_ROW.format(plan.id, plan.status, progress, plan.title, plan.comment or ""))
    return "\n".join(row.rstrip() for row in rows)


def format_step_list(details: Sequence[StepDetail]) -> str:
    rows = [_STEP_ROW.format("ID", "STAT", "EXEC", "GOALS", "CONTENT", "COMMENT")]
    for detail in details:
        step = detail.step
        progress = f"{_done_count(detail.goals)}/{len(detail.goals)}"
        rows.append(_STEP_ROW.format(step.id, step.status, step.executor, progress, step.content, step.comment or ""))
    return "\n".join(row.rstrip() for row in rows)


def format_goal_list(goals: Sequence[Goal]) -> str:
    rows = [_GOAL_ROW.format("ID", "STAT", "CONTENT", "COMMENT")]
    for goal in goals:
        rows.append(_GOAL_ROW.format(goal.id, goal.status, goal.content, goal.comment or ""))
    return "\n".join(row.rstrip() for row in rows)


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def _checkbox(status: str) -> str:
    return "x" if status == Status.DONE.value else " "


def _collapse_heading(text: str) -> str:
    parts = [line.strip() for line in text.replace("\r\n", "\n").splitlines() if line.strip()]
    return " / ".join(parts) if parts else "(untitled)"


def _split_task_text(text: str) -> tuple[str, list[str]]:
    """Split into the first non-blank line and everything after it."""
    lines = text.replace("\r\n", "\n").splitlines()
    for idx, line in enumerate(lines):
        if line.strip():
            return line, lines[idx + 1 :]
    return "(empty)", []


class _MarkdownLines:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def line(self, text: str, indent: int = 0) -> None:
        self.lines.append(" " * indent + text)

    def blank(self, indent: int = 0) -> None:
        self.lines.append(" " * indent)

    def render(self) -> str:
        return "\n".join(self.lines).rstrip()


def format_plan_markdown(
    active: bool,
    activated_at: Optional[datetime],
    plan: Plan,
    steps: Sequence[Step],
    goals: Mapping[int, Sequence[Goal]],
) -> str:
    """Render a plan as the markdown document kept in ``plans/plan_<id>.md``."""
    out = _MarkdownLines()
    out.line("# Plan")
    out.blank()
    out.line(f"## Plan: {_collapse_heading(plan.title)}")
    out.blank()

    out.line(f"- **Active:** `{'true' if active else 'false'}`")
    out.line(f"- **Plan ID:** `{plan.id}`")
    out.line(f"- **Status:** `{plan.status}`")
    if _has_text(plan.comment):
        out.line(f"- **Comment:** {plan.comment}")
    if activated_at is not None:
        out.line(f"- **Activated:** {format_datetime(activated_at)}")
    out.line(f"- **Created:** {format_datetime(plan.created_at)}")
    out.line(f"- **Updated:** {format_datetime(plan.updated_at)}")
    out.line(f"- **Steps:** {_done_count(steps)}/{len(steps)}")
    out.blank()

    out.line("### Plan Content")
    out.blank()
    if not plan.content.strip():
        out.line("*No content*")
    else:
        for text in plan.content.replace("\r\n", "\n").splitlines():
            out.line(f"> {text}" if text else ">")
    out.blank()

    out.line("### Steps")
    out.blank()
    if not steps:
        out.line("*No steps*")
        return out.render()

    for idx, step in enumerate(steps):
        first, rest = _split_task_text(step.content)
        out.line(
            f"- [{_checkbox(step.status)}] **{first}** "
            f"*(id: {step.id}, exec: {step.executor}, order: {step.sort_order})*"
        )
        for text in rest:
            if not text.strip():
                continue
            out.blank(2)
            out.line(text, 2)

        out.blank(2)
        out.line(f"- Created: {format_datetime(step.created_at)}", 2)
        out.line(f"- Updated: {format_datetime(step.updated_at)}", 2)
        if _has_text(step.comment):
            out.line(f"- Comment: {step.comment}", 2)

        step_goals = goals.get(step.id or 0) or []
        if step_goals:
            out.line(f"- Goals: {_done_count(step_goals)}/{len(step_goals)}", 2)
            for goal in step_goals:
                goal_first, goal_rest = _split_task_text(goal.content)
                out.blank(2)
                out.line(f"- [{_checkbox(goal.status)}] {goal_first} *(id: {goal.id})*", 2)
                for text in goal_rest:
                    if not text.strip():
                        continue
                    out.blank(4)
                    out.line(text, 4)
                if _has_text(goal.comment):
                    out.blank(4)
                    out.line(f"Comment: {goal.comment}", 4)
        else:
            out.line("- Goals: 0/0", 2)
            out.blank(2)
            out.line("- (none)", 2)

        if idx + 1 < len(steps):
            out.blank()

    return out.render()
