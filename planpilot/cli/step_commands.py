"""`planpilot step ...` commands."""

from __future__ import annotations

import argparse

from planpilot.cli.context import CommandContext, global_flags, optional_executor, optional_status, status_filter
from planpilot.cli.output import (
    notify_after_step_changes,
    notify_next_step_for_plan,
    notify_plans_completed,
    print_status_changes,
)
from planpilot.cli.parsing import parse_comment_pairs, require_position
from planpilot.constants import NO_ACTIVE_PLAN, NO_PENDING_STEP
from planpilot.core.errors import InvalidInputError
from planpilot.core.models import EntityKind, Executor, Status, StepChanges, StepOrder, StepQuery
from planpilot.formatting import format_step_detail, format_step_list


def cmd_add(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    if not args.contents:
        raise InvalidInputError("no contents provided")
    require_position(args.at)
    steps, changes = ctx.store.add_steps(args.plan_id, args.contents, Executor.from_str(args.executor), args.at)
    if len(steps) == 1:
        print(f"Created step ID: {steps[0].id} for plan ID: {steps[0].plan_id}")
    else:
        print(f"Created {len(steps)} steps for plan ID: {args.plan_id}")
    print_status_changes(changes)
    return [args.plan_id]


def cmd_add_tree(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    executor = optional_executor(args.executor) or Executor.AI
    step, goals, changes = ctx.store.add_step_tree(args.plan_id, args.content, executor, args.goals or [])
    print(f"Created step ID: {step.id} for plan ID: {step.plan_id} (goals: {len(goals)})")
    print_status_changes(changes)
    notify_after_step_changes(ctx.store, changes)
    notify_plans_completed(ctx.store, changes)
    return [step.plan_id]


def cmd_list(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    query = StepQuery(
        status=status_filter(args),
        executor=optional_executor(args.executor),
        limit=args.limit,
        offset=args.offset,
        order=StepOrder(args.order),
        desc=args.desc,
    )
    if args.count:
        print(f"Total: {ctx.store.count_steps(args.plan_id, query)}")
        return []

    steps = ctx.store.list_steps(args.plan_id, query)
    if not steps:
        print(f"No steps found for plan ID: {args.plan_id}.")
        return []
    print(format_step_list(ctx.store.get_steps_detail(steps)))
    return []


def cmd_show(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    detail = ctx.store.get_step_detail(args.id)
    print(format_step_detail(detail.step, detail.goals))
    return []


def cmd_show_next(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    binding = ctx.store.sessions.get_active()
    if binding is None:
        print(NO_ACTIVE_PLAN)
        return []
    step = ctx.store.next_step(binding.plan_id)
    if step is None:
        print(NO_PENDING_STEP)
        return []
    print(format_step_detail(step, ctx.store.goals_for_step(step.id or 0)))
    return []


def cmd_comment(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    entries = parse_comment_pairs(EntityKind.STEP.value, args.pairs)
    plan_ids = ctx.store.comment(EntityKind.STEP, entries)
    if len(plan_ids) == 1:
        print(f"Updated step comments for plan ID: {plan_ids[0]}.")
    else:
        print(f"Updated step comments for {len(plan_ids)} plans.")
    return plan_ids


def cmd_update(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    status = optional_status(args.status)
    changes = StepChanges(
        content=args.content,
        status=status,
        executor=optional_executor(args.executor),
        comment=args.comment,
    )
    step, updates = ctx.store.update_step(args.id, changes)
    print(f"Updated step ID: {step.id}.")
    print_status_changes(updates)
    if status is Status.DONE and step.status == Status.DONE.value:
        notify_next_step_for_plan(ctx.store, step.plan_id)
    notify_plans_completed(ctx.store, updates)
    return [step.plan_id]


def cmd_done(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    step, changes = ctx.store.complete_step(args.id, all_goals=args.all_goals)
    print(f"Step ID: {step.id} marked done.")
    print_status_changes(changes)
    notify_next_step_for_plan(ctx.store, step.plan_id)
    notify_plans_completed(ctx.store, changes)
    return [step.plan_id]


def cmd_move(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    require_position(args.to)
    steps = ctx.store.move_step(args.id, args.to)
    plan_id = steps[0].plan_id
    print(f"Reordered steps for plan ID: {plan_id}:")
    print(format_step_list(ctx.store.get_steps_detail(steps)))
    return [plan_id]


def cmd_remove(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    if not args.ids:
        raise InvalidInputError("no step ids provided")
    plan_ids = ctx.store.plan_ids_for_steps(args.ids)
    deleted, changes = ctx.store.delete_steps(args.ids)
    if len(args.ids) == 1:
        print(f"Step ID: {args.ids[0]} removed.")
    else:
        print(f"Removed {deleted} steps.")
    print_status_changes(changes)
    return plan_ids


def register(subparsers: argparse._SubParsersAction) -> None:
    flags = global_flags()
    step = subparsers.add_parser("step", help="Manage steps")
    commands = step.add_subparsers(dest="step_command", metavar="COMMAND", required=True)

    p = commands.add_parser("add", parents=[flags], help="Add steps to a plan")
    p.add_argument("plan_id", type=int)
    p.add_argument("contents", nargs="+", metavar="CONTENT")
    p.add_argument("--at", type=int, help="1-based insert position (default: append)")
    p.add_argument("--executor", choices=Executor.choices(), default=Executor.AI.value)
    p.set_defaults(func=cmd_add, sync_md=True)

    p = commands.add_parser("add-tree", parents=[flags], help="Add one step with its goals")
    p.add_argument("plan_id", type=int)
    p.add_argument("content")
    p.add_argument("--executor", choices=Executor.choices())
    p.add_argument("--goal", dest="goals", action="append", metavar="GOAL")
    p.set_defaults(func=cmd_add_tree, sync_md=True)

    p = commands.add_parser("list", parents=[flags], help="List a plan's steps")
    p.add_argument("plan_id", type=int)
    p.add_argument("--all", action="store_true", help="Include done steps")
    p.add_argument("--status", choices=Status.choices())
    p.add_argument("--executor", choices=Executor.choices())
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int)
    p.add_argument("--order", choices=StepOrder.choices(), default=StepOrder.ORDER.value)
    p.add_argument("--desc", action="store_true")
    p.add_argument("--count", action="store_true", help="Print only the number of matching steps")
    p.set_defaults(func=cmd_list, sync_md=False)

    p = commands.add_parser("show", parents=[flags], help="Show a step with its goals")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show, sync_md=False)

    p = commands.add_parser("show-next", parents=[flags], help="Show the next pending step of the active plan")
    p.set_defaults(func=cmd_show_next, sync_md=False)

    p = commands.add_parser("comment", parents=[flags], help="Set step comments: <id> <comment> ...")
    p.add_argument("pairs", nargs="*", metavar="ARG")
    p.set_defaults(func=cmd_comment, sync_md=True)

    p = commands.add_parser("update", parents=[flags], help="Edit step fields")
    p.add_argument("id", type=int)
    p.add_argument("--content")
    p.add_argument("--status", choices=Status.choices())
    p.add_argument("--executor", choices=Executor.choices())
    p.add_argument("--comment")
    p.set_defaults(func=cmd_update, sync_md=True)

    p = commands.add_parser("done", parents=[flags], help="Mark a step done")
    p.add_argument("id", type=int)
    p.add_argument("--all-goals", action="store_true", help="Also mark every goal of the step done")
    p.set_defaults(func=cmd_done, sync_md=True)

    p = commands.add_parser("move", parents=[flags], help="Move a step to another position")
    p.add_argument("id", type=int)
    p.add_argument("--to", type=int, required=True)
    p.set_defaults(func=cmd_move, sync_md=True)

    p = commands.add_parser("remove", parents=[flags], help="Remove steps with their goals")
    p.add_argument("ids", nargs="+", type=int, metavar="ID")
    p.set_defaults(func=cmd_remove, sync_md=True)
