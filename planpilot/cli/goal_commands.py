"""`planpilot goal ...` commands."""

from __future__ import annotations

import argparse

from planpilot.cli.context import CommandContext, global_flags, optional_status, status_filter
from planpilot.cli.output import notify_after_step_changes, notify_plans_completed, print_status_changes
from planpilot.cli.parsing import parse_comment_pairs
from planpilot.core.errors import InvalidInputError
from planpilot.core.models import EntityKind, GoalChanges, GoalQuery, Status, StatusChanges
from planpilot.formatting import format_goal_detail, format_goal_list


def _follow_up(ctx: CommandContext, changes: StatusChanges) -> None:
    print_status_changes(changes)
    notify_after_step_changes(ctx.store, changes)
    notify_plans_completed(ctx.store, changes)


def cmd_add(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    if not args.contents:
        raise InvalidInputError("no contents provided")
    goals, changes = ctx.store.add_goals(args.step_id, args.contents)
    if len(goals) == 1:
        print(f"Created goal ID: {goals[0].id} for step ID: {goals[0].step_id}")
    else:
        print(f"Created {len(goals)} goals for step ID: {args.step_id}")
    _follow_up(ctx, changes)
    return [ctx.store.get_step(args.step_id).plan_id]


def cmd_list(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    query = GoalQuery(status=status_filter(args), limit=args.limit, offset=args.offset)
    if args.count:
        print(f"Total: {ctx.store.count_goals(args.step_id, query)}")
        return []

    goals = ctx.store.list_goals(args.step_id, query)
    if not goals:
        print(f"No goals found for step ID: {args.step_id}.")
        return []
    print(format_goal_list(goals))
    return []


def cmd_show(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    detail = ctx.store.get_goal_detail(args.id)
    print(format_goal_detail(detail.goal, detail.step))
    return []


def cmd_comment(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    entries = parse_comment_pairs(EntityKind.GOAL.value, args.pairs)
    plan_ids = ctx.store.comment(EntityKind.GOAL, entries)
    if len(plan_ids) == 1:
        print(f"Updated goal comments for plan ID: {plan_ids[0]}.")
    else:
        print(f"Updated goal comments for {len(plan_ids)} plans.")
    return plan_ids


def cmd_update(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    changes = GoalChanges(content=args.content, status=optional_status(args.status), comment=args.comment)
    goal, updates = ctx.store.update_goal(args.id, changes)
    print(f"Updated goal {goal.id}.")
    _follow_up(ctx, updates)
    return [ctx.store.get_step(goal.step_id).plan_id]


def cmd_done(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    if len(args.ids) == 1:
        goal, changes = ctx.store.set_goal_status(args.ids[0], Status.DONE)
        print(f"Goal ID: {goal.id} marked done.")
        _follow_up(ctx, changes)
        return [ctx.store.get_step(goal.step_id).plan_id]

    plan_ids = ctx.store.plan_ids_for_goals(args.ids)
    updated, changes = ctx.store.set_goals_status(args.ids, Status.DONE)
    print(f"Goals marked done: {updated}.")
    _follow_up(ctx, changes)
    return plan_ids


def cmd_remove(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    if not args.ids:
        raise InvalidInputError("no goal ids provided")
    plan_ids = ctx.store.plan_ids_for_goals(args.ids)
    deleted, changes = ctx.store.delete_goals(args.ids)
    if len(args.ids) == 1:
        print(f"Goal ID: {args.ids[0]} removed.")
    else:
        print(f"Removed {deleted} goals.")
    _follow_up(ctx, changes)
    return plan_ids


def register(subparsers: argparse._SubParsersAction) -> None:
    flags = global_flags()
    goal = subparsers.add_parser("goal", help="Manage goals")
    commands = goal.add_subparsers(dest="goal_command", metavar="COMMAND", required=True)

    p = commands.add_parser("add", parents=[flags], help="Add goals to a step")
    p.add_argument("step_id", type=int)
    p.add_argument("contents", nargs="+", metavar="CONTENT")
    p.set_defaults(func=cmd_add, sync_md=True)

    p = commands.add_parser("list", parents=[flags], help="List a step's goals")
    p.add_argument("step_id", type=int)
    p.add_argument("--all", action="store_true", help="Include done goals")
    p.add_argument("--status", choices=Status.choices())
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int)
    p.add_argument("--count", action="store_true", help="Print only the number of matching goals")
    p.set_defaults(func=cmd_list, sync_md=False)

    p = commands.add_parser("show", parents=[flags], help="Show a goal with its step")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show, sync_md=False)

    p = commands.add_parser("comment", parents=[flags], help="Set goal comments: <id> <comment> ...")
    p.add_argument("pairs", nargs="*", metavar="ARG")
    p.set_defaults(func=cmd_comment, sync_md=True)

    p = commands.add_parser("update", parents=[flags], help="Edit goal fields")
    p.add_argument("id", type=int)
    p.add_argument("--content")
    p.add_argument("--status", choices=Status.choices())
    p.add_argument("--comment")
    p.set_defaults(func=cmd_update, sync_md=True)

    p = commands.add_parser("done", parents=[flags], help="Mark goals done")
    p.add_argument("ids", nargs="+", type=int, metavar="ID")
    p.set_defaults(func=cmd_done, sync_md=True)

    p = commands.add_parser("remove", parents=[flags], help="Remove goals")
    p.add_argument("ids", nargs="+", type=int, metavar="ID")
    p.set_defaults(func=cmd_remove, sync_md=True)
