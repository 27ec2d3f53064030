"""`planpilot plan ...` commands."""

from __future__ import annotations

import argparse
from pathlib import Path

from planpilot.cli.context import CommandContext, global_flags, optional_status, status_filter
from planpilot.cli.output import PLAN_DONE_DEACTIVATED, notify_plan_completed, write_plan_markdown
from planpilot.cli.parsing import parse_add_tree_steps, parse_comment_pairs, resolve_cwd
from planpilot.constants import NO_ACTIVE_PLAN
from planpilot.core.db_models import Plan
from planpilot.core.errors import InvalidInputError
from planpilot.core.history import collect_session_ids_for_project
from planpilot.core.models import EntityKind, PlanChanges, PlanOrder, PlanQuery, Status
from planpilot.core.search import PlanSearchQuery, SearchField, SearchMode, plan_matches_search
from planpilot.formatting import format_plan_detail, format_plan_list

NO_PLANS = "No plans found."


def cmd_add(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    plan = ctx.store.add_plan(args.title, args.content)
    print(f"Created plan ID: {plan.id}: {plan.title}")
    return [plan.id]


def cmd_add_tree(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    steps = parse_add_tree_steps(args.args)
    plan, step_count, goal_count = ctx.store.add_plan_tree(args.title, args.content, steps)
    print(f"Created plan ID: {plan.id}: {plan.title} (steps: {step_count}, goals: {goal_count})")
    return [plan.id]


def _scoped_plans(ctx: CommandContext, args: argparse.Namespace, query: PlanQuery) -> list[Plan]:
    """List plans, narrowed to the current project with ``--project``."""
    if not args.project:
        return ctx.store.list_plans(query)

    cwd = resolve_cwd(ctx.cwd)
    history_path = Path(ctx.config.history.path).expanduser()
    session_ids = collect_session_ids_for_project(history_path, cwd)
    unpaged = PlanQuery(status=query.status, order=query.order, desc=query.desc)
    plans = [plan for plan in ctx.store.list_plans(unpaged) if plan.last_session_id in session_ids]
    start = query.offset or 0
    end = start + query.limit if query.limit is not None else None
    return plans[start:end]


def cmd_list(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    query = PlanQuery(
        status=status_filter(args),
        order=PlanOrder(args.order),
        desc=args.desc,
        limit=args.limit,
        offset=args.offset,
    )
    plans = _scoped_plans(ctx, args, query)
    if not plans:
        print(NO_PLANS)
        return []
    print(format_plan_list(ctx.store.get_plan_details(plans)))
    return []


def cmd_search(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    search = PlanSearchQuery.build(
        args.search or [],
        mode=SearchMode(args.search_mode),
        search_field=SearchField(args.search_field),
        match_case=args.match_case,
    )
    if not search.has_terms():
        raise InvalidInputError("plan search requires at least one --search")

    plans = _scoped_plans(ctx, args, PlanQuery(status=status_filter(args)))
    details = [detail for detail in ctx.store.get_plan_details(plans) if plan_matches_search(detail, search)]
    if not details:
        print(NO_PLANS)
        return []
    print(format_plan_list(details))
    return []


def cmd_show(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    detail = ctx.store.get_plan_detail(args.id)
    print(format_plan_detail(detail.plan, detail.steps, detail.goals))
    return []


def cmd_export(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    target = Path(args.path).expanduser()
    write_plan_markdown(ctx.store, args.id, target)
    print(f"Exported plan ID: {args.id} to {target}")
    return []


def cmd_comment(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    entries = parse_comment_pairs(EntityKind.PLAN.value, args.pairs)
    plan_ids = ctx.store.comment(EntityKind.PLAN, entries)
    if len(plan_ids) == 1:
        print(f"Updated plan comment for plan ID: {plan_ids[0]}.")
    else:
        print(f"Updated plan comments for {len(plan_ids)} plans.")
    return plan_ids


def _report_plan_status(plan: Plan, cleared: bool) -> None:
    if cleared:
        print(PLAN_DONE_DEACTIVATED)
    if plan.status == Status.DONE.value:
        notify_plan_completed(plan.id or 0)


def cmd_update(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    changes = PlanChanges(
        title=args.title,
        content=args.content,
        status=optional_status(args.status),
        comment=args.comment,
    )
    plan, cleared = ctx.store.update_plan(args.id, changes)
    print(f"Updated plan ID: {plan.id}: {plan.title}")
    _report_plan_status(plan, cleared)
    return [plan.id]


def cmd_done(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    plan, cleared = ctx.store.update_plan(args.id, PlanChanges(status=Status.DONE))
    print(f"Plan ID: {plan.id} marked done.")
    _report_plan_status(plan, cleared)
    return [plan.id]


def cmd_remove(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    ctx.store.delete_plan(args.id)
    print(f"Plan ID: {args.id} removed.")
    return [args.id]


def cmd_activate(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    ctx.store.sessions.activate(args.id, force=args.force)
    plan = ctx.store.get_plan(args.id)
    print(f"Active plan set to {plan.id}: {plan.title}")
    return [plan.id]


def cmd_show_active(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    active = ctx.store.sessions.show_active()
    if active.state == "none" or active.plan_id is None:
        print(NO_ACTIVE_PLAN)
    elif active.state == "missing":
        print(f"Active plan ID: {active.plan_id} not found.")
    else:
        detail = ctx.store.get_plan_detail(active.plan_id)
        print(format_plan_detail(detail.plan, detail.steps, detail.goals))
    return []


def cmd_deactivate(ctx: CommandContext, args: argparse.Namespace) -> list[int]:
    plan_id = ctx.store.sessions.deactivate()
    print("Active plan deactivated.")
    return [plan_id] if plan_id is not None else []


def register(subparsers: argparse._SubParsersAction) -> None:
    flags = global_flags()
    plan = subparsers.add_parser("plan", help="Manage plans")
    commands = plan.add_subparsers(dest="plan_command", metavar="COMMAND", required=True)

    p = commands.add_parser("add", parents=[flags], help="Create a plan")
    p.add_argument("title")
    p.add_argument("content")
    p.set_defaults(func=cmd_add, sync_md=True)

    p = commands.add_parser(
        "add-tree",
        parents=[flags],
        help="Create a plan with steps and goals in one call",
        description="Use --step <content> [--executor ai|human] [--goal <goal> ...] repeating per step.",
    )
    p.add_argument("title")
    p.add_argument("content")
    p.add_argument("args", nargs=argparse.REMAINDER, metavar="ARGS")
    p.set_defaults(func=cmd_add_tree, sync_md=True)

    p = commands.add_parser("list", parents=[flags], help="List plans")
    _add_scope_flags(p)
    p.add_argument("--order", choices=PlanOrder.choices(), default=PlanOrder.UPDATED.value)
    p.add_argument("--desc", action="store_true")
    p.add_argument("--limit", type=int)
    p.add_argument("--offset", type=int)
    p.set_defaults(func=cmd_list, sync_md=False)

    p = commands.add_parser("search", parents=[flags], help="Search plans by text")
    _add_scope_flags(p)
    p.add_argument("--search", action="append", metavar="TERM")
    p.add_argument("--search-mode", choices=SearchMode.choices(), default=SearchMode.ALL.value)
    p.add_argument("--search-field", choices=SearchField.choices(), default=SearchField.PLAN.value)
    p.add_argument("--match-case", action="store_true")
    p.set_defaults(func=cmd_search, sync_md=False)

    p = commands.add_parser("show", parents=[flags], help="Show a plan with its steps and goals")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_show, sync_md=False)

    p = commands.add_parser("export", parents=[flags], help="Write a plan as markdown")
    p.add_argument("id", type=int)
    p.add_argument("path")
    p.set_defaults(func=cmd_export, sync_md=False)

    p = commands.add_parser("comment", parents=[flags], help="Set plan comments: <id> <comment> ...")
    p.add_argument("pairs", nargs="*", metavar="ARG")
    p.set_defaults(func=cmd_comment, sync_md=True)

    p = commands.add_parser("update", parents=[flags], help="Edit plan fields")
    p.add_argument("id", type=int)
    p.add_argument("--title")
    p.add_argument("--content")
    p.add_argument("--status", choices=Status.choices())
    p.add_argument("--comment")
    p.set_defaults(func=cmd_update, sync_md=True)

    p = commands.add_parser("done", parents=[flags], help="Mark a plan done")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_done, sync_md=True)

    p = commands.add_parser("remove", parents=[flags], help="Remove a plan with its steps and goals")
    p.add_argument("id", type=int)
    p.set_defaults(func=cmd_remove, sync_md=True)

    p = commands.add_parser("activate", parents=[flags], help="Bind a plan to this session")
    p.add_argument("id", type=int)
    p.add_argument("--force", action="store_true", help="Take the plan over from another session")
    p.set_defaults(func=cmd_activate, sync_md=True)

    p = commands.add_parser("show-active", parents=[flags], help="Show the plan bound to this session")
    p.set_defaults(func=cmd_show_active, sync_md=False)

    p = commands.add_parser("deactivate", parents=[flags], help="Release this session's plan")
    p.set_defaults(func=cmd_deactivate, sync_md=True)


def _add_scope_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--all", action="store_true", help="Include done plans")
    parser.add_argument("--status", choices=Status.choices())
    parser.add_argument("--project", action="store_true", help="Only plans touched from sessions in --cwd")
