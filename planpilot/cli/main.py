"""planpilot command dispatcher.

Every invocation opens the workspace store under an exclusive file lock,
runs one command, refreshes the markdown of the plans it touched and exits.

Usage:
    planpilot --cwd PATH --session-id ID plan|step|goal <command> [args...]
    planpilot hook pretooluse|stop < payload.json
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from planpilot import __version__
from planpilot.cli import goal_commands, plan_commands, step_commands
from planpilot.cli.context import CommandContext
from planpilot.cli.output import sync_plan_md
from planpilot.cli.parsing import resolve_session_id
from planpilot.config import PlanpilotConfig, load_planpilot_config
from planpilot.constants import CLI_NAME, CWD_FLAG, MAIN_MODULE, SESSION_ID_FLAG
from planpilot.core.db import open_db
from planpilot.core.errors import PlanpilotError, UnavailableError
from planpilot.core.store import PlanStore
from planpilot.hooks import pretooluse, stop
from planpilot.logging_config import setup_logging
from planpilot.paths import resolve_claude_home


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=CLI_NAME, description="Manage plans and steps with SQLite")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        CWD_FLAG, dest="cwd", metavar="PATH", help="Current working directory (store location and --project scoping)"
    )
    parser.add_argument(SESSION_ID_FLAG, dest="session_id", metavar="ID", help="Session identifier")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    plan_commands.register(subparsers)
    step_commands.register(subparsers)
    goal_commands.register(subparsers)

    hook = subparsers.add_parser("hook", help="Agent lifecycle hooks (JSON on stdin)")
    hook_commands = hook.add_subparsers(dest="hook_command", metavar="HOOK", required=True)
    hook_commands.add_parser("pretooluse", help="Inject --cwd/--session-id into planpilot commands").set_defaults(
        hook=pretooluse.main
    )
    hook_commands.add_parser("stop", help="Approve or block the end of a turn").set_defaults(hook=stop.main)
    return parser


def run_command(args: argparse.Namespace, config: PlanpilotConfig) -> None:
    session_id = resolve_session_id(args.session_id)
    cwd = Path(args.cwd) if args.cwd and args.cwd.strip() else None
    claude_home = resolve_claude_home(cwd, config.store.home)

    with open_db(claude_home, session_id, config.store.busy_timeout_ms) as db:
        store = PlanStore(db)
        ctx = CommandContext(store=store, claude_home=claude_home, cwd=args.cwd, config=config)
        plan_ids = args.func(ctx, args)
        if args.sync_md and config.markdown.sync:
            sync_plan_md(store, claude_home, plan_ids)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "hook":
        setup_logging()
        return int(args.hook())

    try:
        config = load_planpilot_config()
    except ValidationError as exc:
        print(f"Error: Invalid input: invalid config: {exc}", file=sys.stderr)
        return 1
    setup_logging(log_file=config.logging.file, default_level=config.logging.level)

    try:
        run_command(args, config)
    except PlanpilotError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except SQLAlchemyError as exc:
        detail = str(exc).splitlines()[0]
        logger.error("Store failure", command=args.command, error=str(exc))
        print(f"Error: {UnavailableError(f'store error: {detail}')}", file=sys.stderr)
        return 1
    return 0


if __name__ == MAIN_MODULE:
    raise SystemExit(main())
