"""Per-invocation state handed to every command handler."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from planpilot.config import PlanpilotConfig
from planpilot.constants import CWD_FLAG, SESSION_ID_FLAG
from planpilot.core.models import Executor, Status
from planpilot.core.store import PlanStore


@dataclass
class CommandContext:
    store: PlanStore
    claude_home: Path
    cwd: Optional[str]
    config: PlanpilotConfig


# Handlers return the ids of plans whose markdown file needs refreshing.
Handler = Callable[[CommandContext, argparse.Namespace], list[int]]


def global_flags() -> argparse.ArgumentParser:
    """Parent parser so ``--cwd`` / ``--session-id`` work after any subcommand."""
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(CWD_FLAG, dest="cwd", metavar="PATH", default=argparse.SUPPRESS)
    parent.add_argument(SESSION_ID_FLAG, dest="session_id", metavar="ID", default=argparse.SUPPRESS)
    return parent


def status_filter(args: argparse.Namespace) -> Optional[Status]:
    """List filter: todo unless ``--all`` or ``--status`` says otherwise."""
    if getattr(args, "all", False):
        return None
    if getattr(args, "status", None):
        return Status(args.status)
    return Status.TODO


def optional_status(value: Optional[str]) -> Optional[Status]:
    return Status(value) if value else None


def optional_executor(value: Optional[str]) -> Optional[Executor]:
    return Executor.from_str(value) if value else None
