"""Resolution of the Claude home and the store files below it."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from planpilot.constants import (
    CLAUDE_DIR_NAME,
    DB_FILE_NAME,
    ENV_HOME,
    ENV_PLUGIN_ROOT,
    LOCK_FILE_NAME,
    PLANS_DIR_NAME,
    STORE_DIR_NAME,
)
from planpilot.core.errors import InvalidInputError


def find_claude_home(start: Path) -> Optional[Path]:
    """Return the nearest ancestor (or start itself) named `.claude`."""
    for candidate in (start, *start.parents):
        if candidate.name == CLAUDE_DIR_NAME:
            return candidate
    return None


def resolve_claude_home(cwd: Optional[Path] = None, configured: Optional[str] = None) -> Path:
    """Resolve the directory that holds the planpilot store.

    Order: PLANPILOT_HOME / configured home, then ``<cwd>/.claude`` (one
    store per workspace), then the `.claude` ancestor of CLAUDE_PLUGIN_ROOT,
    then ``~/.claude`` when it exists.

    Raises:
        InvalidInputError: If no candidate applies.
    """
    explicit = os.environ.get(ENV_HOME) or configured
    if explicit:
        return Path(explicit).expanduser()

    if cwd is not None:
        return cwd / CLAUDE_DIR_NAME

    plugin_root = os.environ.get(ENV_PLUGIN_ROOT)
    if plugin_root:
        home = find_claude_home(Path(plugin_root))
        if home is not None:
            return home

    candidate = Path.home() / CLAUDE_DIR_NAME
    if candidate.is_dir():
        return candidate

    raise InvalidInputError("unable to resolve Claude home; set CLAUDE_PLUGIN_ROOT")


def store_dir(claude_home: Path) -> Path:
    return claude_home / STORE_DIR_NAME


def db_path(claude_home: Path) -> Path:
    return store_dir(claude_home) / DB_FILE_NAME


def lock_path(claude_home: Path) -> Path:
    return store_dir(claude_home) / LOCK_FILE_NAME


def plan_md_path(claude_home: Path, plan_id: int) -> Path:
    return store_dir(claude_home) / PLANS_DIR_NAME / f"plan_{plan_id}.md"
