"""Project scoping through the agent's ``history.jsonl``.

Each line is a JSON object carrying at least ``project`` (a directory path)
and ``sessionId``. Plans are attributed to a project through the session
that last touched them.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from loguru import logger

from planpilot.core.errors import UnavailableError


def project_matches_path(project: str, path_raw: str, path_canonical: Optional[str]) -> bool:
    """True if `project` is the path itself or one of its ancestors."""
    if project == path_raw:
        return True
    if path_canonical is not None:
        if project == path_canonical or path_canonical.startswith(f"{project}/"):
            return True
    return path_raw.startswith(f"{project}/")


def collect_session_ids_for_project(history_path: Path, project: Path) -> set[str]:
    """Return session ids whose history entries belong to `project`.

    A missing history file yields an empty set. Unparseable lines are skipped.

    Raises:
        UnavailableError: If the history file exists but cannot be read.
    """
    try:
        raw = history_path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        logger.debug("No history file", path=str(history_path))
        return set()
    except OSError as exc:
        raise UnavailableError(f"cannot read history {history_path}: {exc}") from exc

    path_raw = str(project)
    try:
        path_canonical: Optional[str] = os.path.realpath(project)
    except OSError:
        path_canonical = None

    sessions: set[str] = set()
    for line in raw.splitlines():
        if not line.strip():
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict):
            continue
        entry_project = entry.get("project")
        session_id = entry.get("sessionId")
        if not isinstance(entry_project, str) or not isinstance(session_id, str):
            continue
        if project_matches_path(entry_project, path_raw, path_canonical):
            sessions.add(session_id)
    return sessions
