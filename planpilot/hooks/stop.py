"""Stop hook: keep the agent working while its plan has an ai step pending.

Reads ``{"session_id": ..., "cwd": ...}`` from stdin and prints
``{"decision": "approve"}`` or ``{"decision": "block", "reason": ...}``.
Every failure approves, so a broken store never traps the agent.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from loguru import logger

from planpilot.config import load_planpilot_config
from planpilot.core.db import open_db
from planpilot.core.decision import StopDecision, evaluate_stop
from planpilot.core.store import PlanStore
from planpilot.paths import resolve_claude_home


def decide(data: dict[str, object]) -> StopDecision:
    session_id = data.get("session_id")
    cwd = data.get("cwd")
    if not isinstance(session_id, str) or not isinstance(cwd, str):
        return StopDecision.approve()
    if not session_id.strip() or not cwd.strip():
        return StopDecision.approve()

    config = load_planpilot_config()
    claude_home = resolve_claude_home(Path(cwd), config.store.home)
    with open_db(claude_home, session_id.strip(), config.store.busy_timeout_ms) as db:
        return evaluate_stop(PlanStore(db))


def main() -> int:
    try:
        raw_input = sys.stdin.read()
        data = json.loads(raw_input) if raw_input.strip() else {}
        decision = decide(data) if isinstance(data, dict) else StopDecision.approve()
    except Exception as exc:  # noqa: BLE001 - fail-open, the agent may stop
        logger.debug("stop hook approving after error", error=str(exc))
        decision = StopDecision.approve()

    sys.stdout.write(json.dumps(decision.to_payload()))
    sys.stdout.flush()
    return 0
