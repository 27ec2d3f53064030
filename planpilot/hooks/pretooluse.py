"""PreToolUse hook: pin planpilot invocations to the agent's session.

Claude runs Bash commands without telling planpilot which session or
workspace they belong to. This hook rewrites a command whose leading word
is ``planpilot`` to ``planpilot --cwd <cwd> --session-id <id> <args>`` and
hands the rewritten command back to the agent runtime. Commands that only
mention planpilot later on (after ``cd x &&``, in a pipe) are left alone.

The hook never fails the tool call: any problem means no output and exit 0.
"""

from __future__ import annotations

import json
import shlex
import sys
from typing import Optional, cast

from loguru import logger

from planpilot.constants import CLI_NAME, CWD_FLAG, SESSION_ID_FLAG

BASH_TOOL = "Bash"
_WORD_BREAKS = (" ", "\t")


def command_matches(command: str) -> bool:
    """True when the command starts with ``planpilot`` followed by arguments."""
    stripped = command.lstrip()
    if not stripped.startswith(CLI_NAME):
        return False
    after = stripped[len(CLI_NAME) :]
    return after.startswith(_WORD_BREAKS) and bool(after.strip())


def inject_flags(command: str, cwd: str, session_id: str) -> str:
    """Insert the session flags right after the leading ``planpilot`` word.

    Commands that already carry either flag, or that do not start with
    planpilot, are returned unchanged. Leading whitespace is kept.
    """
    if CWD_FLAG in command or SESSION_ID_FLAG in command:
        return command
    if not command_matches(command):
        return command

    point = len(command) - len(command.lstrip()) + len(CLI_NAME)
    flags = f" {CWD_FLAG} {shlex.quote(cwd)} {SESSION_ID_FLAG} {shlex.quote(session_id)}"
    return command[:point] + flags + command[point:]


def build_output(data: dict[str, object]) -> Optional[dict[str, object]]:
    """Hook response for a PreToolUse payload, or None to pass through."""
    if data.get("tool_name") != BASH_TOOL:
        return None
    tool_input = data.get("tool_input")
    if not isinstance(tool_input, dict):
        return None
    command = tool_input.get("command")
    if not isinstance(command, str) or not command.strip() or not command_matches(command):
        return None

    session_id = data.get("session_id")
    cwd = data.get("cwd")
    if not isinstance(session_id, str) or not isinstance(cwd, str):
        return None
    if not session_id.strip() or not cwd.strip():
        return None

    updated = inject_flags(command, cwd, session_id)
    if updated == command:
        return None

    permission_decision = "ask" if data.get("permission_mode") == "ask" else "allow"
    return {
        "hookSpecificOutput": {
            "hookEventName": "PreToolUse",
            "permissionDecision": permission_decision,
            "updatedInput": {"command": updated},
        }
    }


def _read_stdin() -> dict[str, object]:
    raw_input = sys.stdin.read()
    if not raw_input.strip():
        return {}
    parsed = json.loads(raw_input)
    if not isinstance(parsed, dict):
        raise ValueError("Hook stdin payload must be a JSON object")
    return cast(dict[str, object], parsed)


def main() -> int:
    try:
        output = build_output(_read_stdin())
    except Exception as exc:  # noqa: BLE001 - fail-open, the tool call proceeds untouched
        logger.debug("pretooluse pass-through", error=str(exc))
        return 0

    if output is not None:
        sys.stdout.write(json.dumps(output))
        sys.stdout.flush()
    return 0
