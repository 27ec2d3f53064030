"""Constants used across planpilot.

This module defines shared names and fixed message strings so the CLI,
hooks and tests agree on them.
"""

MAIN_MODULE = "__main__"

CLI_NAME = "planpilot"

# Flags injected by the pretooluse hook
CWD_FLAG = "--cwd"
SESSION_ID_FLAG = "--session-id"

# Environment
ENV_HOME = "PLANPILOT_HOME"
ENV_CONFIG = "PLANPILOT_CONFIG"
ENV_LOG_LEVEL = "PLANPILOT_LOG_LEVEL"
ENV_PLUGIN_ROOT = "CLAUDE_PLUGIN_ROOT"

# Store layout (relative to the resolved Claude home)
CLAUDE_DIR_NAME = ".claude"
STORE_DIR_NAME = ".planpilot"
DB_FILE_NAME = "planpilot.db"
LOCK_FILE_NAME = "planpilot.lock"
PLANS_DIR_NAME = "plans"
DEFAULT_CONFIG_PATH = "~/.planpilot/planpilot.yml"
DEFAULT_HISTORY_PATH = "~/.claude/history.jsonl"

# SQLite
DEFAULT_BUSY_TIMEOUT_MS = 5000

DATETIME_FORMAT = "%Y-%m-%d %H:%M"

# Stop hook
STOP_MARKER = "Planpilot (auto):"
STOP_INSTRUCTIONS = (
    "Before acting, think through the next step and its goals. "
    "Record implementation details using Planpilot comments (plan/step/goal --comment or comment commands). "
    "Continue with the next step (executor: ai). "
    "Do not ask for confirmation; proceed and report results."
)

# CLI messages inspected by the stop hook and tests
NO_ACTIVE_PLAN = "No active plan."
NO_PENDING_STEP = "No pending step."
