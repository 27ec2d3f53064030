"""Agent lifecycle hooks (PreToolUse flag injection, Stop decision)."""
