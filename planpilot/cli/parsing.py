"""Argument parsing that argparse alone cannot express.

`plan add-tree` takes a flat, order-sensitive list of ``--step``,
``--executor`` and ``--goal`` flags; `* comment` takes ``<id> <comment>``
pairs. Both are collected raw and parsed here.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from planpilot.constants import CWD_FLAG, SESSION_ID_FLAG
from planpilot.core.errors import InvalidInputError
from planpilot.core.models import Executor, StepInput
from planpilot.core.store import require_non_empty

ADD_TREE = "plan add-tree"


def resolve_session_id(value: Optional[str]) -> str:
    if value is None:
        raise InvalidInputError(f"{SESSION_ID_FLAG} is required")
    trimmed = value.strip()
    if not trimmed:
        raise InvalidInputError(f"{SESSION_ID_FLAG} is empty")
    return trimmed


def resolve_cwd(value: Optional[str]) -> Path:
    if value is None:
        raise InvalidInputError(f"{CWD_FLAG} is required")
    if not value.strip():
        raise InvalidInputError(f"{CWD_FLAG} is empty")
    return Path(value)


def require_position(value: Optional[int]) -> None:
    if value is not None and value == 0:
        raise InvalidInputError("position starts at 1")


def parse_comment_pairs(kind: str, pairs: Sequence[str]) -> list[tuple[int, str]]:
    """Turn ``[id, text, id, text, ...]`` into ``[(id, text), ...]``."""
    if not pairs:
        raise InvalidInputError(f"{kind} comment requires <id> <comment> pairs")
    if len(pairs) % 2 != 0:
        raise InvalidInputError(f"{kind} comment expects <id> <comment> pairs")

    parsed = []
    for id_value, comment in zip(pairs[::2], pairs[1::2]):
        try:
            entity_id = int(id_value)
        except ValueError:
            raise InvalidInputError(f"{kind} comment id '{id_value}' is invalid") from None
        require_non_empty("comment", comment)
        parsed.append((entity_id, comment))
    return parsed


def _step_value(value: str) -> StepInput:
    trimmed = value.strip()
    if not trimmed:
        raise InvalidInputError(f"{ADD_TREE} --step cannot be empty")
    if trimmed.startswith("{"):
        raise InvalidInputError(
            f"{ADD_TREE} no longer accepts JSON step specs; "
            "use --step <content> [--executor ai|human] [--goal <goal> ...]"
        )
    return StepInput(content=value)


def parse_add_tree_steps(args: Sequence[str]) -> list[StepInput]:
    """Parse ``--step C [--executor E] [--goal G]...`` groups in order.

    ``--executor`` and ``--goal`` attach to the nearest preceding ``--step``.
    A bare ``--`` is skipped.
    """
    steps: list[StepInput] = []
    current: Optional[StepInput] = None
    idx = 0

    def value_for(flag: str) -> str:
        if idx + 1 >= len(args):
            raise InvalidInputError(f"{ADD_TREE} {flag} requires a value")
        return args[idx + 1]

    def require_current(flag: str) -> StepInput:
        if current is None:
            raise InvalidInputError(f"{ADD_TREE} {flag} must follow a --step")
        return current

    while idx < len(args):
        arg = args[idx]
        if arg == "--":
            idx += 1
            continue
        if arg == "--step":
            value = value_for(arg)
            if current is not None:
                steps.append(current)
            current = _step_value(value)
        elif arg == "--executor":
            value = value_for(arg)
            executor = Executor.from_str(value)
            require_current(arg).executor = executor
        elif arg == "--goal":
            value = value_for(arg)
            require_current(arg).goals.append(value)
        else:
            raise InvalidInputError(f"{ADD_TREE} unexpected argument: {arg}")
        idx += 2

    if current is not None:
        steps.append(current)
    if not steps:
        raise InvalidInputError(f"{ADD_TREE} requires at least one --step")
    return steps
