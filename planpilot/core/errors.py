"""Error taxonomy for planpilot operations.

NotFoundError and InvalidInputError are recovered at the command boundary
(message + exit 1). UnavailableError is recovered earlier by the hooks,
which degrade to approve / pass-through.
"""

from __future__ import annotations


class PlanpilotError(Exception):
    """Base class for errors reported to the user."""

    label = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if "\n" in self.message:
            return f"{self.label}:\n{self.message}"
        return f"{self.label}: {self.message}"


class NotFoundError(PlanpilotError):
    """A referenced identity does not exist."""

    label = "Not found"


class InvalidInputError(PlanpilotError):
    """Business-rule violation or malformed arguments."""

    label = "Invalid input"


class UnavailableError(PlanpilotError):
    """The store, its lock, or the Claude home cannot be reached."""

    label = "Unavailable"


def join_ids(ids: list[int]) -> str:
    return ", ".join(str(i) for i in ids)


def missing_ids_error(kind: str, missing: list[int]) -> NotFoundError:
    return NotFoundError(f"{kind} id(s) not found: {join_ids(missing)}")
