"""Error taxonomy and the stable messages shown to clients.

Internal exception text is for logs only. Anything that reaches a reply goes
through ``user_message`` so a client always sees one documented sentence per
error kind:

    ParseError        — input could not be read as intents
    ExecutionError    — an intent asks for a capability Astra does not have
    SchedulingError   — work rejected by the scheduler (cycle, full queue)
    TaskTimeoutError  — a task ran past its deadline
    PlanningError     — no plan reaches the goal, or replanning ran out
    StorageError      — the narrative log cannot be read or written (fatal)
"""

from __future__ import annotations


class AstraError(Exception):
    """Base class for every error raised by the runtime."""

    kind = "internal"


class ParseError(AstraError):
    kind = "parse"


class ExecutionError(AstraError):
    kind = "execution"


class SchedulingError(AstraError):
    kind = "scheduling"


class DependencyCycleError(SchedulingError):
    """A submitted batch contains a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = list(cycle)
        super().__init__(f"dependency cycle: {' -> '.join(self.cycle)}")


class TaskTimeoutError(AstraError, TimeoutError):
    kind = "timeout"


class PlanningError(AstraError):
    kind = "planning"


class StorageError(AstraError):
    kind = "storage"


USER_MESSAGES: dict[str, str] = {
    "parse": "Sorry, I couldn't make sense of that input.",
    "execution": "Sorry, that's not something I can do yet.",
    "scheduling": "I couldn't schedule that work right now.",
    "timeout": "That task took too long, so I stopped it.",
    "planning": "I couldn't find a way to reach that goal.",
    "storage": "My memory is unavailable right now.",
    "internal": "Something went wrong on my side.",
}


def user_message(exc: BaseException) -> str:
    """Stable, client-safe message for ``exc``."""
    kind = exc.kind if isinstance(exc, AstraError) else "internal"
    return USER_MESSAGES[kind]
