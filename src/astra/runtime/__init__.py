"""Runtime — intents, the task scheduler, and the tick loop (``astra.runtime.core``)."""

from astra.runtime.intents import Intent, IntentKind, parse_program
from astra.runtime.scheduler import Scheduler, Task, TaskContext, TaskOutcome, TaskState

__all__ = [
    "Intent",
    "IntentKind",
    "Scheduler",
    "Task",
    "TaskContext",
    "TaskOutcome",
    "TaskState",
    "parse_program",
]
