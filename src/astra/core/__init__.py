"""Core — config, error taxonomy, narrative events, memory store."""

from astra.core.config import Settings, settings
from astra.core.errors import (
    AstraError,
    DependencyCycleError,
    ExecutionError,
    ParseError,
    PlanningError,
    SchedulingError,
    StorageError,
    TaskTimeoutError,
    user_message,
)
from astra.core.events import NarrativeEvent
from astra.core.memory import MemoryStore

__all__ = [
    "AstraError",
    "DependencyCycleError",
    "ExecutionError",
    "MemoryStore",
    "NarrativeEvent",
    "ParseError",
    "PlanningError",
    "SchedulingError",
    "Settings",
    "StorageError",
    "TaskTimeoutError",
    "settings",
    "user_message",
]
