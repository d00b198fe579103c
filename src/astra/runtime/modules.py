"""Tick modules — the fixed set of components folded into each tick.

Every module exposes the same two hooks:

- ``handle_tick(frame)`` runs once per tick during aggregation, in the order
  the runtime lists them (memory commit, emotion, personality, planner).
- ``on_event(event)`` sees every event committed in that tick.

The set is closed: the runtime builds these four adapters itself and never
discovers modules dynamically.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from astra.cognition.emotion import EmotionEngine, EmotionState
    from astra.cognition.learning import LearningTracker
    from astra.cognition.persona import PersonalityEngine, PersonalityProfile
    from astra.cognition.planner import Goal
    from astra.core.events import NarrativeEvent
    from astra.core.memory import MemoryStore

logger = logging.getLogger(__name__)


class ModuleKind(StrEnum):
    MEMORY = "memory"
    EMOTION = "emotion"
    PERSONALITY = "personality"
    PLANNER = "planner"


@dataclass(slots=True)
class Tick:
    seq: int
    budget: float  # seconds
    started_at: float = field(default_factory=time.time)
    _t0: float = field(default_factory=time.monotonic, repr=False)

    @property
    def deadline(self) -> float:
        """Monotonic instant at which the budget runs out."""
        return self._t0 + self.budget

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())


@dataclass(slots=True)
class RuntimeContext:
    """Affect and trait state, owned by the runtime and written only while aggregating."""

    emotion: EmotionState
    personality: PersonalityProfile


@dataclass(slots=True)
class TickFrame:
    tick: Tick
    context: RuntimeContext
    events: list[NarrativeEvent] = field(default_factory=list)  # drafts, in order
    committed: list[NarrativeEvent] = field(default_factory=list)  # as stored
    feedback: dict[str, float] = field(default_factory=dict)
    retired_goals: list[str] = field(default_factory=list)


class RuntimeModule(ABC):
    kind: ModuleKind

    @abstractmethod
    def handle_tick(self, frame: TickFrame) -> None:
        """Fold this tick's results into the module's state."""

    def on_event(self, event: NarrativeEvent) -> None:
        return None


class MemoryModule(RuntimeModule):
    kind = ModuleKind.MEMORY

    def __init__(self, memory: MemoryStore) -> None:
        self.memory = memory

    def handle_tick(self, frame: TickFrame) -> None:
        # StorageError propagates: a tick that cannot be recorded is fatal
        frame.committed = self.memory.store_events(frame.events)


class EmotionModule(RuntimeModule):
    kind = ModuleKind.EMOTION

    def __init__(self, engine: EmotionEngine) -> None:
        self.engine = engine

    def handle_tick(self, frame: TickFrame) -> None:
        self.engine.update_emotion(frame.context.emotion, frame.committed, frame.tick.seq)


class PersonalityModule(RuntimeModule):
    kind = ModuleKind.PERSONALITY

    def __init__(self, engine: PersonalityEngine) -> None:
        self.engine = engine

    def handle_tick(self, frame: TickFrame) -> None:
        if frame.feedback:
            self.engine.update_traits(frame.context.personality, frame.feedback)
            logger.info("Personality adapted: %s", self.engine.summary(frame.context.personality))


class PlannerModule(RuntimeModule):
    """Keeps the active-goal set and feeds learning progress from committed events."""

    kind = ModuleKind.PLANNER

    def __init__(self, learning: LearningTracker) -> None:
        self.learning = learning
        self.active_goals: dict[str, Goal] = {}

    def activate(self, goal: Goal) -> None:
        self.active_goals[goal.id] = goal

    def handle_tick(self, frame: TickFrame) -> None:
        for goal_id in frame.retired_goals:
            self.active_goals.pop(goal_id, None)

    def on_event(self, event: NarrativeEvent) -> None:
        tags = set(event.tags)
        if "goal_achieved" in tags:
            self.learning.record_session()
        if "code_module" in tags and "completed" in tags:
            self.learning.record_module()
        for tag in tags:
            if tag.startswith("concept:"):
                self.learning.record_concept(tag.removeprefix("concept:"))
