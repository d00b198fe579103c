"""Emotion Engine — bounded affect vector with decay toward a baseline.

The state is a small numpy vector over ``DIMENSIONS``. Each tick the runtime
folds that tick's narrative events into it (valence/intensity weighted), then
lets it relax toward the baseline with a configurable half-life measured in
ticks. Every dimension stays within [-1, 1].
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

import numpy as np

from astra.core.events import NarrativeEvent

logger = logging.getLogger(__name__)

DIMENSIONS: tuple[str, ...] = ("valence", "arousal", "dominance")

# Per-dimension response to one event: (valence*intensity, intensity) columns.
_RESPONSE = np.array(
    [
        [1.0, 0.0],  # valence follows the event's signed weight
        [0.0, 1.0],  # arousal follows raw intensity
        [0.5, 0.0],  # dominance follows signed weight, damped
    ]
)


@dataclass(slots=True)
class EmotionState:
    values: np.ndarray
    baseline: np.ndarray
    half_life: float = 8.0  # ticks
    last_tick: int = 0

    @classmethod
    def neutral(
        cls,
        baseline: Iterable[float] = (0.1, 0.0, 0.0),
        half_life: float = 8.0,
    ) -> EmotionState:
        base = np.clip(np.asarray(tuple(baseline), dtype=float), -1.0, 1.0)
        if base.shape != (len(DIMENSIONS),):
            raise ValueError(f"baseline needs {len(DIMENSIONS)} values")
        if half_life <= 0:
            raise ValueError("half_life must be positive")
        return cls(values=base.copy(), baseline=base, half_life=half_life)

    @property
    def valence(self) -> float:
        return float(self.values[0])

    @property
    def arousal(self) -> float:
        return float(self.values[1])

    @property
    def dominance(self) -> float:
        return float(self.values[2])


@dataclass(frozen=True, slots=True)
class Decision:
    """Something being ranked; only ``weight`` may be perturbed by emotion."""

    label: str
    weight: float
    feasible: bool = True
    metadata: dict = field(default_factory=dict, compare=False)


class EmotionEngine:
    def __init__(self, sensitivity: float = 0.35, decision_bound: float = 0.25) -> None:
        if not 0.0 <= decision_bound < 1.0:
            raise ValueError("decision_bound must be in [0, 1)")
        self.sensitivity = sensitivity
        self.decision_bound = decision_bound

    def update_emotion(
        self,
        state: EmotionState,
        event: NarrativeEvent | Iterable[NarrativeEvent],
        tick: int | None = None,
    ) -> EmotionState:
        """Apply event deltas, then decay for the ticks elapsed since the last update.

        ``tick`` defaults to one past ``state.last_tick``. The state is updated
        in place and returned.
        """
        events = [event] if isinstance(event, NarrativeEvent) else list(event)
        now = state.last_tick + 1 if tick is None else tick
        elapsed = max(0, now - state.last_tick)

        values = state.values.astype(float, copy=True)
        for ev in events:
            stimulus = np.array([ev.valence * ev.intensity, ev.intensity])
            values += self.sensitivity * (_RESPONSE @ stimulus)
            values = np.clip(values, -1.0, 1.0)

        if elapsed:
            factor = 0.5 ** (elapsed / state.half_life)
            values = state.baseline + (values - state.baseline) * factor

        state.values = np.clip(values, -1.0, 1.0)
        state.last_tick = now
        return state

    def influence_decision(self, state: EmotionState, decision: Decision) -> Decision:
        """Scale a decision's weight by a bounded factor from valence and arousal.

        Feasibility is never changed.
        """
        drive = 0.6 * state.valence + 0.4 * state.arousal
        factor = 1.0 + self.decision_bound * float(np.clip(drive, -1.0, 1.0))
        return Decision(
            label=decision.label,
            weight=decision.weight * factor,
            feasible=decision.feasible,
            metadata=decision.metadata,
        )

    @staticmethod
    def snapshot(state: EmotionState) -> dict[str, float]:
        return {name: round(float(v), 4) for name, v in zip(DIMENSIONS, state.values)}

    @staticmethod
    def label(state: EmotionState) -> str:
        v, a = state.valence, state.arousal
        if v >= 0.3:
            return "excited" if a >= 0.3 else "content"
        if v <= -0.3:
            return "upset" if a >= 0.3 else "gloomy"
        return "alert" if a >= 0.3 else "calm"
