from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class NarrativeEvent:
    """Immutable record of something that happened.

    ``seq`` is 0 until the memory store assigns the next sequence number.
    ``valence`` (-1..1) and ``intensity`` (0..1) are the event's declared
    emotional weight, read by the emotion engine.
    """

    actor: str
    action: str
    outcome: str = ""
    valence: float = 0.0
    intensity: float = 0.0
    seq: int = 0
    timestamp: float = field(default_factory=time.time)
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not -1.0 <= self.valence <= 1.0:
            raise ValueError(f"valence out of range: {self.valence}")
        if not 0.0 <= self.intensity <= 1.0:
            raise ValueError(f"intensity out of range: {self.intensity}")

    @property
    def emotional_delta(self) -> float:
        return self.valence * self.intensity

    @property
    def is_failure(self) -> bool:
        return "failure" in self.tags

    @property
    def text(self) -> str:
        return f"{self.actor} {self.action} {self.outcome}".strip()

    def render(self) -> str:
        """One-line form used in ``recent_events`` of the chat response."""
        stamp = time.strftime("%H:%M:%S", time.localtime(self.timestamp))
        return f"[{self.seq} {stamp}] {self.actor}.{self.action}: {self.outcome}"

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NarrativeEvent:
        return cls(**{**data, "tags": tuple(data.get("tags", ()))})
