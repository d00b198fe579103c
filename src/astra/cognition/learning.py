from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass(slots=True)
class LearningProgress:
    concepts_learned: int = 0
    research_sessions: int = 0
    code_modules_created: int = 0
    last_updated: str = field(default_factory=_now_iso)


class LearningTracker:
    """Counters behind ``/api/visualization/learning_progress``."""

    def __init__(self) -> None:
        self._progress = LearningProgress()
        self._concepts: set[str] = set()
        self._lock = threading.Lock()

    def record_concept(self, concept: str) -> bool:
        key = concept.strip().lower()
        with self._lock:
            if not key or key in self._concepts:
                return False
            self._concepts.add(key)
            self._progress.concepts_learned = len(self._concepts)
            self._progress.last_updated = _now_iso()
            return True

    def record_session(self) -> None:
        with self._lock:
            self._progress.research_sessions += 1
            self._progress.last_updated = _now_iso()

    def record_module(self) -> None:
        with self._lock:
            self._progress.code_modules_created += 1
            self._progress.last_updated = _now_iso()

    def snapshot(self) -> dict:
        with self._lock:
            return asdict(self._progress)
