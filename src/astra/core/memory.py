from __future__ import annotations

import json
import logging
import threading
from collections import deque
from dataclasses import replace
from pathlib import Path
from typing import Iterable

from astra.core.errors import StorageError
from astra.core.events import NarrativeEvent

logger = logging.getLogger(__name__)


class MemoryStore:
    """Append-only narrative log.

    Events get the next sequence number on append. Once ``capacity`` is
    reached the oldest events are evicted; retained events are never touched.
    With ``path`` set every append is also written to a JSONL file, and the
    tail of that file is loaded on start-up.
    """

    def __init__(self, capacity: int = 1000, path: Path | None = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self._capacity = capacity
        self._path = path
        self._events: deque[NarrativeEvent] = deque(maxlen=capacity)
        self._last_seq = 0
        self._evicted = 0
        self._lock = threading.Lock()
        if path is not None:
            self._load(path)

    def _load(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
            for line in lines:
                if not line.strip():
                    continue
                event = NarrativeEvent.from_dict(json.loads(line))
                if event.seq <= self._last_seq:
                    raise ValueError(f"sequence {event.seq} out of order")
                self._events.append(event)
                self._last_seq = event.seq
        except (OSError, ValueError, TypeError) as exc:
            raise StorageError(f"cannot load narrative log {path}: {exc}") from exc
        logger.info("Loaded %d events from %s (last seq %d)", len(self._events), path, self._last_seq)

    def _persist(self, events: list[NarrativeEvent]) -> None:
        if self._path is None:
            return
        payload = "".join(
            json.dumps(event.to_dict(), ensure_ascii=False) + "\n" for event in events
        ).encode("utf-8")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # unbuffered, so a failed batch can be cut back to where it began
            with self._path.open("ab", buffering=0) as f:
                start = f.tell()
                try:
                    view = memoryview(payload)
                    while view:
                        view = view[f.write(view):]
                except OSError:
                    f.truncate(start)
                    raise
        except OSError as exc:
            raise StorageError(f"cannot write narrative log {self._path}: {exc}") from exc

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def last_seq(self) -> int:
        return self._last_seq

    def __len__(self) -> int:
        return len(self._events)

    def store_event(self, event: NarrativeEvent) -> NarrativeEvent:
        """Append one event and return it with its sequence number."""
        return self.store_events([event])[0]

    def store_events(self, events: Iterable[NarrativeEvent]) -> list[NarrativeEvent]:
        """Append a batch atomically: either all events are stored or none."""
        with self._lock:
            stored = [
                replace(event, seq=self._last_seq + i)
                for i, event in enumerate(events, start=1)
            ]
            if not stored:
                return []
            self._persist(stored)
            overflow = max(0, len(self._events) + len(stored) - self._capacity)
            if overflow:
                self._evicted += overflow
                logger.debug("Evicting %d oldest events", overflow)
            self._events.extend(stored)
            self._last_seq = stored[-1].seq
            return stored

    def recent_events(self, limit: int) -> list[NarrativeEvent]:
        """Most recent ``min(limit, len)`` events, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            snapshot = list(self._events)
        return snapshot[::-1][:limit]

    def query_memory(self, query: str, limit: int | None = None) -> list[NarrativeEvent]:
        """Case-insensitive substring search over event text, newest first."""
        needle = query.strip().lower()
        if not needle:
            return []
        with self._lock:
            snapshot = list(self._events)
        matches = [e for e in reversed(snapshot) if needle in e.text.lower()]
        return matches if limit is None else matches[:limit]

    def stats(self) -> dict:
        with self._lock:
            return {
                "events": len(self._events),
                "capacity": self._capacity,
                "last_seq": self._last_seq,
                "evicted": self._evicted,
            }
