"""Knowledge Reasoner — the minimal fact store the planner and queries rely on.

Facts are subject/predicate/object triples with a confidence. Two predicates
carry meaning here:

- ``is_a`` links a concept to its parent; ``is_a(x, y)`` walks those links.
- ``holds`` marks a world-state predicate as true (``Fact(p, "holds", "true")``);
  the planner reads it through ``holds(p)`` and asserts it when a task's
  effects are achieved.

Every ``is_a`` inference records its chain of steps so the visualization
endpoint can show how an answer was reached.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HOLDS = "holds"
IS_A = "is_a"


@dataclass(frozen=True, slots=True)
class Fact:
    subject: str
    predicate: str
    object: str
    confidence: float = 1.0
    provenance: str = "user"

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence out of range: {self.confidence}")

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.subject.lower(), self.predicate.lower(), self.object.lower())

    def __str__(self) -> str:
        return f"{self.subject} {self.predicate} {self.object} ({self.confidence:.2f})"


class KnowledgeBase:
    MAX_CHAINS = 50

    def __init__(self, min_confidence: float = 0.5) -> None:
        self.min_confidence = min_confidence
        self._facts: dict[tuple[str, str, str], Fact] = {}
        self._chains: OrderedDict[str, list[str]] = OrderedDict()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        return len(self._facts)

    def assert_fact(self, fact: Fact) -> bool:
        """Store ``fact``; returns True if it is new (re-asserting keeps the higher confidence)."""
        with self._lock:
            existing = self._facts.get(fact.key)
            if existing is not None and existing.confidence >= fact.confidence:
                return False
            self._facts[fact.key] = fact
        logger.debug("Fact asserted: %s", fact)
        return existing is None

    def facts_about(self, subject: str) -> list[Fact]:
        s = subject.lower()
        with self._lock:
            return [f for f in self._facts.values() if f.key[0] == s]

    def subjects(self) -> set[str]:
        with self._lock:
            return {f.subject.lower() for f in self._facts.values() if f.predicate != HOLDS}

    def holds(self, predicate: str) -> bool:
        with self._lock:
            fact = self._facts.get((predicate.lower(), HOLDS, "true"))
        return fact is not None and fact.confidence >= self.min_confidence

    def achieve(self, predicate: str, provenance: str) -> None:
        self.assert_fact(Fact(predicate, HOLDS, "true", 1.0, provenance))

    def is_a(self, concept: str, ancestor: str) -> bool:
        """Transitive ``is_a`` check (breadth-first, cycle-safe)."""
        start, goal = concept.lower(), ancestor.lower()
        label = f"is {concept} a {ancestor}?"
        steps = [f"start at {concept}"]
        parents: dict[str, str | None] = {start: None}
        frontier = [start]
        found = start == goal
        while frontier and not found:
            nxt: list[str] = []
            for node in frontier:
                for fact in self._parents_of(node):
                    parent = fact.object.lower()
                    if parent in parents:
                        continue
                    parents[parent] = node
                    if parent == goal:
                        found = True
                        break
                    nxt.append(parent)
                if found:
                    break
            frontier = nxt

        if found:
            path = [goal]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])
            path.reverse()
            steps += [f"{a} is_a {b}" for a, b in zip(path, path[1:])]
            steps.append(f"conclude {concept} is a {ancestor}")
        else:
            steps.append(f"no is_a path from {concept} to {ancestor}")
        self._record_chain(label, steps)
        return found

    def _parents_of(self, node: str) -> list[Fact]:
        with self._lock:
            return [
                f for f in self._facts.values()
                if f.key[0] == node and f.key[1] == IS_A and f.confidence >= self.min_confidence
            ]

    def _record_chain(self, label: str, steps: list[str]) -> None:
        with self._lock:
            self._chains[label] = steps
            self._chains.move_to_end(label)
            while len(self._chains) > self.MAX_CHAINS:
                self._chains.popitem(last=False)

    def record_chain(self, label: str, steps: list[str]) -> None:
        """Let other reasoners (e.g. the planner) publish their chains."""
        self._record_chain(label, list(steps))

    def reasoning_chains(self) -> dict[str, list[str]]:
        with self._lock:
            return {label: list(steps) for label, steps in self._chains.items()}
