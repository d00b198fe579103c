from __future__ import annotations

from astra.cognition.learning import LearningTracker


def test_counters():
    t = LearningTracker()
    assert t.record_concept("Python") is True
    assert t.record_concept("python ") is False
    t.record_session()
    t.record_module()
    snap = t.snapshot()
    assert snap["concepts_learned"] == 1
    assert snap["research_sessions"] == 1
    assert snap["code_modules_created"] == 1
    assert snap["last_updated"]


def test_blank_concept_ignored():
    t = LearningTracker()
    assert t.record_concept("  ") is False
    assert t.snapshot()["concepts_learned"] == 0
