"""Tests for the Knowledge Reasoner."""

from __future__ import annotations

import pytest

from astra.cognition.knowledge import IS_A, Fact, KnowledgeBase


@pytest.fixture()
def kb() -> KnowledgeBase:
    kb = KnowledgeBase()
    kb.assert_fact(Fact("dog", IS_A, "mammal"))
    kb.assert_fact(Fact("mammal", IS_A, "animal"))
    kb.assert_fact(Fact("dog", "likes", "bones"))
    return kb


def test_assert_fact_new_and_duplicate(kb):
    assert kb.assert_fact(Fact("cat", IS_A, "mammal")) is True
    assert kb.assert_fact(Fact("Cat", "IS_A", "Mammal")) is False
    assert len(kb) == 4


def test_fact_confidence_validated():
    with pytest.raises(ValueError):
        Fact("a", "b", "c", confidence=1.5)


def test_is_a_transitive(kb):
    assert kb.is_a("dog", "animal") is True
    assert kb.is_a("Dog", "Mammal") is True
    assert kb.is_a("animal", "dog") is False


def test_is_a_records_chain(kb):
    kb.is_a("dog", "animal")
    chain = kb.reasoning_chains()["is dog a animal?"]
    assert chain[0] == "start at dog"
    assert "dog is_a mammal" in chain
    assert "mammal is_a animal" in chain
    assert chain[-1] == "conclude dog is a animal"


def test_is_a_cycle_safe(kb):
    kb.assert_fact(Fact("animal", IS_A, "dog"))
    assert kb.is_a("dog", "plant") is False


def test_low_confidence_links_ignored():
    kb = KnowledgeBase(min_confidence=0.5)
    kb.assert_fact(Fact("bat", IS_A, "bird", confidence=0.2))
    assert kb.is_a("bat", "bird") is False


def test_facts_about_and_subjects(kb):
    facts = kb.facts_about("DOG")
    assert {f.predicate for f in facts} == {IS_A, "likes"}
    assert kb.subjects() == {"dog", "mammal"}


def test_holds_and_achieve(kb):
    assert kb.holds("summary_written") is False
    kb.achieve("summary_written", provenance="g1.0.write_summary")
    assert kb.holds("summary_written") is True
    assert "summary_written" not in kb.subjects()


def test_chains_are_capped():
    kb = KnowledgeBase()
    for i in range(KnowledgeBase.MAX_CHAINS + 5):
        kb.record_chain(f"chain {i}", ["step"])
    chains = kb.reasoning_chains()
    assert len(chains) == KnowledgeBase.MAX_CHAINS
    assert "chain 0" not in chains
