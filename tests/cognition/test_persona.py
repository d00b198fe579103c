"""Tests for the Personality Engine."""

from __future__ import annotations

import numpy as np
import pytest

from astra.cognition.emotion import EmotionState
from astra.cognition.persona import (
    DEFAULT_TRAITS,
    RESPONSE_TEMPLATES,
    PersonalityEngine,
    PersonalityProfile,
)


def _emotion(valence: float = 0.0) -> EmotionState:
    state = EmotionState.neutral((0.0, 0.0, 0.0))
    state.values = np.array([valence, 0.0, 0.0])
    return state


def test_default_profile_normalized():
    p = PersonalityProfile()
    assert set(p.weights) == set(DEFAULT_TRAITS)
    assert sum(p.weights.values()) == pytest.approx(1.0)
    assert p.dominant == "agreeableness"


def test_profile_rejects_negative_and_empty():
    with pytest.raises(ValueError):
        PersonalityProfile({"openness": -0.1})
    with pytest.raises(ValueError):
        PersonalityProfile({})


def test_all_zero_weights_become_uniform():
    p = PersonalityProfile({"a": 0.0, "b": 0.0})
    assert p.weights == {"a": 0.5, "b": 0.5}


def test_update_traits_nudges_and_renormalizes():
    engine = PersonalityEngine(learning_rate=0.1)
    p = PersonalityProfile()
    before = p.weights["openness"]
    engine.update_traits(p, {"openness": 1.0})
    assert p.weights["openness"] > before
    assert sum(p.weights.values()) == pytest.approx(1.0)


def test_update_traits_clips_signal():
    engine = PersonalityEngine(learning_rate=0.1)
    a, b = PersonalityProfile(), PersonalityProfile()
    engine.update_traits(a, {"neuroticism": 1.0})
    engine.update_traits(b, {"neuroticism": 50.0})
    assert a.weights == pytest.approx(b.weights)


def test_update_traits_unknown_trait():
    engine = PersonalityEngine()
    p = PersonalityProfile()
    with pytest.raises(KeyError):
        engine.update_traits(p, {"grumpiness": 1.0})
    assert sum(p.weights.values()) == pytest.approx(1.0)


def test_repeated_negative_feedback_keeps_weights_valid():
    engine = PersonalityEngine(learning_rate=1.0)
    p = PersonalityProfile()
    for _ in range(10):
        engine.update_traits(p, {name: -1.0 for name in p.weights})
    assert all(w >= 0 for w in p.weights.values())
    assert sum(p.weights.values()) == pytest.approx(1.0)


def test_get_traits_is_read_only():
    engine = PersonalityEngine()
    traits = engine.get_traits(PersonalityProfile())
    with pytest.raises(TypeError):
        traits["openness"] = 1.0


def test_respond_is_deterministic():
    engine = PersonalityEngine()
    traits = PersonalityProfile().snapshot()
    first = engine.respond_to_input("Hello", traits, _emotion())
    second = engine.respond_to_input("Hello", traits, _emotion())
    assert first == second
    assert "Hello" in first


def test_respond_uses_dominant_trait_templates():
    engine = PersonalityEngine()
    traits = PersonalityProfile({"openness": 1.0, "agreeableness": 0.0}).snapshot()
    reply = engine.respond_to_input("robots", traits, _emotion())
    rendered = {t.format(input="robots") for t in RESPONSE_TEMPLATES["openness"]}
    assert reply in {r[0].upper() + r[1:] for r in rendered}


def test_negative_mood_changes_tone():
    engine = PersonalityEngine()
    traits = PersonalityProfile().snapshot()
    calm = engine.respond_to_input("Hello", traits, _emotion(0.0))
    sad = engine.respond_to_input("Hello", traits, _emotion(-0.8))
    assert sad != calm
    assert sad.endswith(calm)


def test_summary_lists_top_traits():
    summary = PersonalityEngine().summary(PersonalityProfile())
    assert summary.startswith("Traits: agreeableness=")
