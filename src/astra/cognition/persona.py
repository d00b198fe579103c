from __future__ import annotations

import logging
import zlib
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from astra.cognition.emotion import EmotionState

logger = logging.getLogger(__name__)

DEFAULT_TRAITS: dict[str, float] = {
    "openness": 0.8,
    "conscientiousness": 0.7,
    "extraversion": 0.6,
    "agreeableness": 0.9,
    "neuroticism": 0.2,
}

_TOLERANCE = 1e-6

RESPONSE_TEMPLATES: dict[str, list[str]] = {
    "openness": [
        "That's fascinating! Tell me more about {input}.",
        "Ooh, {input}? I want to dig into that.",
        "{input} opens up a lot of questions. Where do we start?",
    ],
    "conscientiousness": [
        "Noted: {input}. Let's work through it step by step.",
        "Got it, {input}. I'll keep track of that carefully.",
        "{input}. Let me make sure I handle that properly.",
    ],
    "extraversion": [
        "Hey! {input}, love it. What else is going on?",
        "{input}! That's great to hear, keep talking!",
        "Oh nice, {input}! Tell me everything.",
    ],
    "agreeableness": [
        "Thanks for sharing {input} with me. How can I help?",
        "I hear you about {input}. I'm here for it.",
        "{input}, of course. Happy to help however I can.",
    ],
    "neuroticism": [
        "Hmm, {input}... I hope that goes okay.",
        "{input}? I'm a little unsure, but let's see.",
        "Okay, {input}. I'll try not to overthink it.",
    ],
}

# Tone prefix by emotional valence band
_TONES: dict[str, str] = {
    "positive": "",
    "neutral": "",
    "negative": "Sorry if I'm a bit off today. ",
}


@dataclass(slots=True)
class PersonalityProfile:
    """Trait weights: non-negative and summing to 1."""

    weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_TRAITS))

    def __post_init__(self) -> None:
        if not self.weights:
            raise ValueError("a personality needs at least one trait")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("trait weights must be non-negative")
        self.weights = _normalize(self.weights)

    @property
    def dominant(self) -> str:
        # Ties break on trait name so the choice is stable
        return max(sorted(self.weights), key=lambda name: self.weights[name])

    def snapshot(self) -> Mapping[str, float]:
        return MappingProxyType(dict(self.weights))


def _normalize(weights: Mapping[str, float]) -> dict[str, float]:
    total = sum(weights.values())
    if total <= _TOLERANCE:
        share = 1.0 / len(weights)
        return {name: share for name in weights}
    return {name: w / total for name, w in weights.items()}


def _stable_index(text: str, n: int) -> int:
    return zlib.crc32(text.encode("utf-8")) % n


class PersonalityEngine:
    """Shapes replies from traits and adapts traits from explicit feedback."""

    def __init__(self, learning_rate: float = 0.05) -> None:
        self.learning_rate = learning_rate

    def get_traits(self, profile: PersonalityProfile) -> Mapping[str, float]:
        return profile.snapshot()

    def update_traits(
        self,
        profile: PersonalityProfile,
        feedback: Mapping[str, float],
    ) -> PersonalityProfile:
        """Nudge each named trait by ``learning_rate * signal``, clip, renormalise.

        ``signal`` is clipped to [-1, 1]. Unknown traits raise ``KeyError``.
        """
        unknown = set(feedback) - set(profile.weights)
        if unknown:
            raise KeyError(f"unknown traits: {', '.join(sorted(unknown))}")
        weights = dict(profile.weights)
        for name, signal in feedback.items():
            step = self.learning_rate * max(-1.0, min(1.0, float(signal)))
            weights[name] = max(0.0, min(1.0, weights[name] + step))
        profile.weights = _normalize(weights)
        logger.debug("Traits updated from feedback %s", dict(feedback))
        return profile

    def respond_to_input(
        self,
        text: str,
        traits: Mapping[str, float],
        emotion: EmotionState,
    ) -> str:
        """Render a reply. Same (text, traits, emotion) always gives the same string."""
        cleaned = " ".join(text.split()) or "that"
        dominant = max(sorted(traits), key=lambda name: traits[name])
        templates = RESPONSE_TEMPLATES.get(dominant, RESPONSE_TEMPLATES["agreeableness"])
        template = templates[_stable_index(f"{dominant}|{cleaned}", len(templates))]
        reply = template.format(input=cleaned)
        if reply[0].islower():
            reply = reply[0].upper() + reply[1:]
        return _TONES[_valence_band(emotion.valence)] + reply

    def summary(self, profile: PersonalityProfile) -> str:
        top = sorted(profile.weights.items(), key=lambda kv: kv[1], reverse=True)[:3]
        return "Traits: " + ", ".join(f"{name}={w:.2f}" for name, w in top)


def _valence_band(valence: float) -> str:
    if valence >= 0.25:
        return "positive"
    if valence <= -0.25:
        return "negative"
    return "neutral"
