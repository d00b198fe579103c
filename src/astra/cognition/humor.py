"""Humor — Astra's small joke book.

Selection is keyed by a seed (usually the tick number) instead of a random
generator so that a given tick always tells the same joke.
"""

from __future__ import annotations

JOKES: tuple[str, ...] = (
    "Why did the AI cross the road? To optimize the chicken's path!",
    "I told my neural network a joke, but it didn't get the punchline. Still training!",
    "Why do programmers prefer dark mode? Because light attracts bugs!",
    "My training data told me to lighten up, so here I am, telling jokes!",
    "I tried to write a joke about recursion, but I had to start over... again.",
    "Why did the algorithm break up with its dataset? Too many outliers.",
    "I asked my compiler for a joke, but it gave me a warning instead.",
)

FALLBACK = "I'm out of jokes!"


def tell_joke(seed: int, jokes: tuple[str, ...] = JOKES) -> str:
    if not jokes:
        return FALLBACK
    return jokes[seed % len(jokes)]
