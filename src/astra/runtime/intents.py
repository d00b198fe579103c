"""Intent parsing.

Input is split on newlines and ``;``; each non-empty segment is one intent:

    /name arg …                               command (shlex-tokenised)
    goal: <target> [priority=N] [deadline=S]  goal request
    anything else                             query
"""

from __future__ import annotations

import math
import re
import shlex
import time
from dataclasses import dataclass, field
from enum import StrEnum

from astra.core.errors import ParseError

_SEGMENT_SPLIT = re.compile(r"[;\r\n]")
_NAME = re.compile(r"^[A-Za-z_][\w.-]*$")
_GOAL_PREFIX = re.compile(r"^goal\s*:", re.IGNORECASE)


class IntentKind(StrEnum):
    QUERY = "query"
    COMMAND = "command"
    GOAL_REQUEST = "goal_request"


@dataclass(frozen=True, slots=True)
class Intent:
    kind: IntentKind
    payload: str  # query text, command name, or goal target
    args: tuple[str, ...] = ()
    options: tuple[tuple[str, str], ...] = ()
    source: str = ""
    timestamp: float = field(default_factory=time.time)

    def option(self, key: str, default: str | None = None) -> str | None:
        return dict(self.options).get(key, default)


def parse_program(text: object, *, max_chars: int = 2000) -> list[Intent]:
    if not isinstance(text, str):
        raise ParseError(f"expected text input, got {type(text).__name__}")
    segments = [s.strip() for s in _SEGMENT_SPLIT.split(text)]
    segments = [s for s in segments if s]
    if not segments:
        raise ParseError("empty input")
    return [_parse_segment(s, max_chars) for s in segments]


def _parse_segment(segment: str, max_chars: int) -> Intent:
    if len(segment) > max_chars:
        raise ParseError(f"segment longer than {max_chars} characters")
    if any(ord(ch) < 32 and ch != "\t" for ch in segment):
        raise ParseError("control characters in input")
    if segment.startswith("/"):
        return _parse_command(segment)
    if _GOAL_PREFIX.match(segment):
        return _parse_goal(segment)
    return Intent(kind=IntentKind.QUERY, payload=segment, source=segment)


def _parse_command(segment: str) -> Intent:
    try:
        tokens = shlex.split(segment[1:])
    except ValueError as exc:
        raise ParseError(f"bad command syntax: {exc}") from exc
    if not tokens or not _NAME.match(tokens[0]):
        raise ParseError("command name missing or invalid")
    return Intent(
        kind=IntentKind.COMMAND,
        payload=tokens[0].lower(),
        args=tuple(tokens[1:]),
        source=segment,
    )


def _parse_goal(segment: str) -> Intent:
    body = _GOAL_PREFIX.sub("", segment, count=1).split()
    if not body:
        raise ParseError("goal without a target")
    target, *rest = body
    if not _NAME.match(target):
        raise ParseError(f"invalid goal target: {target!r}")
    options: list[tuple[str, str]] = []
    for token in rest:
        key, sep, value = token.partition("=")
        if not sep or not value:
            raise ParseError(f"expected key=value, got {token!r}")
        key = key.lower()
        if key == "priority":
            _number(value, int, key)
        elif key == "deadline":
            seconds = _number(value, float, key)
            if not math.isfinite(seconds) or seconds <= 0:
                raise ParseError("deadline must be a positive number of seconds")
        else:
            raise ParseError(f"unknown goal option {key!r}")
        options.append((key, value))
    return Intent(
        kind=IntentKind.GOAL_REQUEST,
        payload=target,
        options=tuple(options),
        source=segment,
    )


def _number(value: str, cast: type, key: str) -> float:
    try:
        return cast(value)
    except ValueError as exc:
        raise ParseError(f"{key} must be a number, got {value!r}") from exc
