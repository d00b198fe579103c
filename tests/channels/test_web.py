"""Tests for the HTTP channel."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from astra.channels.web import create_app
from astra.core.errors import USER_MESSAGES


@pytest.fixture()
def client(runtime):
    return TestClient(create_app(runtime))


def test_chat(client):
    resp = client.post("/chat", json={"message": "Hello"})
    assert resp.status_code == 200
    body = resp.json()
    assert set(body) == {"reply", "emotion_state", "personality_traits", "recent_events"}
    assert "Hello" in body["reply"]
    assert len(body["recent_events"]) == 1
    assert set(body["emotion_state"]) == {"valence", "arousal", "dominance"}


def test_chat_validation(client):
    assert client.post("/chat", json={}).status_code == 422


def test_empty_message_gets_stable_reply(client):
    resp = client.post("/chat", json={"message": ""})
    assert resp.status_code == 200
    body = resp.json()
    assert body["reply"] == USER_MESSAGES["parse"]
    assert len(body["recent_events"]) == 1


def test_chat_bad_program_gets_stable_reply(client):
    body = client.post("/chat", json={"message": "goal:"}).json()
    assert body["reply"] == USER_MESSAGES["parse"]


def test_learning_progress(client):
    client.post("/chat", json={"message": "/fact dog is_a mammal"})
    body = client.get("/api/visualization/learning_progress").json()
    assert body["concepts_learned"] == 1
    assert body["research_sessions"] == 0
    assert body["last_updated"]


def test_reasoning_chains(client):
    client.post("/chat", json={"message": "/fact dog is_a mammal"})
    client.post("/chat", json={"message": "is dog a mammal?"})
    chains = client.get("/api/visualization/reasoning_chains").json()
    assert chains["is dog a mammal?"][-1] == "conclude dog is a mammal"


def test_health(client):
    client.post("/chat", json={"message": "Hello"})
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["tick"] == 1
    assert body["events"] == 1
