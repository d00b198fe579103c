"""Shared fixtures for the Astra test suite."""

from __future__ import annotations

import os

import pytest

from astra.core.config import Settings
from astra.runtime.core import Runtime
from astra.runtime.scheduler import Scheduler


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep real ASTRA_* variables and any local .env out of the tests."""
    for key in list(os.environ):
        if key.startswith("ASTRA_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


@pytest.fixture()
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        tick_budget_ms=1500,
        tick_interval=0.0,
        cancel_grace_ms=50,
        concurrency_limit=2,
        queue_limit=32,
    )


@pytest.fixture()
def runtime(test_settings):
    rt = Runtime(test_settings)
    yield rt
    rt.close()


@pytest.fixture()
def scheduler():
    s = Scheduler(concurrency_limit=2, queue_limit=16, name="test")
    yield s
    s.shutdown()
