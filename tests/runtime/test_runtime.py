"""End-to-end tests for the Runtime tick loop."""

from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from astra.cognition.humor import JOKES
from astra.cognition.planner import Action
from astra.core.config import Settings
from astra.core.errors import (
    USER_MESSAGES,
    DependencyCycleError,
    ExecutionError,
    ParseError,
    StorageError,
)
from astra.core.memory import MemoryStore
from astra.runtime.core import Runtime, TickPhase
from astra.runtime.scheduler import Task


def _fail(ctx):
    raise RuntimeError("disk on fire")


def _replace_handler(runtime: Runtime, name: str, handler) -> None:
    old = next(a for a in runtime.planner.actions if a.name == name)
    runtime.planner.register_action(
        Action(old.name, old.effects, old.preconditions, old.cost, old.module, handler, old.deadline, old.tags),
    )


@pytest.fixture()
def fast_settings() -> Settings:
    return Settings(_env_file=None, tick_budget_ms=200, cancel_grace_ms=200, tick_interval=0.0)


# ---------------------------------------------------------------------------
# Queries and replies
# ---------------------------------------------------------------------------


def test_hello_scenario(runtime):
    report = runtime.chat("Hello")
    assert report.tick == 1
    assert "Hello" in report.reply
    assert len(report.events) == 1
    assert '"Hello"' in report.events[0].outcome
    assert runtime.recent_events(1)[0] == report.events[0]

    response = report.to_response()
    assert set(response) == {"reply", "emotion_state", "personality_traits", "recent_events"}
    assert sum(response["personality_traits"].values()) == pytest.approx(1.0)
    assert all(-1.0 <= v <= 1.0 for v in response["emotion_state"].values())
    assert response["emotion_state"]["valence"] > 0.1
    assert response["recent_events"][0].startswith(f"[{report.events[0].seq} ")
    assert runtime.phase is TickPhase.IDLE


def test_replies_follow_input_order(runtime):
    report = runtime.chat("Hello; /joke")
    lines = report.reply.split("\n")
    assert "Hello" in lines[0]
    assert lines[1] == JOKES[1]


def test_knowledge_queries(runtime):
    runtime.chat("/fact Dog is_a mammal; /fact mammal is_a animal")
    assert runtime.chat("is dog an animal?").reply == "Yes, dog is a animal."
    assert runtime.chat("is animal a dog?").reply.startswith("Not as far as I know")
    assert runtime.chat("what is dog?").reply == "dog: is_a mammal"
    assert "is dog a animal?" in runtime.reasoning_chains()
    assert runtime.learning_progress()["concepts_learned"] == 2


def test_recall_searches_memory(runtime):
    runtime.chat("I love astronomy")
    reply = runtime.chat("recall astronomy").reply
    assert reply.startswith("I remember:")
    assert "astronomy" in reply
    assert runtime.chat("recall zebras").reply == "I don't remember anything about zebras."


def test_idle_tick_decays_emotion(runtime):
    runtime.context.emotion.values = np.array([0.9, 0.5, 0.0])
    report = runtime.tick()
    assert report.reply == ""
    assert report.events == ()
    assert 0.1 < report.emotion["valence"] < 0.9
    assert report.emotion["arousal"] < 0.5


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def test_feedback_adapts_traits(runtime):
    before = dict(runtime.get_traits())
    report = runtime.chat("/feedback openness +")
    assert "openness" in report.reply
    assert report.personality["openness"] > before["openness"]
    assert sum(report.personality.values()) == pytest.approx(1.0)


def test_joke_is_deterministic_per_tick(runtime):
    assert runtime.chat("/joke").reply == JOKES[1 % len(JOKES)]


def test_cancel_unknown_task(runtime):
    report = runtime.chat("/cancel nope")
    assert report.reply == USER_MESSAGES["execution"]
    assert report.events[0].is_failure


def test_stop_command_ends_run(runtime):
    runtime.execute_program("/stop")
    assert runtime.run() == 1
    assert runtime.stopping


# ---------------------------------------------------------------------------
# Bad input
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("text", "error"),
    [
        ("", ParseError),
        ("goal:", ParseError),
        ("/feedback openness", ParseError),
        ("/fact dog is_a", ParseError),
        ("/dance", ExecutionError),
        ("/feedback charisma +", ExecutionError),
        ("goal: world_peace", ExecutionError),
    ],
)
def test_execute_program_rejects(runtime, text, error):
    with pytest.raises(error):
        runtime.execute_program(text)
    assert len(runtime.memory) == 0


def test_bad_input_in_chat_becomes_failure_event(runtime):
    report = runtime.chat("/dance")
    assert report.reply == USER_MESSAGES["execution"]
    (event,) = report.events
    assert event.is_failure
    assert "execution" in event.tags
    assert "/dance" in event.outcome


def test_parse_error_reply_is_stable(runtime):
    report = runtime.chat("goal: x priority=high")
    assert report.reply == USER_MESSAGES["parse"]


# ---------------------------------------------------------------------------
# Goals
# ---------------------------------------------------------------------------


def test_goal_scenario(runtime):
    report = runtime.chat("goal: summary_written")
    assert report.reply.startswith("Done! summary_written is achieved")
    actions = [e.action for e in report.events]
    assert actions == ["gather_sources", "study_sources", "write_summary", "goal_achieved"]
    assert runtime.knowledge.holds("summary_written")
    assert runtime.learning_progress()["research_sessions"] == 1
    assert "plan summary_written" in runtime.reasoning_chains()
    assert runtime.status()["active_goals"] == 0


def test_code_module_goal_counts_module(runtime):
    runtime.chat("goal: module_written")
    progress = runtime.learning_progress()
    assert progress["code_modules_created"] == 1
    assert progress["research_sessions"] == 1


def test_goal_already_holding(runtime):
    runtime.chat("goal: summary_written")
    report = runtime.chat("goal: summary_written")
    assert "already holds" in report.reply
    assert [e.action for e in report.events] == ["goal_achieved"]


def test_failed_task_is_isolated_and_replanned(runtime):
    _replace_handler(runtime, "study_sources", _fail)
    report = runtime.chat("Hello; goal: summary_written")
    hello, done = report.reply.split("\n")
    assert "Hello" in hello
    assert done.startswith("Done! summary_written is achieved: recall_notes -> write_summary")
    failed = [e for e in report.events if e.is_failure]
    assert [e.action for e in failed] == ["study_sources"]
    # internal exception text never reaches the log shown to clients
    assert "disk on fire" not in failed[0].outcome
    assert failed[0].outcome == f"failed: {USER_MESSAGES['internal']}"


def test_goal_fails_when_replanning_runs_out(runtime):
    _replace_handler(runtime, "write_summary", _fail)
    report = runtime.chat("goal: summary_written")
    assert report.reply == USER_MESSAGES["planning"]
    assert report.events[-1].action == "goal_failed"
    assert report.events[-1].is_failure
    assert report.emotion["valence"] < 0.1
    assert runtime.learning_progress()["research_sessions"] == 0


def test_goal_deadline_times_out_task(runtime):
    runtime.planner.register_action(
        Action("ponder", effects={"pondered"}, handler=lambda ctx: ctx.wait(5)),
    )
    report = runtime.chat("goal: pondered deadline=0.1")
    assert report.reply == USER_MESSAGES["planning"]
    assert any("took too long" in e.outcome for e in report.events)


def test_infinite_deadline_is_rejected_and_timeouts_still_work(runtime):
    runtime.planner.register_action(
        Action("ponder", effects={"pondered"}, handler=lambda ctx: ctx.wait(5)),
    )
    report = runtime.chat("goal: pondered deadline=inf")
    assert report.reply == USER_MESSAGES["parse"]
    report = runtime.chat("goal: pondered deadline=0.1")
    assert report.reply == USER_MESSAGES["planning"]
    assert any("took too long" in e.outcome for e in report.events)


def test_budget_expiry_cancels_cooperative_tasks(fast_settings):
    with Runtime(fast_settings) as rt:
        rt.planner.register_action(
            Action("ponder", effects={"pondered"}, handler=lambda ctx: ctx.wait(5)),
        )
        report = rt.chat("goal: pondered")
        assert report.reply == USER_MESSAGES["timeout"]
        assert [e.action for e in report.events] == ["ponder", "goal_failed"]
        assert report.events[0].outcome == "cancelled"
        assert rt.status()["carryover"] == 0


def test_budget_expiry_carries_over_stubborn_tasks(fast_settings):
    with Runtime(fast_settings) as rt:
        rt.planner.register_action(
            Action("ponder", effects={"pondered"}, handler=lambda ctx: time.sleep(1.0)),
        )
        report = rt.chat("goal: pondered")
        assert report.reply == USER_MESSAGES["timeout"]
        assert rt.status()["carryover"] == 1

        time.sleep(1.0)
        later = rt.tick()
        assert rt.status()["carryover"] == 0
        (event,) = later.events
        assert event.action == "ponder"
        assert "carryover" in event.tags
        assert "late, for pondered" in event.outcome


# ---------------------------------------------------------------------------
# Runtime-scheduled tasks and fatal errors
# ---------------------------------------------------------------------------


def test_scheduled_tasks_run_next_tick(runtime):
    runtime.schedule([Task("maint.1", lambda ctx: 42, module="maintenance", name="tidy")])
    report = runtime.tick()
    (event,) = report.events
    assert (event.actor, event.action, event.outcome) == ("maintenance", "tidy", "completed")


def test_scheduled_cycle_is_fatal(runtime):
    runtime.schedule([
        Task("a", lambda ctx: None, depends_on={"b"}),
        Task("b", lambda ctx: None, depends_on={"a"}),
    ])
    with pytest.raises(DependencyCycleError):
        runtime.run()
    assert runtime.phase is TickPhase.IDLE


def test_storage_failure_is_fatal_and_leaves_state(test_settings, tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    with Runtime(test_settings, memory=MemoryStore(path=blocker / "log.jsonl")) as rt:
        before = rt.get_current_emotion()
        with pytest.raises(StorageError):
            rt.chat("Hello")
        assert rt.get_current_emotion() == before
        assert rt.phase is TickPhase.IDLE


def test_memory_survives_restart(tmp_path):
    config = Settings(_env_file=None, memory_file=tmp_path / "narrative.jsonl", tick_interval=0.0)
    with Runtime(config) as first:
        seq = first.chat("Hello").events[0].seq
    with Runtime(config) as second:
        assert second.query_memory("hello")[0].seq == seq
        assert second.chat("again").events[0].seq == seq + 1


# ---------------------------------------------------------------------------
# Loop control
# ---------------------------------------------------------------------------


def test_run_max_ticks(runtime):
    assert runtime.run(max_ticks=3) == 3
    assert runtime.tick_count == 3


def test_stop_from_another_thread(runtime):
    worker = threading.Thread(target=runtime.run)
    worker.start()
    deadline = time.monotonic() + 2
    while runtime.tick_count == 0 and time.monotonic() < deadline:
        time.sleep(0.01)
    runtime.stop()
    worker.join(timeout=3)
    assert not worker.is_alive()
    assert runtime.tick_count >= 1


def test_stop_before_run_is_honoured(runtime):
    runtime.stop()
    assert runtime.run() == 0
    assert runtime.tick_count == 0


def test_chat_is_answered_while_background_loop_ticks(runtime):
    worker = threading.Thread(target=runtime.run)
    worker.start()
    try:
        replies = [runtime.chat(f"Hello {i}").reply for i in range(30)]
    finally:
        runtime.stop()
        worker.join(timeout=3)
    assert not worker.is_alive()
    assert all(f"Hello {i}" in reply for i, reply in enumerate(replies))
