"""Runtime Core — the tick loop that drives Astra.

One tick is one pass through::

    IDLE → PARSING → DISPATCHING → AWAITING → AGGREGATING → IDLE

Queued intents are drained and dispatched (queries answered right away,
commands handled, goals planned and handed to the Scheduler). The tick then
waits for the dispatched work up to its budget, folds every outcome into one
ordered batch of narrative events, commits that batch, and lets the tick
modules update emotion and personality from it. Work still running when the
budget runs out is cancelled and, if it does not stop within the grace
period, reported by a later tick.

Errors from a single intent or task become failure events and a stable reply.
``StorageError`` and a dependency cycle in runtime-scheduled tasks are fatal:
they are logged and propagate out of ``tick()`` and ``run()``.
"""

from __future__ import annotations

import logging
import math
import re
import threading
import time
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from astra.cognition.emotion import Decision, EmotionEngine, EmotionState
from astra.cognition.humor import tell_joke
from astra.cognition.knowledge import HOLDS, Fact, KnowledgeBase
from astra.cognition.learning import LearningTracker
from astra.cognition.persona import PersonalityEngine, PersonalityProfile
from astra.cognition.planner import Action, Goal, Plan, PlanExecution, Planner, PlanState
from astra.core.config import Settings, settings as default_settings
from astra.core.errors import (
    AstraError,
    DependencyCycleError,
    ExecutionError,
    ParseError,
    SchedulingError,
    StorageError,
    TaskTimeoutError,
    user_message,
)
from astra.core.events import NarrativeEvent
from astra.core.memory import MemoryStore
from astra.runtime.intents import Intent, IntentKind, parse_program
from astra.runtime.modules import (
    EmotionModule,
    MemoryModule,
    PersonalityModule,
    PlannerModule,
    RuntimeContext,
    RuntimeModule,
    Tick,
    TickFrame,
)
from astra.runtime.scheduler import Scheduler, Task, TaskOutcome, TaskState

logger = logging.getLogger(__name__)

_RECALL = re.compile(r"^recall\s+(?P<text>.+?)\??$", re.IGNORECASE)
_IS_A = re.compile(r"^is\s+(?:an?\s+)?(?P<x>[\w-]+)\s+an?\s+(?P<y>[\w-]+)\s*\??$", re.IGNORECASE)
_WHAT = re.compile(r"^what\s+(?:is|are)\s+(?:an?\s+|the\s+)?(?P<x>[\w-]+)\s*\??$", re.IGNORECASE)

_SIGNALS = {"+": 1.0, "up": 1.0, "more": 1.0, "-": -1.0, "down": -1.0, "less": -1.0}


class TickPhase(StrEnum):
    IDLE = "idle"
    PARSING = "parsing"
    DISPATCHING = "dispatching"
    AWAITING = "awaiting"
    AGGREGATING = "aggregating"


@dataclass(frozen=True, slots=True)
class TickReport:
    tick: int
    reply: str
    emotion: dict[str, float]
    personality: dict[str, float]
    events: tuple[NarrativeEvent, ...]
    recent: tuple[str, ...] = ()

    def to_response(self) -> dict:
        """Shape returned by ``POST /chat``."""
        return {
            "reply": self.reply,
            "emotion_state": dict(self.emotion),
            "personality_traits": dict(self.personality),
            "recent_events": list(self.recent),
        }


@dataclass(slots=True)
class _Rejected:
    """Input that failed validation in ``chat``; reported by the next tick."""

    source: str
    error: AstraError


@dataclass(slots=True)
class _Slot:
    """Reply and events for one dispatched intent, kept in input order."""

    reply: str = ""
    events: list[NarrativeEvent] = field(default_factory=list)


@dataclass(slots=True)
class _GoalRun:
    goal: Goal
    slot: _Slot
    execution: PlanExecution | None = None
    actions: dict[str, Action] = field(default_factory=dict)  # task id -> action, across replans
    outcomes: list[TaskOutcome] = field(default_factory=list)
    error: AstraError | None = None
    done: bool = False


def _event(
    actor: str,
    action: str,
    outcome: str = "",
    valence: float = 0.0,
    intensity: float = 0.0,
    tags: Iterable[str] = (),
) -> NarrativeEvent:
    return NarrativeEvent(actor, action, outcome, valence, intensity, tags=tuple(tags))


def _failure(actor: str, action: str, error: BaseException, subject: str = "") -> NarrativeEvent:
    kind = error.kind if isinstance(error, AstraError) else "internal"
    message = user_message(error)
    outcome = f"{subject}: {message}" if subject else message
    return _event(actor, action, outcome, -0.5, 0.5, ("failure", kind))


def _clip(text: str, limit: int = 80) -> str:
    return text if len(text) <= limit else text[: limit - 3] + "..."


class Runtime:
    """Owns the cognitive state and advances it one tick at a time."""

    def __init__(
        self,
        config: Settings | None = None,
        *,
        memory: MemoryStore | None = None,
        knowledge: KnowledgeBase | None = None,
        scheduler: Scheduler | None = None,
        planner: Planner | None = None,
    ) -> None:
        self.settings = config or default_settings
        s = self.settings
        self.memory = memory or MemoryStore(s.memory_capacity, s.memory_file)
        self.knowledge = knowledge or KnowledgeBase()
        self.scheduler = scheduler or Scheduler(s.concurrency_limit, s.queue_limit)
        self.planner = planner or Planner(
            self.knowledge,
            self.scheduler,
            search_budget=s.planner_search_budget,
            max_replans=s.max_replans,
        )
        self.learning = LearningTracker()
        self.emotion_engine = EmotionEngine(s.emotion_sensitivity, s.decision_bound)
        self.personality_engine = PersonalityEngine(s.trait_learning_rate)
        self.context = RuntimeContext(
            emotion=EmotionState.neutral(s.emotion_baseline, s.emotion_half_life),
            personality=PersonalityProfile(),
        )

        self._planner_module = PlannerModule(self.learning)
        self._modules: tuple[RuntimeModule, ...] = (
            MemoryModule(self.memory),
            EmotionModule(self.emotion_engine),
            PersonalityModule(self.personality_engine),
            self._planner_module,
        )
        self._commands = {
            "feedback": self._cmd_feedback,
            "fact": self._cmd_fact,
            "joke": self._cmd_joke,
            "cancel": self._cmd_cancel,
            "stop": self._cmd_stop,
        }

        self._inbox: deque[Intent | _Rejected] = deque()
        self._batches: list[list[Task]] = []
        self._inbox_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._carryover: dict[str, str] = {}  # task id -> goal target or "runtime"
        self._stop = threading.Event()
        self._tick_seq = 0
        self.phase = TickPhase.IDLE

    def __enter__(self) -> Runtime:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Input
    # ------------------------------------------------------------------ #

    def execute_program(self, text: str) -> list[Intent]:
        """Parse ``text`` and queue its intents for the next tick.

        Raises ``ParseError`` or ``ExecutionError``; nothing is queued then.
        """
        intents = parse_program(text, max_chars=self.settings.intent_max_chars)
        for intent in intents:
            self._check(intent)
        with self._inbox_lock:
            self._inbox.extend(intents)
        logger.debug("Queued %d intents", len(intents))
        return intents

    def schedule(self, tasks: Iterable[Task]) -> None:
        """Queue tasks to be submitted to the Scheduler at the next tick."""
        batch = list(tasks)
        if batch:
            with self._inbox_lock:
                self._batches.append(batch)

    def chat(self, message: str) -> TickReport:
        """Queue ``message`` and run one tick; bad input is answered, not raised.

        Queueing and ticking happen under the tick lock, so a concurrent
        ``run()`` loop cannot take the message into a tick of its own.
        """
        with self._tick_lock:
            try:
                self.execute_program(message)
            except (ParseError, ExecutionError) as exc:
                logger.info("Rejected input: %s", exc)
                source = message if isinstance(message, str) else repr(message)
                with self._inbox_lock:
                    self._inbox.append(_Rejected(source, exc))
            return self._tick_locked()

    def _check(self, intent: Intent) -> None:
        if intent.kind is IntentKind.COMMAND:
            if intent.payload not in self._commands:
                raise ExecutionError(f"unknown command /{intent.payload}")
            if intent.payload == "feedback":
                self._feedback_args(intent)
            elif intent.payload == "fact":
                self._fact_args(intent)
            elif intent.payload == "cancel" and len(intent.args) != 1:
                raise ParseError("usage: /cancel <task_id>")
        elif intent.kind is IntentKind.GOAL_REQUEST:
            target = intent.payload
            if not (self.planner.can_produce(target) or self.knowledge.holds(target)):
                raise ExecutionError(f"no action produces {target}")

    def _feedback_args(self, intent: Intent) -> tuple[str, float]:
        if len(intent.args) != 2:
            raise ParseError("usage: /feedback <trait> <signal>")
        trait, raw = intent.args[0].lower(), intent.args[1].lower()
        if trait not in self.context.personality.weights:
            raise ExecutionError(f"unknown trait {trait!r}")
        if raw in _SIGNALS:
            return trait, _SIGNALS[raw]
        try:
            signal = float(raw)
        except ValueError as exc:
            raise ParseError(f"signal must be a number or +/-, got {raw!r}") from exc
        if not math.isfinite(signal):
            raise ParseError(f"signal must be finite, got {raw!r}")
        return trait, max(-1.0, min(1.0, signal))

    def _fact_args(self, intent: Intent) -> Fact:
        if len(intent.args) not in (3, 4):
            raise ParseError("usage: /fact <subject> <predicate> <object> [confidence]")
        subject, predicate, obj = intent.args[:3]
        confidence = 1.0
        if len(intent.args) == 4:
            try:
                confidence = float(intent.args[3])
            except ValueError as exc:
                raise ParseError(f"confidence must be a number, got {intent.args[3]!r}") from exc
        if not 0.0 <= confidence <= 1.0:
            raise ParseError("confidence must be between 0 and 1")
        return Fact(subject, predicate, obj, confidence, provenance="user")

    # ------------------------------------------------------------------ #
    # Tick
    # ------------------------------------------------------------------ #

    def tick(self) -> TickReport:
        with self._tick_lock:
            return self._tick_locked()

    def _tick_locked(self) -> TickReport:
        self._tick_seq += 1
        tick = Tick(seq=self._tick_seq, budget=self.settings.tick_budget)
        try:
            return self._step(tick)
        except (StorageError, DependencyCycleError):
            logger.error("Fatal error in tick %d", tick.seq, exc_info=True)
            raise
        finally:
            self.phase = TickPhase.IDLE

    def _step(self, tick: Tick) -> TickReport:
        self.phase = TickPhase.PARSING
        with self._inbox_lock:
            items = list(self._inbox)
            self._inbox.clear()
            batches, self._batches = self._batches, []
        frame = TickFrame(tick=tick, context=self.context)

        self.phase = TickPhase.DISPATCHING
        head = self._harvest_carryover()
        direct_ids: list[str] = []
        for batch in batches:
            direct_ids.extend(self._submit_batch(batch, head))
        slots: list[_Slot] = []
        runs: list[_GoalRun] = []
        for item in items:
            slot = _Slot()
            slots.append(slot)
            if isinstance(item, _Rejected):
                slot.reply = user_message(item.error)
                slot.events.append(_failure("runtime", "rejected_input", item.error, _clip(item.source)))
            elif item.kind is IntentKind.QUERY:
                self._dispatch_query(item, slot)
            elif item.kind is IntentKind.COMMAND:
                self._dispatch_command(item, slot, frame)
            else:
                run = self._dispatch_goal(item, slot)
                if run is not None:
                    runs.append(run)

        self.phase = TickPhase.AWAITING
        tail = self._await(tick, runs, direct_ids)
        for run in runs:
            self._report_goal(run, frame)

        self.phase = TickPhase.AGGREGATING
        frame.events = head + [e for slot in slots for e in slot.events] + tail
        for module in self._modules:
            module.handle_tick(frame)
        for event in frame.committed:
            for module in self._modules:
                module.on_event(event)

        reply = "\n".join(slot.reply for slot in slots if slot.reply)
        recent = self.memory.recent_events(self.settings.recent_events_limit)
        logger.debug("Tick %d committed %d events", tick.seq, len(frame.committed))
        return TickReport(
            tick=tick.seq,
            reply=reply,
            emotion=self.emotion_engine.snapshot(self.context.emotion),
            personality=dict(self.context.personality.weights),
            events=tuple(frame.committed),
            recent=tuple(e.render() for e in recent),
        )

    # ------------------------------------------------------------------ #
    # Dispatch
    # ------------------------------------------------------------------ #

    def _dispatch_query(self, intent: Intent, slot: _Slot) -> None:
        route, reply = self._answer(intent.payload)
        slot.reply = reply
        slot.events.append(
            _event("user", "asked", f'"{_clip(intent.payload)}" -> {_clip(reply)}', 0.2, 0.3, ("query", route)),
        )

    def _answer(self, text: str) -> tuple[str, str]:
        if m := _RECALL.match(text):
            needle = m["text"].strip()
            hits = self.memory.query_memory(needle, limit=3)
            if not hits:
                return "memory", f"I don't remember anything about {needle}."
            return "memory", "I remember: " + "; ".join(h.outcome or h.text for h in hits)
        if m := _IS_A.match(text):
            x, y = m["x"], m["y"]
            if self.knowledge.is_a(x, y):
                return "knowledge", f"Yes, {x} is a {y}."
            return "knowledge", f"Not as far as I know: {x} isn't a {y}."
        if m := _WHAT.match(text):
            x = m["x"]
            facts = [f for f in self.knowledge.facts_about(x) if f.predicate != HOLDS]
            if not facts:
                return "knowledge", f"I don't know anything about {x} yet."
            return "knowledge", f"{x}: " + "; ".join(f"{f.predicate} {f.object}" for f in facts)
        reply = self.personality_engine.respond_to_input(
            text, self.context.personality.snapshot(), self.context.emotion,
        )
        return "personality", reply

    def _dispatch_command(self, intent: Intent, slot: _Slot, frame: TickFrame) -> None:
        try:
            slot.reply, event = self._commands[intent.payload](intent, frame)
        except AstraError as exc:
            logger.warning("Command /%s failed: %s", intent.payload, exc)
            slot.reply = user_message(exc)
            event = _failure("runtime", f"command_{intent.payload}", exc, _clip(intent.source))
        slot.events.append(event)

    def _cmd_feedback(self, intent: Intent, frame: TickFrame) -> tuple[str, NarrativeEvent]:
        trait, signal = self._feedback_args(intent)
        frame.feedback[trait] = max(-1.0, min(1.0, frame.feedback.get(trait, 0.0) + signal))
        direction = "more" if signal >= 0 else "less"
        event = _event(
            "user", "gave_feedback", f"{trait} {signal:+.2f}",
            0.2 if signal >= 0 else -0.2, 0.2, ("feedback", trait),
        )
        return f"Thanks! I'll lean {direction} toward {trait}.", event

    def _cmd_fact(self, intent: Intent, frame: TickFrame) -> tuple[str, NarrativeEvent]:
        fact = self._fact_args(intent)
        new = self.knowledge.assert_fact(fact)
        event = _event(
            "knowledge", "fact_learned", str(fact), 0.1, 0.2,
            ("fact", f"concept:{fact.subject.lower()}"),
        )
        if not new:
            return f"I already knew that {fact.subject} {fact.predicate} {fact.object}.", event
        return f"Got it: {fact.subject} {fact.predicate} {fact.object}.", event

    def _cmd_joke(self, intent: Intent, frame: TickFrame) -> tuple[str, NarrativeEvent]:
        joke = tell_joke(frame.tick.seq)
        return joke, _event("astra", "told_joke", joke, 0.4, 0.3, ("humor",))

    def _cmd_cancel(self, intent: Intent, frame: TickFrame) -> tuple[str, NarrativeEvent]:
        task_id = intent.args[0]
        try:
            cancelled = self.scheduler.cancel(task_id)
        except KeyError as exc:
            raise ExecutionError(f"unknown task {task_id}") from exc
        if cancelled:
            reply = f"Cancelling task {task_id}."
        else:
            reply = f"Task {task_id} had already finished."
        return reply, _event("user", "cancelled_task", task_id, -0.1, 0.2, ("cancel",))

    def _cmd_stop(self, intent: Intent, frame: TickFrame) -> tuple[str, NarrativeEvent]:
        self._stop.set()
        return "Stopping after this tick.", _event("runtime", "stop_requested", "", 0.0, 0.1, ("control",))

    def _dispatch_goal(self, intent: Intent, slot: _Slot) -> _GoalRun | None:
        deadline = intent.option("deadline")
        goal = Goal(
            target=intent.payload,
            priority=float(intent.option("priority", "5")),
            deadline=float(deadline) if deadline is not None else None,
            description=intent.source,
        )
        decision = self.emotion_engine.influence_decision(
            self.context.emotion, Decision(goal.target, goal.priority),
        )
        run = _GoalRun(goal=goal, slot=slot)
        try:
            plan = self.planner.create_plan(goal)
            run.execution = self.planner.execute_plan(plan, priority=decision.weight)
        except DependencyCycleError:
            raise
        except AstraError as exc:
            logger.warning("Goal %s not started: %s", goal.target, exc)
            slot.reply = user_message(exc)
            slot.events.append(_failure("planner", "goal_failed", exc, goal.target))
            return None
        run.actions.update(run.execution.tasks)
        self._planner_module.activate(goal)
        logger.info(
            "Goal %s dispatched (priority %.2f -> %.2f)", goal.target, goal.priority, decision.weight,
        )
        return run

    def _submit_batch(self, batch: list[Task], events: list[NarrativeEvent]) -> list[str]:
        try:
            return self.scheduler.submit(batch)
        except DependencyCycleError:
            raise
        except SchedulingError as exc:
            logger.warning("Runtime batch rejected: %s", exc)
            events.append(_failure("scheduler", "rejected_batch", exc, f"{len(batch)} tasks"))
            return []

    # ------------------------------------------------------------------ #
    # Barrier
    # ------------------------------------------------------------------ #

    def _await(self, tick: Tick, runs: list[_GoalRun], direct_ids: list[str]) -> list[NarrativeEvent]:
        """Wait for dispatched work until it settles or the tick budget runs out."""
        while True:
            for run in runs:
                if not run.done:
                    self._advance(run)
            watched = [i for r in runs if not r.done for i in r.execution.task_ids]
            if not watched and self.scheduler.wait(direct_ids, 0):
                break
            remaining = tick.remaining()
            # A replan only starts once everything watched has settled
            if remaining <= 0 or not self.scheduler.wait(watched + direct_ids, remaining):
                break

        pending = [r for r in runs if not r.done]
        outstanding = [i for r in pending for i in r.execution.task_ids]
        outstanding += [i for i in direct_ids if not self.scheduler.wait([i], 0)]
        if outstanding:
            self._expire_budget(tick, outstanding)
        for run in pending:
            self._abandon(run)
        outcomes = self.scheduler.collect(direct_ids)
        settled = {o.task_id for o in outcomes}
        for task_id in direct_ids:
            if task_id not in settled:
                self._carryover[task_id] = "runtime"
        return [self._outcome_event(o) for o in outcomes]

    def _advance(self, run: _GoalRun) -> None:
        execution = run.execution
        if not self.scheduler.wait(execution.task_ids, 0):
            return
        outcomes = self.scheduler.collect(execution.task_ids)
        run.outcomes.extend(outcomes)
        try:
            follow_up = self.planner.reconcile(execution, outcomes)
        except AstraError as exc:
            if isinstance(exc, DependencyCycleError):
                raise
            run.error = exc
            run.done = True
            return
        if follow_up is None:
            run.done = True
        else:
            run.execution = follow_up
            run.actions.update(follow_up.tasks)

    def _expire_budget(self, tick: Tick, task_ids: list[str]) -> None:
        logger.warning("Tick %d budget exhausted with %d tasks outstanding", tick.seq, len(task_ids))
        for task_id in task_ids:
            try:
                self.scheduler.cancel(task_id)
            except KeyError:
                continue
        self.scheduler.wait(task_ids, self.settings.cancel_grace)

    def _abandon(self, run: _GoalRun) -> None:
        execution = run.execution
        settled = self.scheduler.collect(execution.task_ids)
        run.outcomes.extend(settled)
        finished = {o.task_id for o in settled}
        for task_id in execution.task_ids:
            if task_id not in finished:
                self._carryover[task_id] = run.goal.target
        self.planner.abandon(execution, settled)
        run.error = TaskTimeoutError(f"{run.goal.target} did not settle within the tick budget")
        run.done = True

    def _harvest_carryover(self) -> list[NarrativeEvent]:
        events: list[NarrativeEvent] = []
        for task_id, target in list(self._carryover.items()):
            try:
                finished = self.scheduler.wait([task_id], 0)
            except KeyError:
                del self._carryover[task_id]
                continue
            if not finished:
                continue
            del self._carryover[task_id]
            for outcome in self.scheduler.collect([task_id]):
                event = self._outcome_event(outcome)
                events.append(
                    _event(
                        event.actor, event.action, f"{event.outcome} (late, for {target})",
                        event.valence, event.intensity, (*event.tags, "carryover"),
                    ),
                )
        return events

    # ------------------------------------------------------------------ #
    # Aggregation
    # ------------------------------------------------------------------ #

    def _outcome_event(self, outcome: TaskOutcome, tags: Iterable[str] = ()) -> NarrativeEvent:
        base = ("task", outcome.state.value, outcome.task_id, *tags)
        if outcome.state is TaskState.COMPLETED:
            return _event(outcome.module, outcome.name, "completed", 0.2, 0.2, base)
        if outcome.state is TaskState.FAILED:
            error = outcome.error or ExecutionError(outcome.reason)
            message = user_message(error)
            kind = error.kind if isinstance(error, AstraError) else "internal"
            return _event(outcome.module, outcome.name, f"failed: {message}", -0.5, 0.5, (*base, "failure", kind))
        note = "cancelled after an upstream failure" if outcome.cascaded else "cancelled"
        return _event(outcome.module, outcome.name, note, -0.1, 0.2, base)

    def _report_goal(self, run: _GoalRun, frame: TickFrame) -> None:
        goal = run.goal
        for outcome in run.outcomes:
            action = run.actions.get(outcome.task_id)
            run.slot.events.append(self._outcome_event(outcome, action.tags if action else ()))
        plan: Plan | None = run.execution.plan if run.execution else None
        frame.retired_goals.append(goal.id)
        if run.error is not None:
            logger.warning("Goal %s failed: %s", goal.target, run.error)
            run.slot.reply = user_message(run.error)
            run.slot.events.append(_failure("planner", "goal_failed", run.error, goal.target))
        elif plan is not None and plan.state is PlanState.ABANDONED:
            run.slot.reply = f"I stopped working on {goal.target}."
            run.slot.events.append(
                _event("planner", "goal_abandoned", goal.target, -0.2, 0.3, ("goal", "goal_abandoned")),
            )
        else:
            summary = plan.describe() if plan is not None else goal.target
            run.slot.reply = f"Done! {goal.target} is achieved: {summary}."
            run.slot.events.append(
                _event("planner", "goal_achieved", f"{goal.target}: {summary}", 0.6, 0.5, ("goal", "goal_achieved")),
            )

    # ------------------------------------------------------------------ #
    # Loop control
    # ------------------------------------------------------------------ #

    def run(self, max_ticks: int | None = None) -> int:
        """Tick until stopped; returns the number of ticks run.

        Stopping is final: a ``stop()`` or ``/stop`` that lands before the loop
        starts ends it before the first tick.
        """
        count = 0
        logger.info("Runtime loop started (budget %.2fs)", self.settings.tick_budget)
        try:
            while not self._stop.is_set():
                started = time.monotonic()
                self.tick()
                count += 1
                if max_ticks is not None and count >= max_ticks:
                    break
                pause = self.settings.tick_interval - (time.monotonic() - started)
                if pause > 0:
                    self._stop.wait(pause)
        finally:
            logger.info("Runtime loop stopped after %d ticks", count)
        return count

    def stop(self) -> None:
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    @property
    def tick_count(self) -> int:
        return self._tick_seq

    def close(self) -> None:
        self._stop.set()
        self.scheduler.shutdown()

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #

    def get_current_emotion(self) -> dict[str, float]:
        return self.emotion_engine.snapshot(self.context.emotion)

    def get_traits(self) -> Mapping[str, float]:
        return self.personality_engine.get_traits(self.context.personality)

    def recent_events(self, limit: int = 10) -> list[NarrativeEvent]:
        return self.memory.recent_events(limit)

    def query_memory(self, query: str, limit: int | None = None) -> list[NarrativeEvent]:
        return self.memory.query_memory(query, limit)

    def learning_progress(self) -> dict:
        return self.learning.snapshot()

    def reasoning_chains(self) -> dict[str, list[str]]:
        return self.knowledge.reasoning_chains()

    def status(self) -> dict:
        return {
            "tick": self._tick_seq,
            "phase": self.phase.value,
            "mood": self.emotion_engine.label(self.context.emotion),
            "active_goals": len(self._planner_module.active_goals),
            "carryover": len(self._carryover),
            "memory": self.memory.stats(),
            "scheduler": self.scheduler.stats(),
        }
