"""Scheduler — runs a task graph under dependency, priority, deadline and
concurrency constraints.

Tasks move ``PENDING → READY → RUNNING → {COMPLETED | FAILED | CANCELLED}``.
A task becomes READY only when every dependency is COMPLETED; a FAILED or
CANCELLED dependency cancels it (and its own dependents) instead. Ready tasks
are dispatched highest priority first, FIFO among equal priorities, onto a
bounded ``ThreadPoolExecutor``.

Submission is all-or-nothing: a batch with an unknown dependency, a duplicate
id, a cycle, or more tasks than the queue can hold is rejected whole.

A watchdog thread enforces deadlines. A task that runs past its deadline is
marked FAILED with ``TaskTimeoutError`` right away and its cancellation token
is set; its worker slot stays occupied until the callable actually returns.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import math
import threading
import time
from collections import OrderedDict, defaultdict
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

from astra.core.errors import DependencyCycleError, SchedulingError, TaskTimeoutError

logger = logging.getLogger(__name__)

_MAX_WATCH_WAIT = 60.0  # seconds; Condition.wait overflows on very distant deadlines


class TaskState(StrEnum):
    PENDING = "pending"
    READY = "ready"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def terminal(self) -> bool:
        return self in (TaskState.COMPLETED, TaskState.FAILED, TaskState.CANCELLED)


class TaskContext:
    """Handed to a task's callable: its id and a cooperative cancellation token."""

    __slots__ = ("task_id", "_cancel")

    def __init__(self, task_id: str, cancel: threading.Event) -> None:
        self.task_id = task_id
        self._cancel = cancel

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; returns True early if the task was told to stop."""
        return self._cancel.wait(seconds)


TaskAction: TypeAlias = Callable[[TaskContext], Any]


@dataclass(slots=True, eq=False)
class Task:
    id: str
    action: TaskAction
    module: str = "runtime"
    priority: float = 0.0
    depends_on: frozenset[str] = frozenset()
    deadline: float | None = None  # seconds allowed once running
    name: str = ""
    state: TaskState = TaskState.PENDING
    result: Any = None
    error: BaseException | None = None
    reason: str = ""
    cascaded: bool = False  # cancelled because an upstream task did not complete
    submitted_seq: int = 0
    started_at: float | None = None
    finished_at: float | None = None
    cancel_requested: bool = False
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("task id must not be empty")
        if self.deadline is not None and not (math.isfinite(self.deadline) and self.deadline > 0):
            raise ValueError("deadline must be a positive finite number")
        self.depends_on = frozenset(self.depends_on)
        self.name = self.name or self.id


@dataclass(frozen=True, slots=True)
class TaskOutcome:
    task_id: str
    name: str
    module: str
    state: TaskState
    result: Any = None
    error: BaseException | None = None
    reason: str = ""
    cascaded: bool = False
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is TaskState.COMPLETED

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    @classmethod
    def of(cls, task: Task) -> TaskOutcome:
        return cls(
            task_id=task.id,
            name=task.name,
            module=task.module,
            state=task.state,
            result=task.result,
            error=task.error,
            reason=task.reason,
            cascaded=task.cascaded,
            started_at=task.started_at,
            finished_at=task.finished_at,
        )


class Scheduler:
    RETIRED_LIMIT = 4096

    def __init__(
        self,
        concurrency_limit: int = 4,
        queue_limit: int = 256,
        name: str = "astra",
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self.concurrency_limit = concurrency_limit
        self.queue_limit = queue_limit
        self._cond = threading.Condition()
        self._tasks: dict[str, Task] = {}
        self._dependents: defaultdict[str, set[str]] = defaultdict(set)
        self._ready: list[tuple[float, int, str]] = []
        self._occupied = 0
        self._seq = itertools.count(1)
        self._retired: OrderedDict[str, TaskState] = OrderedDict()
        self._closed = False
        self._pool = ThreadPoolExecutor(
            max_workers=concurrency_limit, thread_name_prefix=f"{name}-task",
        )
        self._watchdog = threading.Thread(
            target=self._watch, name=f"{name}-watchdog", daemon=True,
        )
        self._watchdog.start()

    def __enter__(self) -> Scheduler:
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    def submit(self, tasks: Iterable[Task]) -> list[str]:
        """Validate and enqueue a batch. Raises ``SchedulingError`` and changes nothing on rejection."""
        batch = list(tasks)
        if not batch:
            return []
        with self._cond:
            self._validate(batch)
            for task in batch:
                task.submitted_seq = next(self._seq)
                task.state = TaskState.PENDING
                self._tasks[task.id] = task
            for task in batch:
                for dep in task.depends_on:
                    if dep in self._tasks:
                        self._dependents[dep].add(task.id)
            for task in batch:
                self._settle(task)
            self._pump()
            self._cond.notify_all()
        logger.info("Submitted %d tasks (%d active)", len(batch), self.active_count())
        return [task.id for task in batch]

    def _validate(self, batch: list[Task]) -> None:
        if self._closed:
            raise SchedulingError("scheduler is shut down")
        ids = [task.id for task in batch]
        batch_ids = set(ids)
        if len(batch_ids) != len(ids):
            raise SchedulingError("duplicate task ids in batch")
        known = batch_ids & (self._tasks.keys() | self._retired.keys())
        if known:
            raise SchedulingError(f"task ids already submitted: {', '.join(sorted(known))}")
        for task in batch:
            for dep in task.depends_on:
                if dep not in batch_ids and dep not in self._tasks and dep not in self._retired:
                    raise SchedulingError(f"task {task.id} depends on unknown task {dep}")
        active = sum(1 for t in self._tasks.values() if not t.state.terminal)
        if active + len(batch) > self.queue_limit:
            raise SchedulingError(
                f"queue full: {active} active + {len(batch)} new > {self.queue_limit}",
            )
        # Known tasks cannot depend on new ones, so any cycle lies inside the batch
        cycle = _find_cycle({t.id: t.depends_on & batch_ids for t in batch})
        if cycle:
            raise DependencyCycleError(cycle)

    # ------------------------------------------------------------------ #
    # State transitions (caller holds the lock)
    # ------------------------------------------------------------------ #

    def _dep_state(self, task_id: str) -> TaskState:
        task = self._tasks.get(task_id)
        return task.state if task is not None else self._retired[task_id]

    def _settle(self, task: Task) -> None:
        if task.state is not TaskState.PENDING:
            return
        states = [self._dep_state(dep) for dep in task.depends_on]
        blocked = next(
            (dep for dep, s in zip(task.depends_on, states)
             if s in (TaskState.FAILED, TaskState.CANCELLED)),
            None,
        )
        if blocked is not None:
            self._mark_cancelled(task, f"dependency {blocked} did not complete", cascaded=True)
            self._cascade(task.id)
        elif all(s is TaskState.COMPLETED for s in states):
            task.state = TaskState.READY
            heapq.heappush(self._ready, (-task.priority, task.submitted_seq, task.id))

    def _mark_cancelled(self, task: Task, reason: str, cascaded: bool = False) -> None:
        task.state = TaskState.CANCELLED
        task.reason = reason
        task.cascaded = cascaded
        task.finished_at = time.monotonic()
        logger.debug("Task %s cancelled: %s", task.id, reason)

    def _cascade(self, root_id: str) -> None:
        """Cancel every not-yet-running transitive dependent of ``root_id``."""
        stack = list(self._dependents.get(root_id, ()))
        while stack:
            task = self._tasks.get(stack.pop())
            if task is None or task.state not in (TaskState.PENDING, TaskState.READY):
                continue
            self._mark_cancelled(task, f"upstream task {root_id} did not complete", cascaded=True)
            stack.extend(self._dependents.get(task.id, ()))

    def _pump(self) -> None:
        while self._occupied < self.concurrency_limit and self._ready and not self._closed:
            _, _, task_id = heapq.heappop(self._ready)
            task = self._tasks.get(task_id)
            if task is None or task.state is not TaskState.READY:
                continue
            task.state = TaskState.RUNNING
            task.started_at = time.monotonic()
            self._occupied += 1
            logger.debug("Dispatching %s (priority=%.2f)", task.id, task.priority)
            self._pool.submit(self._run, task)

    def _run(self, task: Task) -> None:
        result: Any = None
        error: BaseException | None = None
        try:
            result = task.action(TaskContext(task.id, task._cancel))
        except Exception as exc:
            error = exc
        with self._cond:
            self._finish(task, result, error)
            self._pump()
            self._cond.notify_all()

    def _finish(self, task: Task, result: Any, error: BaseException | None) -> None:
        self._occupied -= 1
        if task.state is not TaskState.RUNNING:
            # Already failed by the watchdog; the late result is dropped
            logger.debug("Task %s returned after reaching %s", task.id, task.state)
            return
        task.finished_at = time.monotonic()
        if task.cancel_requested:
            task.state = TaskState.CANCELLED
            task.reason = task.reason or "cancelled while running"
            self._cascade(task.id)
        elif error is not None:
            task.state = TaskState.FAILED
            task.error = error
            task.reason = f"{type(error).__name__}: {error}"
            logger.warning("Task %s failed: %s", task.id, task.reason)
            self._cascade(task.id)
        else:
            task.state = TaskState.COMPLETED
            task.result = result
            for dep_id in list(self._dependents.get(task.id, ())):
                dependent = self._tasks.get(dep_id)
                if dependent is not None:
                    self._settle(dependent)

    def _expire(self, task: Task, now: float) -> None:
        task.state = TaskState.FAILED
        task.error = TaskTimeoutError(f"task {task.id} exceeded its {task.deadline:.3f}s deadline")
        task.reason = str(task.error)
        task.finished_at = now
        task._cancel.set()
        logger.warning("Task %s timed out after %.3fs", task.id, now - (task.started_at or now))
        self._cascade(task.id)

    def _watch(self) -> None:
        with self._cond:
            while not self._closed:
                now = time.monotonic()
                next_due: float | None = None
                expired = False
                for task in list(self._tasks.values()):
                    if task.state is not TaskState.RUNNING or task.deadline is None:
                        continue
                    due = (task.started_at or now) + task.deadline
                    if due <= now:
                        self._expire(task, now)
                        expired = True
                    elif next_due is None or due < next_due:
                        next_due = due
                if expired:
                    self._cond.notify_all()
                self._cond.wait(None if next_due is None else min(next_due - now, _MAX_WATCH_WAIT))

    # ------------------------------------------------------------------ #
    # Control and queries
    # ------------------------------------------------------------------ #

    def cancel(self, task_id: str) -> bool:
        """Cancel a task and its transitive dependents.

        Returns False if the task already finished. A running task is signalled
        and becomes CANCELLED when its callable returns.
        """
        with self._cond:
            task = self._tasks.get(task_id)
            if task is None:
                if task_id in self._retired:
                    return False
                raise KeyError(task_id)
            if task.state.terminal:
                return False
            if task.state is TaskState.RUNNING:
                task.cancel_requested = True
                task.reason = "cancel requested"
                task._cancel.set()
            else:
                self._mark_cancelled(task, "cancel requested")
            self._cascade(task.id)
            self._cond.notify_all()
        logger.info("Cancel requested for task %s", task_id)
        return True

    def wait(self, task_ids: Iterable[str], timeout: float | None = None) -> bool:
        """Block until every task is terminal; False if ``timeout`` ran out first."""
        ids = list(task_ids)
        until = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not all(self._is_terminal(i) for i in ids):
                if until is None:
                    self._cond.wait()
                    continue
                remaining = until - time.monotonic()
                if remaining <= 0:
                    return False
                self._cond.wait(remaining)
            return True

    def _is_terminal(self, task_id: str) -> bool:
        task = self._tasks.get(task_id)
        if task is not None:
            return task.state.terminal
        if task_id in self._retired:
            return True
        raise KeyError(task_id)

    def state(self, task_id: str) -> TaskState:
        with self._cond:
            return self._dep_state(task_id)

    def outcome(self, task_id: str) -> TaskOutcome:
        with self._cond:
            return TaskOutcome.of(self._tasks[task_id])

    def collect(self, task_ids: Iterable[str]) -> list[TaskOutcome]:
        """Retire the terminal tasks among ``task_ids`` and return their outcomes."""
        outcomes: list[TaskOutcome] = []
        with self._cond:
            for task_id in task_ids:
                task = self._tasks.get(task_id)
                if task is None or not task.state.terminal:
                    continue
                outcomes.append(TaskOutcome.of(task))
                del self._tasks[task_id]
                self._dependents.pop(task_id, None)
                self._retired[task_id] = task.state
            while len(self._retired) > self.RETIRED_LIMIT:
                self._retired.popitem(last=False)
        return outcomes

    def active_count(self) -> int:
        with self._cond:
            return sum(1 for t in self._tasks.values() if not t.state.terminal)

    def running_count(self) -> int:
        with self._cond:
            return sum(1 for t in self._tasks.values() if t.state is TaskState.RUNNING)

    def stats(self) -> dict:
        with self._cond:
            by_state: dict[str, int] = {}
            for task in self._tasks.values():
                by_state[task.state] = by_state.get(task.state, 0) + 1
            return {
                "tracked": len(self._tasks),
                "retired": len(self._retired),
                "occupied_slots": self._occupied,
                "concurrency_limit": self.concurrency_limit,
                "by_state": by_state,
            }

    def shutdown(self, wait: bool = True) -> None:
        with self._cond:
            if self._closed:
                return
            self._closed = True
            for task in self._tasks.values():
                if task.state in (TaskState.PENDING, TaskState.READY):
                    self._mark_cancelled(task, "scheduler shut down")
                elif task.state is TaskState.RUNNING:
                    task.cancel_requested = True
                    task._cancel.set()
            self._cond.notify_all()
        self._pool.shutdown(wait=wait)
        self._watchdog.join(timeout=1.0)
        logger.info("Scheduler shut down")


def _find_cycle(graph: dict[str, frozenset[str]]) -> list[str]:
    """Return one dependency cycle as a list of ids (first id repeated at the end), or []."""
    white, grey, black = 0, 1, 2
    color = dict.fromkeys(graph, white)
    for root in sorted(graph):
        if color[root] != white:
            continue
        path: list[str] = [root]
        stack = [iter(sorted(graph[root]))]
        color[root] = grey
        while stack:
            child = next(stack[-1], None)
            if child is None:
                stack.pop()
                color[path.pop()] = black
                continue
            if color[child] == grey:
                return path[path.index(child):] + [child]
            if color[child] == white:
                color[child] = grey
                path.append(child)
                stack.append(iter(sorted(graph[child])))
    return []
