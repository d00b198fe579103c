"""Planner — turns a Goal into an ordered task graph and follows it through.

Actions declare preconditions and effects over world-state predicates. A plan
is found by backward chaining from the goal's target: pick an action that
produces the predicate, then recursively achieve its preconditions, skipping
anything the knowledge base says already holds. All alternatives found within
the search budget are costed and the cheapest wins.

Execution hands the plan's tasks to the Scheduler with the in-plan
dependencies intact. When the batch settles, ``reconcile`` records achieved
effects as knowledge and, if a task failed, replans around the failed action
at most ``max_replans`` times before giving up with ``PlanningError``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from astra.core.errors import PlanningError
from astra.runtime.scheduler import Task, TaskContext, TaskOutcome, TaskState

if TYPE_CHECKING:
    from astra.cognition.knowledge import KnowledgeBase
    from astra.runtime.scheduler import Scheduler, TaskAction

logger = logging.getLogger(__name__)


class PlanState(StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    REPLANNING = "replanning"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABANDONED = "abandoned"


@dataclass(slots=True)
class Goal:
    target: str
    priority: float = 5.0
    deadline: float | None = None  # per-task running budget, seconds
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    description: str = ""


@dataclass(frozen=True, slots=True)
class Action:
    name: str
    effects: frozenset[str]
    preconditions: frozenset[str] = frozenset()
    cost: float = 1.0
    module: str = "planner"
    handler: TaskAction | None = field(default=None, compare=False)
    deadline: float | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "effects", frozenset(self.effects))
        object.__setattr__(self, "preconditions", frozenset(self.preconditions))
        if not self.effects:
            raise ValueError(f"action {self.name} has no effects")
        if self.cost < 0:
            raise ValueError("cost must be non-negative")


@dataclass(frozen=True, slots=True)
class PlanStep:
    action: Action
    depends_on: frozenset[str] = frozenset()  # names of earlier steps


@dataclass(slots=True)
class Plan:
    goal: Goal
    steps: list[PlanStep]
    estimated_cost: float
    state: PlanState = PlanState.DRAFT
    attempt: int = 0

    @property
    def task_count(self) -> int:
        return len(self.steps)

    @property
    def is_empty(self) -> bool:
        return not self.steps

    def describe(self) -> str:
        if not self.steps:
            return f"{self.goal.target} already holds"
        chain = " -> ".join(step.action.name for step in self.steps)
        return f"{chain} (cost {self.estimated_cost:g})"


@dataclass(slots=True)
class PlanExecution:
    plan: Plan
    tasks: dict[str, Action] = field(default_factory=dict)  # task id -> action
    excluded: frozenset[str] = frozenset()
    replans: int = 0
    priority: float | None = None  # scheduling priority override, kept across replans

    @property
    def task_ids(self) -> list[str]:
        return list(self.tasks)


def _done(action: Action) -> TaskAction:
    def run(ctx: TaskContext) -> str:
        return f"{action.name} done"

    return run


def default_actions() -> list[Action]:
    """A small research chain so goals work out of the box."""
    return [
        Action("gather_sources", effects={"sources_gathered"}, cost=1.0, module="research"),
        Action(
            "study_sources",
            preconditions={"sources_gathered"},
            effects={"topic_understood"},
            cost=2.0,
            module="research",
        ),
        Action("recall_notes", effects={"topic_understood"}, cost=4.0, module="memory"),
        Action(
            "write_summary",
            preconditions={"topic_understood"},
            effects={"summary_written"},
            cost=1.0,
            module="research",
        ),
        Action(
            "write_module",
            preconditions={"topic_understood"},
            effects={"module_written"},
            cost=3.0,
            module="forge",
            tags=("code_module",),
        ),
    ]


class _Budget:
    __slots__ = ("remaining",)

    def __init__(self, expansions: int) -> None:
        self.remaining = expansions

    def spend(self) -> bool:
        if self.remaining <= 0:
            return False
        self.remaining -= 1
        return True


class Planner:
    def __init__(
        self,
        knowledge: KnowledgeBase,
        scheduler: Scheduler,
        actions: list[Action] | None = None,
        search_budget: int = 64,
        max_replans: int = 1,
    ) -> None:
        self.knowledge = knowledge
        self.scheduler = scheduler
        self.search_budget = search_budget
        self.max_replans = max_replans
        self._actions: dict[str, Action] = {}
        for action in default_actions() if actions is None else actions:
            self.register_action(action)

    def register_action(self, action: Action) -> None:
        self._actions[action.name] = action

    @property
    def actions(self) -> list[Action]:
        return list(self._actions.values())

    def can_produce(self, predicate: str) -> bool:
        return any(predicate in a.effects for a in self._actions.values())

    # ------------------------------------------------------------------ #
    # Search
    # ------------------------------------------------------------------ #

    def candidate_plans(self, goal: Goal, excluded: frozenset[str] = frozenset()) -> list[Plan]:
        if self.knowledge.holds(goal.target):
            return [Plan(goal=goal, steps=[], estimated_cost=0.0)]
        budget = _Budget(self.search_budget)
        solutions = self._achieve(goal.target, frozenset(), excluded, budget)
        plans: list[Plan] = []
        seen: set[frozenset[str]] = set()
        for chosen in solutions:
            key = frozenset(chosen)
            if key in seen:
                continue
            seen.add(key)
            plan = self._order(goal, chosen)
            if plan is not None:
                plans.append(plan)
        if budget.remaining <= 0:
            logger.debug("Search budget exhausted for %s (%d plans found)", goal.target, len(plans))
        return plans

    def _achieve(
        self,
        predicate: str,
        visiting: frozenset[str],
        excluded: frozenset[str],
        budget: _Budget,
    ) -> list[dict[str, Action]]:
        if self.knowledge.holds(predicate):
            return [{}]
        if predicate in visiting or not budget.spend():
            return []
        producers = sorted(
            (a for a in self._actions.values() if predicate in a.effects and a.name not in excluded),
            key=lambda a: (a.cost, a.name),
        )
        options: list[dict[str, Action]] = []
        for action in producers:
            partials: list[dict[str, Action]] = [{}]
            for pre in sorted(action.preconditions):
                subs = self._achieve(pre, visiting | {predicate}, excluded, budget)
                partials = [{**p, **s} for p in partials for s in subs][: self.search_budget]
                if not partials:
                    break
            options.extend({**p, action.name: action} for p in partials)
        return options

    def _order(self, goal: Goal, chosen: dict[str, Action]) -> Plan | None:
        deps: dict[str, set[str]] = {}
        for name, action in chosen.items():
            deps[name] = {
                other for other, producer in chosen.items()
                if other != name and producer.effects & action.preconditions
            }
        ordered: list[PlanStep] = []
        placed: set[str] = set()
        while len(placed) < len(chosen):
            ready = sorted(n for n in chosen if n not in placed and deps[n] <= placed)
            if not ready:
                return None
            for name in ready:
                ordered.append(PlanStep(chosen[name], frozenset(deps[name])))
                placed.add(name)
        cost = sum(a.cost for a in chosen.values())
        return Plan(goal=goal, steps=ordered, estimated_cost=cost)

    def evaluate_plans(self, plans: list[Plan]) -> Plan:
        """Cheapest plan; ties go to the one with fewer tasks."""
        if not plans:
            raise PlanningError("no plans to evaluate")
        return min(plans, key=lambda p: (p.estimated_cost, p.task_count))

    def create_plan(self, goal: Goal, excluded: frozenset[str] = frozenset()) -> Plan:
        plans = self.candidate_plans(goal, excluded)
        if not plans:
            self.knowledge.record_chain(
                f"plan {goal.target}",
                [f"goal {goal.target}", "no action sequence reaches it"],
            )
            raise PlanningError(f"no plan reaches {goal.target}")
        best = self.evaluate_plans(plans)
        self.knowledge.record_chain(
            f"plan {goal.target}",
            [
                f"goal {goal.target}",
                f"considered {len(plans)} plan(s)",
                f"selected {best.describe()}",
            ],
        )
        logger.info("Plan for %s: %s", goal.target, best.describe())
        return best

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #

    def execute_plan(self, plan: Plan, priority: float | None = None) -> PlanExecution:
        """Submit the plan's tasks; the batch keeps the plan's dependency order."""
        goal = plan.goal
        ids = {step.action.name: f"{goal.id}.{plan.attempt}.{step.action.name}" for step in plan.steps}
        tasks: list[Task] = []
        for step in plan.steps:
            action = step.action
            deadlines = [d for d in (action.deadline, goal.deadline) if d is not None]
            tasks.append(
                Task(
                    id=ids[action.name],
                    name=action.name,
                    action=action.handler or _done(action),
                    module=action.module,
                    priority=goal.priority if priority is None else priority,
                    depends_on=frozenset(ids[d] for d in step.depends_on),
                    deadline=min(deadlines) if deadlines else None,
                ),
            )
        self.scheduler.submit(tasks)
        plan.state = PlanState.SUCCEEDED if plan.is_empty else PlanState.SUBMITTED
        return PlanExecution(
            plan=plan,
            tasks={ids[step.action.name]: step.action for step in plan.steps},
            priority=priority,
        )

    def reconcile(
        self,
        execution: PlanExecution,
        outcomes: list[TaskOutcome],
    ) -> PlanExecution | None:
        """Settle a finished batch.

        Returns None when the plan is finished (``SUCCEEDED`` or ``ABANDONED``),
        or the execution of a replan. Raises ``PlanningError`` when a task
        failed and no further replan is allowed or possible.
        """
        plan = execution.plan
        by_id = {o.task_id: o for o in outcomes}
        failed: list[str] = []
        cancelled = False
        for task_id, action in execution.tasks.items():
            outcome = by_id.get(task_id)
            if outcome is None:
                raise ValueError(f"no outcome for task {task_id}")
            if outcome.state is TaskState.COMPLETED:
                for effect in action.effects:
                    self.knowledge.achieve(effect, provenance=task_id)
            elif outcome.state is TaskState.FAILED:
                failed.append(action.name)
            elif outcome.state is TaskState.CANCELLED and not outcome.cascaded:
                cancelled = True

        if not failed:
            plan.state = PlanState.ABANDONED if cancelled else PlanState.SUCCEEDED
            return None

        if execution.replans >= self.max_replans:
            plan.state = PlanState.FAILED
            raise PlanningError(
                f"{plan.goal.target}: {', '.join(failed)} failed and replanning is exhausted",
            )

        plan.state = PlanState.REPLANNING
        excluded = execution.excluded | frozenset(failed)
        try:
            replan = self.create_plan(plan.goal, excluded)
        except PlanningError:
            plan.state = PlanState.FAILED
            raise
        replan.attempt = plan.attempt + 1
        plan.state = PlanState.FAILED
        logger.info("Replanning %s without %s", plan.goal.target, ", ".join(failed))
        follow_up = self.execute_plan(replan, execution.priority)
        follow_up.excluded = excluded
        follow_up.replans = execution.replans + 1
        return follow_up

    def abandon(self, execution: PlanExecution, outcomes: list[TaskOutcome]) -> None:
        """Give up on an execution that did not settle in time; keep what finished."""
        completed = {o.task_id for o in outcomes if o.state is TaskState.COMPLETED}
        for task_id, action in execution.tasks.items():
            if task_id in completed:
                for effect in action.effects:
                    self.knowledge.achieve(effect, provenance=task_id)
        execution.plan.state = PlanState.ABANDONED
        logger.info("Abandoned plan for %s", execution.plan.goal.target)
