"""Cognition — emotion, personality, knowledge, and planning."""

from astra.cognition.emotion import Decision, EmotionEngine, EmotionState
from astra.cognition.knowledge import Fact, KnowledgeBase
from astra.cognition.learning import LearningTracker
from astra.cognition.persona import PersonalityEngine, PersonalityProfile
from astra.cognition.planner import Action, Goal, Plan, Planner, PlanState

__all__ = [
    "Action",
    "Decision",
    "EmotionEngine",
    "EmotionState",
    "Fact",
    "Goal",
    "KnowledgeBase",
    "LearningTracker",
    "PersonalityEngine",
    "PersonalityProfile",
    "Plan",
    "PlanState",
    "Planner",
]
