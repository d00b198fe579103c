"""Astra — tick-driven cognitive runtime.

Architecture:
    core/       — config, errors, narrative events, memory store
    cognition/  — emotion, persona, humor, planner, knowledge, learning
    runtime/    — intent parser, scheduler, tick modules, runtime core
    channels/   — HTTP surface (FastAPI)
"""

__version__ = "0.1.0"
