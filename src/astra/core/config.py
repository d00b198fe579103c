from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASTRA_", env_file=".env", env_file_encoding="utf-8", extra="ignore",
    )

    # Tick loop
    tick_budget_ms: int = Field(default=2000, gt=0)
    tick_interval: float = Field(default=0.5, ge=0.0)  # seconds between run() ticks
    cancel_grace_ms: int = Field(default=100, ge=0)

    # Scheduler
    concurrency_limit: int = Field(default=4, ge=1)
    queue_limit: int = Field(default=256, ge=1)

    # Emotion
    emotion_half_life: float = Field(default=8.0, gt=0.0)  # in ticks
    emotion_baseline_valence: float = Field(default=0.1, ge=-1.0, le=1.0)
    emotion_baseline_arousal: float = Field(default=0.0, ge=-1.0, le=1.0)
    emotion_baseline_dominance: float = Field(default=0.0, ge=-1.0, le=1.0)
    emotion_sensitivity: float = Field(default=0.35, ge=0.0, le=1.0)
    decision_bound: float = Field(default=0.25, ge=0.0, lt=1.0)

    # Personality
    trait_learning_rate: float = Field(default=0.05, gt=0.0, le=1.0)

    # Memory
    memory_capacity: int = Field(default=1000, ge=1)
    memory_file: Path | None = None  # JSONL; None keeps the log in-process only

    # Planner
    max_replans: int = Field(default=1, ge=0)
    planner_search_budget: int = Field(default=64, ge=1)

    # Intents / reports
    intent_max_chars: int = Field(default=2000, ge=1)
    recent_events_limit: int = Field(default=10, ge=1)

    # HTTP
    web_host: str = "127.0.0.1"
    web_port: int = 8080

    log_level: str = "INFO"

    @property
    def tick_budget(self) -> float:
        return self.tick_budget_ms / 1000.0

    @property
    def cancel_grace(self) -> float:
        return self.cancel_grace_ms / 1000.0

    @property
    def emotion_baseline(self) -> tuple[float, float, float]:
        return (
            self.emotion_baseline_valence,
            self.emotion_baseline_arousal,
            self.emotion_baseline_dominance,
        )


settings: Settings = Settings()
