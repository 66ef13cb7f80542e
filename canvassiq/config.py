# canvassiq/config.py
"""
canvassiq Configuration: single source of truth via Pydantic Settings.

Resolution order: CLI flags > env vars (CANVASSIQ_*) > .env file > defaults.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CanvassConfig(BaseSettings):
    """Central configuration for canvassiq."""

    model_config = SettingsConfigDict(
        env_prefix="CANVASSIQ_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- LLM ---
    lm: str = "openai/gpt-4o-mini"
    api_key: str = ""
    api_base: str = "https://api.openai.com/v1"
    lm_temperature: float = 0.3

    # --- Orchestration ---
    # Only the last N turns are replayed into the narration prompt.
    history_limit: int = 5
    generation_timeout_s: float = 55.0
    max_context_records: int = 200

    # --- Answer guard ---
    answer_preamble: str = "Based on the data provided"
    require_preamble: bool = True
    recent_dates_in_answer: int = 3
    guard_phrases_path: Optional[Path] = None

    # --- Paths ---
    home_dir: Path = Field(default_factory=lambda: Path.home() / ".canvassiq")

    @property
    def log_dir(self) -> Path:
        return self.home_dir / "logs"


@lru_cache(maxsize=1)
def get_config() -> CanvassConfig:
    """Return the global config singleton."""
    return CanvassConfig()
