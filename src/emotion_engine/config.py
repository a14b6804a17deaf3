"""Centralised engine settings loaded from environment / .env file."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_DEFAULT_DB_URL = f"sqlite+aiosqlite:///{_PROJECT_ROOT / 'data' / 'emotion_engine.db'}"


class Settings(BaseSettings):
    """All runtime configuration for the emotion fusion engine.

    Values are read from ``EMOTION_ENGINE_*`` environment variables first,
    then from a *.env* file located at the project root.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMOTION_ENGINE_",
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ───────────────────────────────────────────────
    database_url: str = _DEFAULT_DB_URL

    # ── Logging ───────────────────────────────────────────────
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ── Stability gate ────────────────────────────────────────
    gating_policy: Literal["responsive", "conservative"] = "responsive"
    emit_during_calibration: bool | None = None  # None → follow the gating policy

    # ── Calibration ───────────────────────────────────────────
    calibration_duration_ms: float = 120_000.0
    calibration_max_samples: int = 300

    # ── Channels ──────────────────────────────────────────────
    webcam_admission_threshold: float = 0.75
    clamp_motion_features: bool = True

    # ── Smoothing ─────────────────────────────────────────────
    history_size: int = 15


@lru_cache
def get_settings() -> Settings:
    """Return a cached :class:`Settings` singleton."""
    return Settings()
