"""Pydantic models for the feature records delivered to the engine.

These records are produced by external collaborators (the page-side
behavior tracker and the webcam motion analyser).  Field names are
snake_case in Python, but every record also accepts the camelCase names
the browser side emits (``avgVelocity``, ``hoverTime``, ``blinkRate`` ...).
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ── Enums ─────────────────────────────────────────────────────


class Channel(str, Enum):
    """The two independent signal sources feeding the engine."""
    BEHAVIOR = "behavior"
    WEBCAM = "webcam"


# ── Shared config ─────────────────────────────────────────────

_RECORD_CONFIG = ConfigDict(
    alias_generator=to_camel,
    populate_by_name=True,
    allow_inf_nan=False,
    extra="ignore",
)


def _none_to_zero(value: Any) -> Any:
    return 0.0 if value is None else value


# ── Behavior channel ──────────────────────────────────────────


class BehaviorFeatureRecord(BaseModel):
    """Interaction-dynamics snapshot flushed by the behavior tracker.

    One record is produced per flush interval (a few seconds) or when the
    page goes idle.  Absent numeric fields default to ``0``.
    """

    model_config = _RECORD_CONFIG

    avg_scroll_speed: float = 0.0
    avg_velocity: float = 0.0
    avg_acceleration: float = 0.0
    hover_time: float = 0.0  # mean hover duration, ms
    click_rate: float = 0.0
    idle_time: float = 0.0  # ms since last activity
    cart_fluctuation: float = 0.0  # cart adds + removals
    tab_switches: float = 0.0
    direction_variance: float = 0.0  # circular statistic, nominally [0, 1]
    motion_burst_frequency: float = 0.0
    timestamp: float | None = Field(None, description="Capture time in milliseconds.")

    @field_validator(
        "avg_scroll_speed",
        "avg_velocity",
        "avg_acceleration",
        "hover_time",
        "click_rate",
        "idle_time",
        "cart_fluctuation",
        "tab_switches",
        "direction_variance",
        "motion_burst_frequency",
        mode="before",
    )
    @classmethod
    def _missing_as_zero(cls, value: Any) -> Any:
        return _none_to_zero(value)


# ── Webcam channel ────────────────────────────────────────────


class WebcamFeatureRecord(BaseModel):
    """Facial-heuristic snapshot produced by the webcam analyser.

    The emotion label is decided upstream; the engine only re-weights
    its confidence.
    """

    model_config = _RECORD_CONFIG

    emotion: str = "neutral"
    confidence: float = Field(ge=0.0, le=1.0)
    blink_rate: float = 0.0
    head_movement: float = 0.0
    brow_tension: float = 0.0
    timestamp: float | None = Field(None, description="Capture time in milliseconds.")

    @field_validator("blink_rate", "head_movement", "brow_tension", mode="before")
    @classmethod
    def _missing_as_zero(cls, value: Any) -> Any:
        return _none_to_zero(value)


class FacialSignals(BaseModel):
    """Loosely-typed facial signals, as emitted by older analyser builds.

    Every field is optional; :meth:`to_webcam_record` fills the gaps.
    """

    model_config = _RECORD_CONFIG

    emotion: str | None = None
    confidence: float | None = None
    blink_rate: float | None = None
    head_movement: float | None = None
    motion_intensity: float | None = None
    brow_tension: float | None = None
    eyebrow_raise: float | None = None
    timestamp: float | None = None

    def to_webcam_record(self, now_ms: float) -> WebcamFeatureRecord:
        """Convert to a :class:`WebcamFeatureRecord` using documented fallbacks.

        ``head_movement`` falls back to ``motion_intensity`` and
        ``brow_tension`` to ``eyebrow_raise``.
        """
        head = self.head_movement if self.head_movement is not None else self.motion_intensity
        brow = self.brow_tension if self.brow_tension is not None else self.eyebrow_raise
        return WebcamFeatureRecord(
            emotion=self.emotion or "neutral",
            confidence=self.confidence if self.confidence is not None else 0.6,
            blink_rate=self.blink_rate or 0.0,
            head_movement=head or 0.0,
            brow_tension=brow or 0.0,
            timestamp=self.timestamp if self.timestamp is not None else now_ms,
        )
