"""Pydantic models for the emotion inference subsystem.

These models represent:
- The personal behavioral baseline produced by calibration
- Baseline-normalised behavior features fed to the behavior scorer
- Per-channel scorer output
- Fused, smoothed, and finally emitted decisions
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from emotion_engine.models import BehaviorFeatureRecord, Channel


# ── Enums ─────────────────────────────────────────────────────


class BehaviorEmotion(str, Enum):
    """Labels produced by the rule-based behavior scorer."""

    CALM = "calm"
    FRUSTRATED = "frustrated"
    IMPULSIVE = "impulsive"
    ENGAGED = "engaged"
    NEUTRAL = "neutral"


class DecisionSource(str, Enum):
    """Provenance of a fused decision.

    ``hybrid`` whenever a webcam result contributed, alone or combined.
    """

    BEHAVIOR = "behavior"
    HYBRID = "hybrid"


class GatingPolicy(str, Enum):
    """Stability-gate flavour.

    ``responsive`` surfaces early, low-latency signal; ``conservative``
    waits for consecutive agreement and higher confidence.
    """

    RESPONSIVE = "responsive"
    CONSERVATIVE = "conservative"


# ── Baseline ─────────────────────────────────────────────────


DEFAULT_NORMAL_VELOCITY = 1.0
DEFAULT_NORMAL_ACCELERATION = 1.0
DEFAULT_NORMAL_HOVER_TIME = 1500.0


class Baseline(BaseModel):
    """A user's resting interaction intensity.

    Immutable once set; a new baseline only comes from recalibration.
    """

    model_config = ConfigDict(frozen=True)

    normal_velocity: float = Field(DEFAULT_NORMAL_VELOCITY, gt=0.0)
    normal_acceleration: float = Field(DEFAULT_NORMAL_ACCELERATION, gt=0.0)
    normal_hover_time: float = Field(DEFAULT_NORMAL_HOVER_TIME, gt=0.0)
    sample_count: int = Field(0, ge=0, description="Calibration samples averaged into the baseline.")


# ── Features ─────────────────────────────────────────────────


class NormalizedBehaviorFeatures(BehaviorFeatureRecord):
    """A raw behavior record plus dimensionless baseline ratios."""

    normalized_velocity: float = Field(0.0, ge=0.0)
    normalized_acceleration: float = Field(0.0, ge=0.0)
    normalized_hover_time: float = Field(0.0, ge=0.0)


# ── Channel & decision outputs ───────────────────────────────


class ChannelResult(BaseModel):
    """Output of a single channel scorer.

    ``score`` equals ``confidence`` for the rule scorers, but is kept
    separate so a learned scorer can report an internal certainty that
    differs from the confidence it exposes.
    """

    channel: Channel
    emotion: str
    confidence: float = Field(ge=0.0, le=1.0)
    score: float
    model_version: str = "rule_v1"


class FusedDecision(BaseModel):
    """Single decision built from the latest result of each channel."""

    emotion: str
    confidence: float
    source: DecisionSource


# The smoother returns the same shape it consumes.
SmoothedDecision = FusedDecision


class FinalDecision(BaseModel):
    """A decision that passed the stability gate and is surfaced externally."""

    emotion: str
    confidence: float
    source: DecisionSource
    explanation: str = ""
    timestamp: float = Field(description="Emission time in milliseconds.")
