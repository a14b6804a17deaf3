"""Channel scorers — map one channel's features to an (emotion, confidence) pair.

Both rule scorers are pure functions wrapped in a small class hierarchy so
a learned model can replace either of them without touching fusion,
smoothing, or gating: anything implementing :class:`BaseScorer` with the
same input type can be handed to the engine.

Behavior rules
--------------
Two derived signals drive classification::

    arousal = 0.4·velocity + 0.3·acceleration + 0.2·burst + 0.1·dir_variance
    focus   = max(0, 1 − dir_variance) · (1 + 0.2·hover_time)

(all on the normalised features).  Rules are checked in order; the first
match wins:

==========  ===============================================  ===============================
Emotion     Condition                                        Raw confidence
==========  ===============================================  ===============================
calm        arousal < 0.6 and focus > 1.1                    0.65 + 0.1·focus
frustrated  arousal > 1.4 and dir_variance > 0.7             0.7 + 0.15·min(1.5, arousal−1)
impulsive   arousal > 1.2 and burst > 0.8                    0.7 + 0.12·min(1.5, burst)
engaged     focus > 1.2 and 0.8 ≤ arousal ≤ 1.2              0.7 + 0.1·(focus−1)
neutral     otherwise                                        0.55
==========  ===============================================  ===============================

Raw confidences are clamped to [0.5, 0.95].

Webcam rules
------------
The upstream label is kept; confidence is boosted by brow tension and
penalised by head movement above 0.5 and blink rate above 0.6, then
clamped to [0.4, 0.98].
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from emotion_engine.inference.models import (
    BehaviorEmotion,
    ChannelResult,
    NormalizedBehaviorFeatures,
)
from emotion_engine.models import Channel, WebcamFeatureRecord

RULE_MODEL_VERSION = "rule_v1"

_BEHAVIOR_CONFIDENCE_BOUNDS = (0.5, 0.95)
_WEBCAM_CONFIDENCE_BOUNDS = (0.4, 0.98)
_NEUTRAL_CONFIDENCE = 0.55


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(hi, value))


# ── Behavior scoring ─────────────────────────────────────────


def compute_arousal(features: NormalizedBehaviorFeatures) -> float:
    """Weighted activation level from normalised motion features."""
    return (
        0.4 * features.normalized_velocity
        + 0.3 * features.normalized_acceleration
        + 0.2 * features.motion_burst_frequency
        + 0.1 * features.direction_variance
    )


def compute_focus(features: NormalizedBehaviorFeatures) -> float:
    """Directional steadiness, amplified by dwell (hover) time."""
    return max(0.0, 1.0 - features.direction_variance) * (1.0 + 0.2 * features.normalized_hover_time)


def classify_behavior(arousal: float, focus: float, direction_variance: float, burst: float) -> tuple[BehaviorEmotion, float]:
    """Apply the ordered threshold rules; return (emotion, raw confidence)."""
    if arousal < 0.6 and focus > 1.1:
        return BehaviorEmotion.CALM, 0.65 + 0.1 * focus
    if arousal > 1.4 and direction_variance > 0.7:
        return BehaviorEmotion.FRUSTRATED, 0.7 + 0.15 * min(1.5, arousal - 1.0)
    if arousal > 1.2 and burst > 0.8:
        return BehaviorEmotion.IMPULSIVE, 0.7 + 0.12 * min(1.5, burst)
    if focus > 1.2 and 0.8 <= arousal <= 1.2:
        return BehaviorEmotion.ENGAGED, 0.7 + 0.1 * (focus - 1.0)
    return BehaviorEmotion.NEUTRAL, _NEUTRAL_CONFIDENCE


def score_behavior(features: NormalizedBehaviorFeatures) -> ChannelResult:
    """Score one normalised behavior sample."""
    arousal = compute_arousal(features)
    focus = compute_focus(features)
    emotion, raw = classify_behavior(
        arousal, focus, features.direction_variance, features.motion_burst_frequency
    )
    confidence = _clamp(raw, _BEHAVIOR_CONFIDENCE_BOUNDS)
    return ChannelResult(
        channel=Channel.BEHAVIOR,
        emotion=emotion.value,
        confidence=confidence,
        score=confidence,
        model_version=RULE_MODEL_VERSION,
    )


# ── Webcam scoring ───────────────────────────────────────────


def score_webcam(features: WebcamFeatureRecord) -> ChannelResult:
    """Re-weight the upstream webcam confidence; the label passes through."""
    stability_penalty = 0.1 * max(0.0, features.head_movement - 0.5) + 0.1 * max(
        0.0, features.blink_rate - 0.6
    )
    tension_boost = 0.1 * features.brow_tension
    adjusted = _clamp(
        features.confidence + tension_boost - stability_penalty, _WEBCAM_CONFIDENCE_BOUNDS
    )
    return ChannelResult(
        channel=Channel.WEBCAM,
        emotion=features.emotion,
        confidence=adjusted,
        score=adjusted,
        model_version=RULE_MODEL_VERSION,
    )


# ── Scorer interface ─────────────────────────────────────────


class BaseScorer(ABC):
    """Capability interface shared by rule-based and learned scorers."""

    channel: Channel
    model_version: str = RULE_MODEL_VERSION

    @abstractmethod
    def score(self, features: Any) -> ChannelResult | None:
        """Score one sample; ``None`` means no opinion for this sample."""


class RuleBehaviorScorer(BaseScorer):
    channel = Channel.BEHAVIOR

    def score(self, features: NormalizedBehaviorFeatures) -> ChannelResult | None:
        if features is None:
            return None
        return score_behavior(features)


class RuleWebcamScorer(BaseScorer):
    channel = Channel.WEBCAM

    def score(self, features: WebcamFeatureRecord) -> ChannelResult | None:
        if features is None:
            return None
        return score_webcam(features)
