"""Feature normalisation against the personal baseline.

Without a baseline (the warm-up window, or before the persisted baseline
has been loaded) the record is normalised against itself, each
denominator floored at 1, so ratios stay near 1 instead of exploding.
"""

from __future__ import annotations

from emotion_engine.inference.models import Baseline, NormalizedBehaviorFeatures
from emotion_engine.models import BehaviorFeatureRecord

# Upstream motion statistics are clamped to these ranges before scoring.
DIRECTION_VARIANCE_RANGE = (0.0, 1.0)
MOTION_BURST_FREQUENCY_RANGE = (0.0, 5.0)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    lo, hi = bounds
    return max(lo, min(hi, value))


def self_baseline(features: BehaviorFeatureRecord) -> Baseline:
    """Fallback baseline derived from the record's own magnitudes."""
    return Baseline(
        normal_velocity=max(1.0, features.avg_velocity),
        normal_acceleration=max(1.0, features.avg_acceleration),
        normal_hover_time=max(1.0, features.hover_time),
    )


def normalize_behavior(
    features: BehaviorFeatureRecord,
    baseline: Baseline | None,
    *,
    clamp_motion: bool = True,
) -> NormalizedBehaviorFeatures:
    """Rescale *features* into ratios against *baseline*.

    Parameters
    ----------
    features
        Raw record from the behavior tracker.
    baseline
        Personal baseline, or ``None`` to use :func:`self_baseline`.
    clamp_motion
        Clamp ``direction_variance`` and ``motion_burst_frequency`` to
        their nominal ranges.  Off reproduces unbounded upstream values.
    """
    base = baseline if baseline is not None else self_baseline(features)

    velocity = max(0.0, features.avg_velocity)
    acceleration = max(0.0, features.avg_acceleration)
    hover_time = max(0.0, features.hover_time)

    data = features.model_dump()
    if clamp_motion:
        data["direction_variance"] = _clamp(features.direction_variance, DIRECTION_VARIANCE_RANGE)
        data["motion_burst_frequency"] = _clamp(
            features.motion_burst_frequency, MOTION_BURST_FREQUENCY_RANGE
        )

    return NormalizedBehaviorFeatures(
        **data,
        normalized_velocity=velocity / base.normal_velocity,
        normalized_acceleration=acceleration / base.normal_acceleration,
        normalized_hover_time=hover_time / base.normal_hover_time,
    )
