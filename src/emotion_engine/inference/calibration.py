"""Calibration — derive a personal :class:`Baseline` from warm-up samples.

The collector buffers raw behavior records until either the time bound
(elapsed since the first sample) or the count bound is reached, then
averages velocity, acceleration, and hover time into a baseline.
"""

from __future__ import annotations

import time
from typing import Callable, Sequence

import structlog

from emotion_engine.inference.models import (
    DEFAULT_NORMAL_ACCELERATION,
    DEFAULT_NORMAL_HOVER_TIME,
    DEFAULT_NORMAL_VELOCITY,
    Baseline,
)
from emotion_engine.models import BehaviorFeatureRecord

logger = structlog.get_logger(__name__)

# ── Constants ─────────────────────────────────────────────────

CALIBRATION_DURATION_MS = 120_000.0
CALIBRATION_MAX_SAMPLES = 300


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def compute_baseline(samples: Sequence[BehaviorFeatureRecord]) -> Baseline:
    """Average velocity / acceleration / hover time across *samples*.

    An empty sequence yields the default baseline.  A component whose
    mean is zero also falls back to its default, so the result can always
    be used as a denominator.
    """
    if not samples:
        return Baseline()

    n = max(1, len(samples))
    velocity = sum(s.avg_velocity for s in samples) / n
    acceleration = sum(s.avg_acceleration for s in samples) / n
    hover_time = sum(s.hover_time for s in samples) / n

    return Baseline(
        normal_velocity=velocity if velocity > 0 else DEFAULT_NORMAL_VELOCITY,
        normal_acceleration=acceleration if acceleration > 0 else DEFAULT_NORMAL_ACCELERATION,
        normal_hover_time=hover_time if hover_time > 0 else DEFAULT_NORMAL_HOVER_TIME,
        sample_count=len(samples),
    )


class CalibrationCollector:
    """Accumulates warm-up samples until a time or count bound is hit.

    Parameters
    ----------
    duration_ms : float
        Time bound, measured from the first sample's timestamp.
    max_samples : int
        Count bound.
    clock : Callable[[], float]
        Millisecond clock used for samples that carry no timestamp.
    """

    def __init__(
        self,
        duration_ms: float = CALIBRATION_DURATION_MS,
        max_samples: int = CALIBRATION_MAX_SAMPLES,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if max_samples < 1:
            raise ValueError("max_samples must be at least 1")
        self._duration_ms = duration_ms
        self._max_samples = max_samples
        self._clock = clock or _monotonic_ms
        self._samples: list[BehaviorFeatureRecord] = []
        self._started_at: float | None = None
        self.active = True

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def started_at(self) -> float | None:
        return self._started_at

    def collect(self, features: BehaviorFeatureRecord) -> Baseline | None:
        """Buffer one sample; return the new baseline when calibration completes.

        Returns ``None`` while calibration is still running, and always
        once it has finished.
        """
        if not self.active:
            return None

        now = features.timestamp if features.timestamp is not None else self._clock()
        if self._started_at is None:
            self._started_at = now

        self._samples.append(features)

        elapsed = now - self._started_at
        if elapsed < self._duration_ms and len(self._samples) < self._max_samples:
            return None

        baseline = compute_baseline(self._samples)
        logger.info(
            "calibration.complete",
            samples=len(self._samples),
            elapsed_ms=round(elapsed, 1),
            normal_velocity=round(baseline.normal_velocity, 3),
            normal_acceleration=round(baseline.normal_acceleration, 3),
            normal_hover_time=round(baseline.normal_hover_time, 1),
        )
        self.active = False
        self._samples = []
        return baseline

    def cancel(self) -> None:
        """Stop calibrating without producing a baseline (one was loaded)."""
        self.active = False
        self._samples = []
