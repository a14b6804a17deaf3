"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from emotion_engine.inference.engine import EmotionEngine
from emotion_engine.inference.models import Baseline
from emotion_engine.models import BehaviorFeatureRecord, WebcamFeatureRecord


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def advance(self, ms: float) -> None:
        self.now += ms

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def baseline() -> Baseline:
    return Baseline(normal_velocity=1.0, normal_acceleration=1.0, normal_hover_time=1000.0)


@pytest.fixture
def engine(clock: FakeClock, baseline: Baseline) -> EmotionEngine:
    """Responsive engine that starts with a known baseline."""
    return EmotionEngine(baseline=baseline, clock=clock)


def _behavior(
    velocity: float = 0.0,
    acceleration: float = 0.0,
    hover_ratio: float = 0.0,
    direction_variance: float = 0.0,
    burst: float = 0.0,
    timestamp: float | None = None,
) -> BehaviorFeatureRecord:
    """Behavior record whose ratios against the fixture baseline are the arguments."""
    return BehaviorFeatureRecord(
        avg_velocity=velocity,
        avg_acceleration=acceleration,
        hover_time=hover_ratio * 1000.0,
        direction_variance=direction_variance,
        motion_burst_frequency=burst,
        timestamp=timestamp,
    )


@pytest.fixture
def make_behavior():
    return _behavior


@pytest.fixture
def happy_webcam() -> WebcamFeatureRecord:
    return WebcamFeatureRecord(
        emotion="happy",
        confidence=0.8,
        blink_rate=0.0,
        head_movement=0.0,
        brow_tension=0.0,
    )
