"""Tests for the session-scoped emotion engine."""

from __future__ import annotations

import pytest

from emotion_engine.config import Settings
from emotion_engine.inference.engine import EmotionEngine
from emotion_engine.inference.models import Baseline, ChannelResult, DecisionSource, GatingPolicy
from emotion_engine.inference.scorers import BaseScorer
from emotion_engine.models import Channel


class _ExplodingScorer(BaseScorer):
    channel = Channel.BEHAVIOR

    def score(self, features) -> ChannelResult | None:
        raise RuntimeError("model crashed")


# ── Behavior channel ─────────────────────────────────────────


class TestBehaviorChannel:
    def test_calm_sample_emits(self, engine, make_behavior):
        decision = engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        assert decision is not None
        assert decision.emotion == "calm"
        assert decision.confidence == pytest.approx(0.77)
        assert decision.source == DecisionSource.BEHAVIOR
        assert "mouse and scroll behavior" in decision.explanation
        assert engine.behavior_latest.emotion == "calm"

    def test_repeat_within_cooldown_suppressed(self, engine, clock, make_behavior):
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is not None
        clock.advance(500)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None
        clock.advance(2000)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is not None

    def test_accepts_camel_case_mapping(self, engine):
        decision = engine.process_behavior_sample(
            {"avgVelocity": 0.0, "hoverTime": 1000.0, "directionVariance": 0.0}
        )
        assert decision.emotion == "calm"

    def test_history_bounded(self, engine, make_behavior):
        for _ in range(20):
            engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        assert len(engine.history) == 15


# ── Webcam channel ───────────────────────────────────────────


class TestWebcamChannel:
    def test_webcam_only_decision_is_hybrid(self, engine, happy_webcam):
        decision = engine.process_webcam_sample(happy_webcam)
        assert decision.emotion == "happy"
        assert decision.source == DecisionSource.HYBRID
        assert "a mix of behavior and webcam signals" in decision.explanation

    def test_below_admission_threshold_ignored(self, engine, happy_webcam):
        engine.process_webcam_sample(happy_webcam)
        before = engine.webcam_latest
        low = happy_webcam.model_copy(update={"emotion": "sad", "confidence": 0.74})
        assert engine.process_webcam_sample(low) is None
        assert engine.webcam_latest == before

    def test_missing_confidence_rejected(self, engine):
        assert engine.process_webcam_sample({"emotion": "happy"}) is None
        assert engine.webcam_latest is None

    def test_hybrid_with_behavior(self, engine, clock, make_behavior, happy_webcam):
        engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        clock.advance(3000)
        decision = engine.process_webcam_sample(happy_webcam)
        # Fused label is happy (0.8 ≥ 0.77) but the 1-1 history tie goes to calm.
        assert decision.source == DecisionSource.HYBRID
        assert decision.emotion == "calm"
        assert engine.history[-1].emotion == "happy"
        assert engine.history[-1].confidence == pytest.approx(0.6 * 0.8 + 0.4 * 0.77)

    def test_facial_signals_entry_point(self, engine):
        decision = engine.infer_from_facial_signals(
            {"emotion": "happy", "confidence": 0.9, "motionIntensity": 0.2, "eyebrowRaise": 0.1}
        )
        assert decision.emotion == "happy"
        assert engine.webcam_latest.confidence == pytest.approx(0.91)

    def test_facial_signals_default_confidence_below_threshold(self, engine):
        assert engine.infer_from_facial_signals({"emotion": "happy"}) is None
        assert engine.webcam_latest is None

    def test_facial_signals_out_of_range_confidence(self, engine):
        assert engine.infer_from_facial_signals({"confidence": 3.0}) is None


# ── Malformed input & missing collaborators ──────────────────


class TestDegradation:
    @pytest.mark.parametrize("raw", [None, "not a record", 42, {"avgVelocity": "fast"}])
    def test_malformed_behavior_input(self, engine, raw):
        assert engine.process_behavior_sample(raw) is None
        assert engine.behavior_latest is None
        assert engine.history == []

    @pytest.mark.parametrize("raw", [None, [], {"confidence": "high"}, {"confidence": 1.5}])
    def test_malformed_webcam_input(self, engine, raw):
        assert engine.process_webcam_sample(raw) is None
        assert engine.webcam_latest is None
        assert engine.history == []

    def test_unwired_webcam_scorer(self, clock, baseline, make_behavior, happy_webcam):
        engine = EmotionEngine(webcam_scorer=None, baseline=baseline, clock=clock)
        assert engine.process_webcam_sample(happy_webcam) is None
        decision = engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        assert decision.source == DecisionSource.BEHAVIOR

    def test_unwired_behavior_scorer(self, clock, baseline, make_behavior):
        engine = EmotionEngine(behavior_scorer=None, baseline=baseline, clock=clock)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None

    def test_scorer_error_is_contained(self, clock, baseline, make_behavior):
        engine = EmotionEngine(behavior_scorer=_ExplodingScorer(), baseline=baseline, clock=clock)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None
        assert engine.behavior_latest is None


# ── Channel control ──────────────────────────────────────────


class TestChannelControl:
    def test_disabling_webcam_keeps_behavior_state(self, engine, clock, make_behavior, happy_webcam):
        engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        behavior_latest = engine.behavior_latest
        history = engine.history

        engine.disable_channel(Channel.WEBCAM)
        assert engine.process_webcam_sample(happy_webcam) is None
        assert engine.infer_from_facial_signals({"emotion": "happy", "confidence": 0.9}) is None
        assert engine.behavior_latest == behavior_latest
        assert engine.history == history

        engine.enable_channel("webcam")
        clock.advance(3000)
        assert engine.process_webcam_sample(happy_webcam) is not None

    def test_disabling_behavior(self, engine, make_behavior):
        engine.disable_channel("behavior")
        assert not engine.is_channel_enabled(Channel.BEHAVIOR)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None
        assert engine.history == []

    def test_reset_history(self, engine, make_behavior):
        engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        engine.reset_history()
        assert engine.history == []
        assert engine.last_emitted_emotion is None
        assert engine.baseline is not None
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is not None


# ── Calibration ──────────────────────────────────────────────


class TestCalibration:
    def test_responsive_emits_during_warm_up(self, clock):
        engine = EmotionEngine(clock=clock)
        assert engine.is_calibrating
        decision = engine.process_behavior_sample({"hoverTime": 1.0, "timestamp": 0.0})
        assert decision is not None
        assert decision.emotion == "calm"
        assert engine.calibration_sample_count == 1

    def test_conservative_silent_during_warm_up(self, clock):
        engine = EmotionEngine(gating_policy="conservative", calibration_max_samples=3, clock=clock)
        for ts in (0.0, 1.0, 2.0):
            assert engine.process_behavior_sample({"hoverTime": 1.0, "timestamp": ts}) is None
        assert not engine.is_calibrating
        assert engine.history == []

    def test_explicit_override_of_warm_up_emission(self, clock):
        engine = EmotionEngine(emit_during_calibration=False, clock=clock)
        assert engine.process_behavior_sample({"hoverTime": 1.0, "timestamp": 0.0}) is None
        assert engine.calibration_sample_count == 1

    def test_completion_sets_and_persists_baseline(self, clock):
        saved: list[Baseline] = []
        engine = EmotionEngine(calibration_max_samples=2, persist_baseline=saved.append, clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "hoverTime": 500.0, "timestamp": 0.0})
        engine.process_behavior_sample({"avgVelocity": 4.0, "hoverTime": 1500.0, "timestamp": 10.0})
        assert not engine.is_calibrating
        assert engine.baseline.normal_velocity == pytest.approx(3.0)
        assert engine.baseline.normal_hover_time == pytest.approx(1000.0)
        assert saved == [engine.baseline]

    def test_time_bound_completion(self, clock):
        engine = EmotionEngine(clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 0.0})
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 120_000.0})
        assert engine.baseline is not None
        assert engine.baseline.normal_velocity == pytest.approx(2.0)

    def test_persistence_failure_swallowed(self, clock):
        def _broken(baseline):
            raise OSError("disk full")

        engine = EmotionEngine(calibration_max_samples=1, persist_baseline=_broken, clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 0.0})
        assert engine.baseline is not None

    def test_async_persister_without_loop_is_skipped(self, clock):
        calls: list[Baseline] = []

        async def _save(baseline):
            calls.append(baseline)

        engine = EmotionEngine(calibration_max_samples=1, persist_baseline=_save, clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 0.0})
        assert engine.baseline is not None
        assert calls == []

    @pytest.mark.asyncio
    async def test_async_persister_scheduled(self, clock):
        calls: list[Baseline] = []

        async def _save(baseline):
            calls.append(baseline)

        engine = EmotionEngine(calibration_max_samples=1, persist_baseline=_save, clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 0.0})
        await engine.wait_for_persistence()
        assert calls == [engine.baseline]

    @pytest.mark.asyncio
    async def test_async_persister_failure_swallowed(self, clock):
        async def _save(baseline):
            raise ConnectionError("store offline")

        engine = EmotionEngine(calibration_max_samples=1, persist_baseline=_save, clock=clock)
        engine.process_behavior_sample({"avgVelocity": 2.0, "timestamp": 0.0})
        await engine.wait_for_persistence()
        assert engine.baseline is not None


# ── Baseline loading ─────────────────────────────────────────


class TestBaselineLoading:
    @pytest.mark.asyncio
    async def test_loaded_baseline_ends_calibration(self, clock, baseline):
        engine = EmotionEngine(clock=clock)

        async def _load():
            return baseline

        assert await engine.load_baseline(_load) == baseline
        assert not engine.is_calibrating

    @pytest.mark.asyncio
    async def test_late_baseline_applies_to_new_samples_only(self, clock, baseline):
        engine = EmotionEngine(clock=clock)
        engine.process_behavior_sample({"hoverTime": 1.0, "timestamp": 0.0})
        assert engine.behavior_latest.emotion == "calm"

        async def _load():
            return baseline

        await engine.load_baseline(_load)
        assert engine.history[0].emotion == "calm"
        engine.process_behavior_sample({"hoverTime": 1.0, "timestamp": 1.0})
        # 1 ms of hover against a 1000 ms baseline no longer reads as calm
        assert engine.behavior_latest.emotion == "neutral"

    @pytest.mark.asyncio
    async def test_missing_baseline_keeps_calibrating(self, clock):
        engine = EmotionEngine(clock=clock)

        async def _load():
            return None

        assert await engine.load_baseline(_load) is None
        assert engine.is_calibrating

    @pytest.mark.asyncio
    async def test_load_failure_swallowed(self, clock):
        engine = EmotionEngine(clock=clock)

        async def _load():
            raise ConnectionError("store offline")

        assert await engine.load_baseline(_load) is None
        assert engine.is_calibrating

    @pytest.mark.asyncio
    async def test_existing_baseline_not_replaced(self, clock, baseline):
        engine = EmotionEngine(baseline=baseline, clock=clock)

        async def _load():
            return Baseline(normal_velocity=9.0)

        assert await engine.load_baseline(_load) == baseline


# ── Policies ─────────────────────────────────────────────────


class TestPolicies:
    def test_conservative_needs_three_in_a_row(self, clock, baseline, make_behavior):
        engine = EmotionEngine(gating_policy=GatingPolicy.CONSERVATIVE, baseline=baseline, clock=clock)
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None
        assert engine.process_behavior_sample(make_behavior(hover_ratio=1.0)) is None
        decision = engine.process_behavior_sample(make_behavior(hover_ratio=1.0))
        assert decision.emotion == "calm"

    def test_conservative_rejects_neutral_confidence(self, clock, baseline, make_behavior):
        engine = EmotionEngine(gating_policy="conservative", baseline=baseline, clock=clock)
        for _ in range(5):
            assert engine.process_behavior_sample(make_behavior(velocity=1.5)) is None

    def test_from_settings(self, clock):
        settings = Settings(gating_policy="conservative", history_size=5, calibration_max_samples=2)
        engine = EmotionEngine.from_settings(settings, clock=clock)
        assert engine.gating_policy == GatingPolicy.CONSERVATIVE
        assert engine.process_behavior_sample({"timestamp": 0.0}) is None
        engine.process_behavior_sample({"timestamp": 1.0})
        assert not engine.is_calibrating

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            EmotionEngine(gating_policy="eager")


# ── Non-finite input ─────────────────────────────────────────


_NON_FINITE = [float("inf"), float("-inf"), float("nan"), "Infinity", "NaN"]


class TestNonFiniteInput:
    @pytest.mark.parametrize("value", _NON_FINITE)
    @pytest.mark.parametrize(
        "field", ["avgVelocity", "avgAcceleration", "hoverTime", "directionVariance", "motionBurstFrequency"]
    )
    def test_behavior_rejected_before_calibration(self, clock, field, value):
        engine = EmotionEngine(clock=clock)
        assert engine.process_behavior_sample({"hoverTime": 100.0, field: value}) is None
        assert engine.calibration_sample_count == 0
        assert engine.behavior_latest is None
        assert engine.history == []

    @pytest.mark.parametrize("value", _NON_FINITE)
    def test_behavior_rejected_with_baseline(self, engine, value):
        assert engine.process_behavior_sample({"avgVelocity": value}) is None
        assert engine.behavior_latest is None

    @pytest.mark.parametrize("value", _NON_FINITE)
    @pytest.mark.parametrize("field", ["confidence", "blinkRate", "headMovement", "browTension"])
    def test_webcam_rejected(self, engine, field, value):
        raw = {"emotion": "happy", "confidence": 0.9, field: value}
        assert engine.process_webcam_sample(raw) is None
        assert engine.webcam_latest is None

    @pytest.mark.parametrize("value", _NON_FINITE)
    @pytest.mark.parametrize("field", ["confidence", "motionIntensity", "eyebrowRaise", "timestamp"])
    def test_facial_signals_rejected(self, engine, field, value):
        raw = {"emotion": "happy", "confidence": 0.9, field: value}
        assert engine.infer_from_facial_signals(raw) is None
        assert engine.webcam_latest is None

    def test_ratio_overflow_rejected(self, clock):
        engine = EmotionEngine(baseline=Baseline(normal_velocity=1e-300), clock=clock)
        assert engine.process_behavior_sample({"avgVelocity": 1e308}) is None
        assert engine.behavior_latest is None
