"""Tests for the feature-record models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from emotion_engine.inference.models import Baseline, FinalDecision
from emotion_engine.models import BehaviorFeatureRecord, FacialSignals, WebcamFeatureRecord


class TestBehaviorFeatureRecord:
    def test_camel_case_names(self):
        record = BehaviorFeatureRecord.model_validate(
            {
                "avgScrollSpeed": 1.2,
                "avgVelocity": 0.8,
                "hoverTime": 900,
                "directionVariance": 0.3,
                "motionBurstFrequency": 2,
                "tabSwitches": 1,
                "timestamp": 1700000000000,
            }
        )
        assert record.avg_scroll_speed == 1.2
        assert record.avg_velocity == 0.8
        assert record.hover_time == 900.0
        assert record.motion_burst_frequency == 2.0
        assert record.timestamp == 1700000000000

    def test_missing_and_null_fields_default_to_zero(self):
        record = BehaviorFeatureRecord.model_validate({"avgVelocity": None, "unknownField": 5})
        assert record.avg_velocity == 0.0
        assert record.idle_time == 0.0
        assert record.timestamp is None

    def test_non_numeric_rejected(self):
        with pytest.raises(ValidationError):
            BehaviorFeatureRecord.model_validate({"hoverTime": "long"})


class TestWebcamFeatureRecord:
    def test_confidence_required(self):
        with pytest.raises(ValidationError):
            WebcamFeatureRecord.model_validate({"emotion": "happy"})

    @pytest.mark.parametrize("confidence", [-0.1, 1.01])
    def test_confidence_bounds(self, confidence):
        with pytest.raises(ValidationError):
            WebcamFeatureRecord(confidence=confidence)

    def test_defaults(self):
        record = WebcamFeatureRecord.model_validate({"confidence": 0.8, "blinkRate": None})
        assert record.emotion == "neutral"
        assert record.blink_rate == 0.0
        assert record.brow_tension == 0.0


class TestFacialSignals:
    def test_fallbacks(self):
        record = FacialSignals().to_webcam_record(now_ms=42.0)
        assert record.emotion == "neutral"
        assert record.confidence == 0.6
        assert record.head_movement == 0.0
        assert record.timestamp == 42.0

    def test_alternate_signal_names(self):
        signals = FacialSignals.model_validate(
            {"emotion": "surprised", "confidence": 0.9, "motionIntensity": 0.7, "eyebrowRaise": 0.4}
        )
        record = signals.to_webcam_record(now_ms=0.0)
        assert record.head_movement == 0.7
        assert record.brow_tension == 0.4

    def test_direct_names_win(self):
        signals = FacialSignals(head_movement=0.2, motion_intensity=0.9, brow_tension=0.1, eyebrow_raise=0.8)
        record = signals.to_webcam_record(now_ms=0.0)
        assert record.head_movement == 0.2
        assert record.brow_tension == 0.1

    def test_out_of_range_confidence_fails_conversion(self):
        with pytest.raises(ValidationError):
            FacialSignals(confidence=2.0).to_webcam_record(now_ms=0.0)


class TestInferenceModels:
    def test_baseline_must_be_positive(self):
        with pytest.raises(ValidationError):
            Baseline(normal_velocity=0.0)

    def test_baseline_defaults(self):
        baseline = Baseline()
        assert (baseline.normal_velocity, baseline.normal_acceleration, baseline.normal_hover_time) == (
            1.0,
            1.0,
            1500.0,
        )

    def test_final_decision_serialises_source_value(self):
        decision = FinalDecision(emotion="calm", confidence=0.77, source="behavior", timestamp=1.0)
        assert '"source":"behavior"' in decision.model_dump_json()
