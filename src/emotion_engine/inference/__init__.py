"""Emotion inference — stabilised emotion labels from behavior and webcam signals.

This package turns two asynchronous, differently-paced feature streams
into a low-churn emotion label with a confidence score.

Architecture
------------
1. **Calibration** (`calibration.py`)
   - Warm-up buffer bounded by time (120 s) or count (300 samples)
   - Personal baseline from mean velocity / acceleration / hover time

2. **Normalisation** (`normalizer.py`)
   - Ratios against the baseline, or against the record itself before
     a baseline exists
   - Clamping of upstream motion statistics

3. **Channel scorers** (`scorers.py`)
   - Rule-based behavior classifier (arousal / focus thresholds)
   - Webcam confidence re-weighting (brow tension, head movement, blinks)
   - Swappable through the :class:`BaseScorer` interface

4. **Fusion, smoothing, gating** (`fusion.py`, `smoothing.py`, `stability.py`)
   - 60/40 webcam/behavior fusion with provenance
   - Majority vote over a 15-decision ring buffer
   - Responsive or conservative hysteresis gate

5. **Engine** (`engine.py`)
   - Session-scoped orchestrator owning all mutable state

Limitations
-----------
Scoring is heuristic, not a trained classifier.  The engine guarantees
deterministic fusion and stabilisation for a given feature stream, not
recognition accuracy.
"""

from emotion_engine.inference.engine import EmotionEngine
from emotion_engine.inference.models import (
    Baseline,
    BehaviorEmotion,
    ChannelResult,
    DecisionSource,
    FinalDecision,
    FusedDecision,
    GatingPolicy,
    NormalizedBehaviorFeatures,
    SmoothedDecision,
)

__all__ = [
    "Baseline",
    "BehaviorEmotion",
    "ChannelResult",
    "DecisionSource",
    "EmotionEngine",
    "FinalDecision",
    "FusedDecision",
    "GatingPolicy",
    "NormalizedBehaviorFeatures",
    "SmoothedDecision",
]
