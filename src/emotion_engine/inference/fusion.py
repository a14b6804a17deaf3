"""Hybrid fusion of the latest behavior and webcam results."""

from __future__ import annotations

from emotion_engine.inference.models import ChannelResult, DecisionSource, FusedDecision

WEBCAM_WEIGHT = 0.6
BEHAVIOR_WEIGHT = 0.4


def fuse(
    behavior: ChannelResult | None,
    webcam: ChannelResult | None,
) -> FusedDecision | None:
    """Combine the two channels' latest results into one decision.

    - Neither present: ``None``.
    - Both present: confidence is ``0.6·webcam + 0.4·behavior`` (scores);
      the label comes from the higher-scoring channel, ties to webcam.
    - Only one present: passed through.  Any webcam contribution marks the
      decision ``hybrid``.
    """
    if behavior is None and webcam is None:
        return None

    if behavior is not None and webcam is not None:
        hybrid_score = WEBCAM_WEIGHT * webcam.score + BEHAVIOR_WEIGHT * behavior.score
        emotion = webcam.emotion if webcam.score >= behavior.score else behavior.emotion
        return FusedDecision(emotion=emotion, confidence=hybrid_score, source=DecisionSource.HYBRID)

    if webcam is not None:
        return FusedDecision(
            emotion=webcam.emotion, confidence=webcam.confidence, source=DecisionSource.HYBRID
        )

    return FusedDecision(
        emotion=behavior.emotion, confidence=behavior.confidence, source=DecisionSource.BEHAVIOR
    )
