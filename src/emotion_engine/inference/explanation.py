"""Human-readable explanations attached to emitted decisions."""

from __future__ import annotations

from emotion_engine.inference.models import DecisionSource

_SOURCE_PHRASES = {
    DecisionSource.BEHAVIOR: "mouse and scroll behavior",
    DecisionSource.HYBRID: "a mix of behavior and webcam signals",
}

_REASONS = {
    "frustrated": "there are strong, jumpy changes over time.",
    "impulsive": "there are fast bursts of activity and quick changes.",
    "engaged": "activity is steady and focused on a small area.",
    "focused": "activity is steady and focused on a small area.",
    "calm": "movement is smooth and relaxed.",
    "happy": "signals match a positive, open expression.",
}
_DEFAULT_REASON = "signals look close to your normal pattern."


def describe_source(source: DecisionSource | str | None) -> str:
    try:
        return _SOURCE_PHRASES[DecisionSource(source)]
    except ValueError:
        return "behavior signals"


def build_explanation(emotion: str | None, source: DecisionSource | str | None) -> str:
    """One sentence naming the channel and the reason for *emotion*."""
    if not emotion:
        return ""
    reason = _REASONS.get(emotion, _DEFAULT_REASON)
    return f"From your {describe_source(source)}, it looks {emotion} because {reason}"
