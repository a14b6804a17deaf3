"""Temporal smoothing — majority vote over a bounded decision history."""

from __future__ import annotations

from collections import deque

from emotion_engine.inference.models import FusedDecision, SmoothedDecision

HISTORY_SIZE = 15


class TemporalSmoother:
    """Ring buffer of recent fused decisions.

    The label is the majority vote over the buffer; confidence is the mean
    of every buffered confidence.  A single outlier therefore cannot flip
    the label on its own.
    """

    def __init__(self, size: int = HISTORY_SIZE) -> None:
        if size < 1:
            raise ValueError("history size must be at least 1")
        self._history: deque[FusedDecision] = deque(maxlen=size)

    def __len__(self) -> int:
        return len(self._history)

    @property
    def size(self) -> int:
        return self._history.maxlen or 0

    def recent(self, n: int) -> list[FusedDecision]:
        """Return the last *n* buffered decisions, oldest first."""
        if n <= 0:
            return []
        return list(self._history)[-n:]

    def clear(self) -> None:
        self._history.clear()

    def smooth(self, decision: FusedDecision) -> SmoothedDecision:
        self._history.append(decision)

        # Earliest label to reach the running maximum keeps it on ties.
        counts: dict[str, int] = {}
        for entry in self._history:
            if entry.emotion:
                counts[entry.emotion] = counts.get(entry.emotion, 0) + 1

        majority = decision.emotion
        max_count = 0
        for emotion, count in counts.items():
            if count > max_count:
                max_count = count
                majority = emotion

        if self._history:
            confidence = sum(e.confidence for e in self._history) / len(self._history)
        else:
            confidence = decision.confidence

        return SmoothedDecision(emotion=majority, confidence=confidence, source=decision.source)
