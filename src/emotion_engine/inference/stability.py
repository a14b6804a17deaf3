"""Stability gate — hysteresis filter applied before a decision is surfaced.

Two policies are available and selected by configuration:

=============  ==================  ==========================  ===========
Policy         Min confidence      Agreement precondition      Cooldown
=============  ==================  ==========================  ===========
responsive     0.5                 none                        2000 ms
conservative   0.7                 last 3 history entries      5000 ms
=============  ==================  ==========================  ===========

The cooldown only suppresses re-emitting the *same* label; a new label
is emitted as soon as it clears the confidence (and agreement) bar.
Rejection returns ``None``: it is throttling, not an error.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable, Sequence

import structlog

from emotion_engine.inference.models import (
    FinalDecision,
    FusedDecision,
    GatingPolicy,
    SmoothedDecision,
)

logger = structlog.get_logger(__name__)


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class StabilityGate(ABC):
    """Shared last-emission bookkeeping for the gating policies."""

    policy: GatingPolicy
    min_confidence: float
    cooldown_ms: float

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or _wall_clock_ms
        self.last_emotion: str | None = None
        self.last_emitted_at: float = 0.0

    def reset(self) -> None:
        self.last_emotion = None
        self.last_emitted_at = 0.0

    def gate(
        self,
        decision: SmoothedDecision | None,
        history: Sequence[FusedDecision] = (),
    ) -> FinalDecision | None:
        """Return a :class:`FinalDecision` if *decision* may be surfaced now."""
        if decision is None or not decision.emotion:
            return None

        if decision.confidence < self.min_confidence:
            return None
        if not self._precondition(decision, history):
            return None

        now = self._clock()
        if decision.emotion == self.last_emotion and now - self.last_emitted_at < self.cooldown_ms:
            logger.debug(
                "stability.cooldown",
                policy=self.policy.value,
                emotion=decision.emotion,
                since_last_ms=round(now - self.last_emitted_at, 1),
            )
            return None

        self.last_emotion = decision.emotion
        self.last_emitted_at = now
        return FinalDecision(
            emotion=decision.emotion,
            confidence=decision.confidence,
            source=decision.source,
            timestamp=now,
        )

    @abstractmethod
    def _precondition(self, decision: SmoothedDecision, history: Sequence[FusedDecision]) -> bool:
        """Policy-specific check evaluated after the confidence bar."""


class ResponsiveGate(StabilityGate):
    """Low-latency policy: any sufficiently confident change surfaces."""

    policy = GatingPolicy.RESPONSIVE
    min_confidence = 0.5
    cooldown_ms = 2000.0

    def _precondition(self, decision: SmoothedDecision, history: Sequence[FusedDecision]) -> bool:
        return True


class ConservativeGate(StabilityGate):
    """Requires the most recent history entries to agree with the candidate."""

    policy = GatingPolicy.CONSERVATIVE
    min_confidence = 0.7
    cooldown_ms = 5000.0
    agreement_window = 3

    def _precondition(self, decision: SmoothedDecision, history: Sequence[FusedDecision]) -> bool:
        recent = list(history)[-self.agreement_window:]
        return len(recent) == self.agreement_window and all(
            e.emotion == decision.emotion for e in recent
        )


_GATES: dict[GatingPolicy, type[StabilityGate]] = {
    GatingPolicy.RESPONSIVE: ResponsiveGate,
    GatingPolicy.CONSERVATIVE: ConservativeGate,
}


def build_gate(
    policy: GatingPolicy | str,
    clock: Callable[[], float] | None = None,
) -> StabilityGate:
    """Instantiate the gate for *policy*.

    Raises :class:`ValueError` for an unknown policy name.
    """
    try:
        key = GatingPolicy(policy)
    except ValueError:
        raise ValueError(
            f"Unknown gating policy {policy!r}. "
            f"Available: {[p.value for p in _GATES]}"
        ) from None
    return _GATES[key](clock=clock)
