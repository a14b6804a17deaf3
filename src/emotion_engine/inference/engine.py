"""Emotion engine — per-session orchestrator for calibration, scoring, and gating.

One :class:`EmotionEngine` is created per active page/session and owns all
of that session's mutable state: calibration progress, the baseline, the
latest result of each channel, the smoothing history, and the last
emission.  Nothing is shared between sessions except the persisted
baseline.

Data flow
---------
raw record → calibration (warm-up only) → normalisation → channel scorer
→ channel "latest" → fusion → temporal smoothing → stability gate
→ :class:`FinalDecision` or ``None``.

The engine is not reentrant: callers must serialise calls (see
:class:`emotion_engine.streaming.pipeline.EngineStream`).  Public entry
points never raise for malformed or missing input; they return ``None``.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Mapping
from typing import Any, Awaitable, Callable, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from emotion_engine.config import Settings
from emotion_engine.inference.calibration import (
    CALIBRATION_DURATION_MS,
    CALIBRATION_MAX_SAMPLES,
    CalibrationCollector,
)
from emotion_engine.inference.explanation import build_explanation
from emotion_engine.inference.fusion import fuse
from emotion_engine.inference.models import (
    Baseline,
    ChannelResult,
    FinalDecision,
    FusedDecision,
    GatingPolicy,
)
from emotion_engine.inference.normalizer import normalize_behavior
from emotion_engine.inference.scorers import BaseScorer, RuleBehaviorScorer, RuleWebcamScorer
from emotion_engine.inference.smoothing import HISTORY_SIZE, TemporalSmoother
from emotion_engine.inference.stability import StabilityGate, build_gate
from emotion_engine.models import BehaviorFeatureRecord, Channel, FacialSignals, WebcamFeatureRecord

logger = structlog.get_logger(__name__)

WEBCAM_ADMISSION_THRESHOLD = 0.75

_RecordT = TypeVar("_RecordT", bound=BaseModel)

BaselinePersister = Callable[[Baseline], Any]
BaselineLoader = Callable[[], Awaitable[Baseline | None]]

_RULE_BEHAVIOR_SCORER = RuleBehaviorScorer()
_RULE_WEBCAM_SCORER = RuleWebcamScorer()


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


class EmotionEngine:
    """Session-scoped emotion inference engine.

    Parameters
    ----------
    behavior_scorer, webcam_scorer : BaseScorer | None
        Channel scorers.  ``None`` leaves that channel unwired: it never
        produces a result and fusion relies on the other channel.
    gating_policy : GatingPolicy | str
        ``responsive`` or ``conservative``.
    emit_during_calibration : bool | None
        Whether warm-up samples are scored and may emit.  ``None`` follows
        the policy (responsive emits, conservative stays silent).
    baseline : Baseline | None
        A baseline already known at session start; skips calibration.
    persist_baseline : BaselinePersister | None
        Called once with the baseline calibration produces.  A returned
        awaitable is scheduled on the running loop; failures are logged
        and ignored.
    clock : Callable[[], float] | None
        Millisecond clock used for gating and untimestamped samples.
    """

    def __init__(
        self,
        *,
        behavior_scorer: BaseScorer | None = _RULE_BEHAVIOR_SCORER,
        webcam_scorer: BaseScorer | None = _RULE_WEBCAM_SCORER,
        gating_policy: GatingPolicy | str = GatingPolicy.RESPONSIVE,
        emit_during_calibration: bool | None = None,
        calibration_duration_ms: float = CALIBRATION_DURATION_MS,
        calibration_max_samples: int = CALIBRATION_MAX_SAMPLES,
        webcam_admission_threshold: float = WEBCAM_ADMISSION_THRESHOLD,
        history_size: int = HISTORY_SIZE,
        clamp_motion_features: bool = True,
        baseline: Baseline | None = None,
        persist_baseline: BaselinePersister | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._clock = clock or _wall_clock_ms
        self._behavior_scorer = behavior_scorer
        self._webcam_scorer = webcam_scorer
        self._gate: StabilityGate = build_gate(gating_policy, clock=self._clock)
        self.gating_policy = self._gate.policy
        if emit_during_calibration is None:
            emit_during_calibration = self.gating_policy == GatingPolicy.RESPONSIVE
        self._emit_during_calibration = emit_during_calibration
        self._webcam_admission_threshold = webcam_admission_threshold
        self._clamp_motion = clamp_motion_features
        self._persist_baseline = persist_baseline

        self._calibration = CalibrationCollector(
            duration_ms=calibration_duration_ms,
            max_samples=calibration_max_samples,
            clock=self._clock,
        )
        self._smoother = TemporalSmoother(history_size)
        self._disabled: set[Channel] = set()
        self._pending: set[asyncio.Task[None]] = set()

        self.baseline: Baseline | None = None
        if baseline is not None:
            self._adopt_baseline(baseline)
        self.behavior_latest: ChannelResult | None = None
        self.webcam_latest: ChannelResult | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> EmotionEngine:
        """Build an engine from :class:`Settings`; keyword overrides win."""
        params: dict[str, Any] = {
            "gating_policy": settings.gating_policy,
            "emit_during_calibration": settings.emit_during_calibration,
            "calibration_duration_ms": settings.calibration_duration_ms,
            "calibration_max_samples": settings.calibration_max_samples,
            "webcam_admission_threshold": settings.webcam_admission_threshold,
            "history_size": settings.history_size,
            "clamp_motion_features": settings.clamp_motion_features,
        }
        params.update(overrides)
        return cls(**params)

    # ── State ─────────────────────────────────────────────────

    @property
    def is_calibrating(self) -> bool:
        return self.baseline is None and self._calibration.active

    @property
    def calibration_sample_count(self) -> int:
        return self._calibration.sample_count

    @property
    def history(self) -> list[FusedDecision]:
        """Smoothing history, oldest first."""
        return self._smoother.recent(self._smoother.size)

    @property
    def last_emitted_emotion(self) -> str | None:
        return self._gate.last_emotion

    def is_channel_enabled(self, channel: Channel) -> bool:
        return channel not in self._disabled

    def disable_channel(self, channel: Channel | str) -> None:
        """Stop accepting samples for *channel*; other state is untouched."""
        self._disabled.add(Channel(channel))
        logger.info("engine.channel_disabled", channel=Channel(channel).value)

    def enable_channel(self, channel: Channel | str) -> None:
        self._disabled.discard(Channel(channel))
        logger.info("engine.channel_enabled", channel=Channel(channel).value)

    def reset_history(self) -> None:
        """Forget smoothing history and the last emission; keep the baseline."""
        self._smoother.clear()
        self._gate.reset()

    # ── Baseline ──────────────────────────────────────────────

    async def load_baseline(self, loader: BaselineLoader) -> Baseline | None:
        """Await *loader* and adopt its baseline if none is set yet.

        May complete after samples have already been processed with the
        self-fallback baseline; those are not re-normalised.
        """
        try:
            baseline = await loader()
        except Exception as exc:
            logger.warning("engine.baseline_load_failed", error=str(exc))
            return self.baseline

        if baseline is not None and self.baseline is None:
            self._adopt_baseline(baseline)
            logger.info("engine.baseline_loaded", normal_velocity=baseline.normal_velocity)
        return self.baseline

    async def wait_for_persistence(self) -> None:
        """Wait for any in-flight baseline persistence to settle."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    def _adopt_baseline(self, baseline: Baseline) -> None:
        self.baseline = baseline
        self._calibration.cancel()

    def _request_persist(self, baseline: Baseline) -> None:
        if self._persist_baseline is None:
            return
        try:
            outcome = self._persist_baseline(baseline)
        except Exception as exc:
            logger.warning("engine.baseline_persist_failed", error=str(exc))
            return

        if not inspect.isawaitable(outcome):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("engine.baseline_persist_skipped", reason="no_running_loop")
            if inspect.iscoroutine(outcome):
                outcome.close()
            return
        task = loop.create_task(self._await_quietly(outcome))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    @staticmethod
    async def _await_quietly(outcome: Awaitable[Any]) -> None:
        try:
            await outcome
        except Exception as exc:
            logger.warning("engine.baseline_persist_failed", error=str(exc))

    # ── Entry points ──────────────────────────────────────────

    def process_behavior_sample(
        self, raw: BehaviorFeatureRecord | Mapping[str, Any] | None
    ) -> FinalDecision | None:
        """Process one behavior record; return a decision if one surfaces."""
        if not self.is_channel_enabled(Channel.BEHAVIOR):
            return None
        record = self._coerce(raw, BehaviorFeatureRecord, Channel.BEHAVIOR)
        if record is None:
            return None

        if self.is_calibrating:
            baseline = self._calibration.collect(record)
            if baseline is not None:
                self._adopt_baseline(baseline)
                self._request_persist(baseline)
            if not self._emit_during_calibration:
                return None

        try:
            normalized = normalize_behavior(record, self.baseline, clamp_motion=self._clamp_motion)
        except ValidationError as exc:
            logger.warning("engine.normalize_failed", errors=exc.error_count())
            return None
        result = self._run_scorer(self._behavior_scorer, normalized, Channel.BEHAVIOR)
        if result is not None:
            self.behavior_latest = result
        return self._decide()

    def process_webcam_sample(
        self, raw: WebcamFeatureRecord | Mapping[str, Any] | None
    ) -> FinalDecision | None:
        """Process one webcam record; below-threshold records are ignored."""
        if not self.is_channel_enabled(Channel.WEBCAM):
            return None
        record = self._coerce(raw, WebcamFeatureRecord, Channel.WEBCAM)
        if record is None:
            return None

        if record.confidence < self._webcam_admission_threshold:
            logger.debug(
                "engine.webcam_below_threshold",
                confidence=record.confidence,
                threshold=self._webcam_admission_threshold,
            )
            return None

        result = self._run_scorer(self._webcam_scorer, record, Channel.WEBCAM)
        if result is not None:
            self.webcam_latest = result
        return self._decide()

    def infer_from_facial_signals(
        self, signals: FacialSignals | Mapping[str, Any] | None
    ) -> FinalDecision | None:
        """Convert loose facial signals to a webcam record and process it."""
        facial = self._coerce(signals, FacialSignals, Channel.WEBCAM)
        if facial is None:
            return None
        try:
            record = facial.to_webcam_record(self._clock())
        except ValidationError as exc:
            logger.warning("engine.invalid_record", channel=Channel.WEBCAM.value, errors=exc.error_count())
            return None
        return self.process_webcam_sample(record)

    # ── Internals ─────────────────────────────────────────────

    @staticmethod
    def _coerce(raw: Any, model: type[_RecordT], channel: Channel) -> _RecordT | None:
        if raw is None:
            return None
        if isinstance(raw, model):
            return raw
        if not isinstance(raw, Mapping):
            logger.warning("engine.invalid_record", channel=channel.value, type=type(raw).__name__)
            return None
        try:
            return model.model_validate(raw)
        except ValidationError as exc:
            logger.warning("engine.invalid_record", channel=channel.value, errors=exc.error_count())
            return None

    @staticmethod
    def _run_scorer(scorer: BaseScorer | None, features: Any, channel: Channel) -> ChannelResult | None:
        if scorer is None:
            return None
        try:
            return scorer.score(features)
        except Exception as exc:
            logger.error(
                "engine.scorer_error",
                channel=channel.value,
                scorer=type(scorer).__qualname__,
                error=str(exc),
            )
            return None

    def _decide(self) -> FinalDecision | None:
        fused = fuse(self.behavior_latest, self.webcam_latest)
        if fused is None:
            return None

        smoothed = self._smoother.smooth(fused)
        final = self._gate.gate(smoothed, self._smoother.recent(self._smoother.size))
        if final is None:
            return None

        final = final.model_copy(update={"explanation": build_explanation(final.emotion, final.source)})
        logger.info(
            "engine.decision_emitted",
            emotion=final.emotion,
            confidence=round(final.confidence, 3),
            source=final.source.value,
            policy=self.gating_policy.value,
        )
        return final
