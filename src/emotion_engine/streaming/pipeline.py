"""Async session stream serialising both channels into one engine."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

import structlog

from emotion_engine.inference.engine import EmotionEngine
from emotion_engine.inference.models import FinalDecision
from emotion_engine.models import Channel

logger = structlog.get_logger(__name__)

# Queue item kinds; "facial" records go through the webcam channel.
_BEHAVIOR = "behavior"
_WEBCAM = "webcam"
_FACIAL = "facial"


class EngineStream:
    """In-process async stream that feeds one :class:`EmotionEngine`.

    Producers (the behavior tracker, the webcam analyser) publish records
    at their own cadence; a single consumer loop hands them to the engine
    one at a time, so the engine never sees concurrent calls.  Emitted
    decisions are forwarded to registered observers.
    """

    def __init__(self, engine: EmotionEngine, maxsize: int = 1_000) -> None:
        self.engine = engine
        self._queue: asyncio.Queue[tuple[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self._consumers: list[Callable[[FinalDecision], Awaitable[None]]] = []
        self._running = False
        self.processed_total = 0
        self.emitted_total = 0

    # ── Configuration ─────────────────────────────────────────

    def add_consumer(self, fn: Callable[[FinalDecision], Awaitable[None]]) -> None:
        """Register an async callback that receives every emitted decision."""
        self._consumers.append(fn)

    def stop_channel(self, channel: Channel | str) -> None:
        """Stop feeding *channel*; the other channel and history are kept."""
        self.engine.disable_channel(channel)

    def resume_channel(self, channel: Channel | str) -> None:
        self.engine.enable_channel(channel)

    # ── Producer side ─────────────────────────────────────────

    async def publish_behavior(self, record: Any) -> None:
        await self._queue.put((_BEHAVIOR, record))

    async def publish_webcam(self, record: Any) -> None:
        await self._queue.put((_WEBCAM, record))

    async def publish_facial(self, signals: Any) -> None:
        await self._queue.put((_FACIAL, signals))

    # ── Consumer loop ─────────────────────────────────────────

    async def start(self) -> None:
        """Start the consumer loop (run as a background task)."""
        self._running = True
        logger.info("stream.started", consumers=len(self._consumers))

        last_stats_time = time.monotonic()

        while self._running:
            try:
                kind, record = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                decision = self._dispatch(kind, record)
                if decision is not None:
                    self.emitted_total += 1
                    await self._forward(decision)
            except Exception as exc:
                logger.error("stream.engine_error", kind=kind, error=str(exc))
            finally:
                self.processed_total += 1
                self._queue.task_done()

            # Periodic stats every 60 seconds
            now = time.monotonic()
            if now - last_stats_time >= 60:
                logger.info(
                    "stream.stats",
                    processed_total=self.processed_total,
                    emitted_total=self.emitted_total,
                    queue_pending=self._queue.qsize(),
                )
                last_stats_time = now

    async def drain(self) -> None:
        """Wait until every published record has been processed."""
        await self._queue.join()

    async def stop(self) -> None:
        """Gracefully stop the consumer loop."""
        self._running = False
        logger.info("stream.stopped", processed_total=self.processed_total)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    # ── Internals ─────────────────────────────────────────────

    def _dispatch(self, kind: str, record: Any) -> FinalDecision | None:
        if kind == _BEHAVIOR:
            return self.engine.process_behavior_sample(record)
        if kind == _WEBCAM:
            return self.engine.process_webcam_sample(record)
        return self.engine.infer_from_facial_signals(record)

    async def _forward(self, decision: FinalDecision) -> None:
        for consumer in self._consumers:
            try:
                await consumer(decision)
            except Exception as exc:
                logger.error(
                    "stream.consumer_error",
                    consumer=getattr(consumer, "__qualname__", repr(consumer)),
                    error=str(exc),
                )
