"""Application entrypoint — replay recorded feature streams or manage the store."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Iterator

import structlog

from emotion_engine.config import Settings, get_settings
from emotion_engine.inference.engine import EmotionEngine
from emotion_engine.inference.models import FinalDecision
from emotion_engine.logger import setup_logging
from emotion_engine.storage.database import dispose_db, get_session_factory, init_db
from emotion_engine.storage.repository import BaselineRepository
from emotion_engine.streaming.pipeline import EngineStream

logger = structlog.get_logger(__name__)

_CHANNELS = ("behavior", "webcam", "facial")


class ReplayClock:
    """Millisecond clock driven by recorded timestamps instead of wall time."""

    def __init__(self) -> None:
        self.now = 0.0

    def advance(self, timestamp: Any) -> None:
        if isinstance(timestamp, (int, float)) and timestamp > self.now:
            self.now = float(timestamp)

    def __call__(self) -> float:
        return self.now


def read_records(path: Path) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield ``(channel, features)`` pairs from a JSON-lines file.

    Blank lines are skipped; malformed lines are logged and skipped.
    """
    with path.open(encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                item = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("replay.invalid_json", line=lineno, error=str(exc))
                continue
            channel = item.get("channel") if isinstance(item, dict) else None
            features = item.get("features") if isinstance(item, dict) else None
            if channel not in _CHANNELS or not isinstance(features, dict):
                logger.warning("replay.invalid_record", line=lineno, channel=channel)
                continue
            yield channel, features


async def replay(
    path: Path,
    *,
    user_id: str,
    settings: Settings,
    gating_policy: str | None = None,
) -> list[FinalDecision]:
    """Drive a recorded stream through a fresh engine; return emitted decisions."""
    await init_db()
    emitted: list[FinalDecision] = []
    clock = ReplayClock()

    try:
        async with get_session_factory()() as session:
            repo = BaselineRepository(session)
            overrides: dict[str, Any] = {"persist_baseline": repo.persister(user_id), "clock": clock}
            if gating_policy:
                overrides["gating_policy"] = gating_policy
            engine = EmotionEngine.from_settings(settings, **overrides)
            await engine.load_baseline(repo.loader(user_id))

            stream = EngineStream(engine)

            async def _print(decision: FinalDecision) -> None:
                emitted.append(decision)
                print(decision.model_dump_json(), flush=True)

            stream.add_consumer(_print)
            task = asyncio.create_task(stream.start())

            publishers = {
                "behavior": stream.publish_behavior,
                "webcam": stream.publish_webcam,
                "facial": stream.publish_facial,
            }
            for channel, features in read_records(path):
                clock.advance(features.get("timestamp"))
                await publishers[channel](features)
                await stream.drain()

            await stream.stop()
            await task
            await engine.wait_for_persistence()
            logger.info(
                "replay.complete",
                user_id=user_id,
                processed=stream.processed_total,
                emitted=stream.emitted_total,
                calibrating=engine.is_calibrating,
            )
    finally:
        await dispose_db()
    return emitted


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="emotion-engine",
        description="Real-time emotion inference from behavior and webcam features.",
    )
    sub = parser.add_subparsers(dest="command")

    # ── replay ────────────────────────────────────────────────
    replay_parser = sub.add_parser("replay", help="Replay a JSON-lines feature stream.")
    replay_parser.add_argument("file", type=Path)
    replay_parser.add_argument("--user-id", default="default")
    replay_parser.add_argument("--policy", choices=["responsive", "conservative"], default=None)

    # ── init-db ───────────────────────────────────────────────
    sub.add_parser("init-db", help="Create database tables.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "replay":
        if not args.file.is_file():
            parser.error(f"no such file: {args.file}")
        asyncio.run(
            replay(args.file, user_id=args.user_id, settings=settings, gating_policy=args.policy)
        )
    elif args.command == "init-db":

        async def _init() -> None:
            try:
                await init_db()
            finally:
                await dispose_db()

        asyncio.run(_init())
        print("Database tables created.")
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
