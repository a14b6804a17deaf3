"""Data-access layer for persisted behavioral baselines."""

from __future__ import annotations

from datetime import datetime
from typing import Awaitable, Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from emotion_engine.inference.models import Baseline
from emotion_engine.storage.database import BehaviorBaselineRow, get_session_factory


class BaseRepository:
    """Shared base with session management for all repositories."""

    def __init__(self, session: AsyncSession | None = None) -> None:
        self._external_session = session

    async def _session(self) -> AsyncSession:
        if self._external_session is not None:
            return self._external_session
        return get_session_factory()()


class BaselineRepository(BaseRepository):
    """Load and store one :class:`Baseline` per user."""

    async def get(self, user_id: str) -> Baseline | None:
        session = await self._session()
        stmt = select(BehaviorBaselineRow).where(BehaviorBaselineRow.user_id == user_id)
        row = (await session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return Baseline(
            normal_velocity=row.normal_velocity,
            normal_acceleration=row.normal_acceleration,
            normal_hover_time=row.normal_hover_time,
            sample_count=row.sample_count or 0,
        )

    async def upsert(self, user_id: str, baseline: Baseline) -> None:
        session = await self._session()
        existing = await session.get(BehaviorBaselineRow, user_id)
        if existing is None:
            session.add(
                BehaviorBaselineRow(
                    user_id=user_id,
                    normal_velocity=baseline.normal_velocity,
                    normal_acceleration=baseline.normal_acceleration,
                    normal_hover_time=baseline.normal_hover_time,
                    sample_count=baseline.sample_count,
                    updated_at=datetime.utcnow(),
                )
            )
        else:
            existing.normal_velocity = baseline.normal_velocity
            existing.normal_acceleration = baseline.normal_acceleration
            existing.normal_hover_time = baseline.normal_hover_time
            existing.sample_count = baseline.sample_count
            existing.updated_at = datetime.utcnow()
        await session.commit()

    def loader(self, user_id: str) -> Callable[[], Awaitable[Baseline | None]]:
        """Return a zero-argument coroutine function for :meth:`EmotionEngine.load_baseline`."""

        async def _load() -> Baseline | None:
            return await self.get(user_id)

        return _load

    def persister(self, user_id: str) -> Callable[[Baseline], Awaitable[None]]:
        """Return a callable suitable for ``EmotionEngine(persist_baseline=...)``."""

        def _persist(baseline: Baseline) -> Awaitable[None]:
            return self.upsert(user_id, baseline)

        return _persist
