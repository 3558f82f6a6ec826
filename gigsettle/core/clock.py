"""Injectable wall clock for retry timing."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone


class Clock:
    """Real time: UTC timestamps and ``asyncio.sleep``."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock(Clock):
    """Virtual time that advances only when a coroutine sleeps on it."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._now = self._now + timedelta(seconds=seconds)
        # Yield so other tasks interleave as they would around a real sleep
        await asyncio.sleep(0)

