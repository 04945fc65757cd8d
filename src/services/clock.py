# src/services/clock.py

"""Wall-clock abstraction so the scheduler can run against a fake clock."""

import asyncio
from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Time source and cooperative sleep used by the refresh scheduler."""

    def now(self) -> datetime: ...

    async def sleep(self, seconds: float) -> None: ...


class SystemClock:
    """Real time: ``datetime.now()`` and ``asyncio.sleep``."""

    def now(self) -> datetime:
        return datetime.now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
