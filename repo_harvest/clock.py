"""Time source used for rate-limit pauses."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone


class SystemClock:
    """Wall clock backed by :mod:`asyncio`."""

    def now(self) -> datetime:
        return datetime.now(tz=timezone.utc)

    async def sleep(self, seconds: float) -> None:
        if seconds <= 0:
            return
        await asyncio.sleep(seconds)


__all__ = ["SystemClock"]
