"""Clock implementations for infrastructure.

Usage example:
    from backend_bridge.infrastructure.clock import SystemClock

    clock = SystemClock()
    await clock.sleep(1.5)
"""

from __future__ import annotations

import asyncio
import time
from typing import override

from ..protocols import Clock


class SystemClock(Clock):
    """Wall-clock time and real asyncio suspension."""

    @override
    def now(self) -> float:
        return time.time()

    @override
    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
