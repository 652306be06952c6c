"""Single-flight execution of browser operations."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable

from ..config import COOLDOWN_MS

logger = logging.getLogger(__name__)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)


class RequestSerializer:
    """Runs one operation at a time, in arrival order.

    asyncio.Lock wakes waiters FIFO. The cool-down runs while the lock is
    still held, so the next operation never starts right on the heels of the
    previous one, whether that one succeeded or failed.
    """

    def __init__(self, cooldown_seconds: float = COOLDOWN_MS / 1000, sleep=asyncio.sleep):
        self._lock = asyncio.Lock()
        self._cooldown = cooldown_seconds
        self._sleep = sleep
        self._waiting = 0
        self._active: str | None = None

    @property
    def active(self) -> str | None:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    async def run(self, operation: Callable[..., Awaitable[Any]], *args, label: str = "request", **kwargs) -> Any:
        """Await ``operation(*args, **kwargs)`` once the slot is free."""
        if self._lock.locked():
            logger.info(f"Request already in progress ({self._active}), '{label}' waiting...")
        self._waiting += 1
        try:
            await self._lock.acquire()
        finally:
            self._waiting -= 1

        self._active = label
        try:
            return await operation(*args, **kwargs)
        finally:
            try:
                await self._sleep(self._cooldown)
            finally:
                self._active = None
                self._lock.release()
