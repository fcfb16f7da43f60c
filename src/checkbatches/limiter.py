"""
Bounded-parallelism gate shared by the probing and dispatch stages.
"""

from __future__ import annotations

import asyncio
import typing as t
from contextlib import asynccontextmanager

import structlog

log = structlog.get_logger(__name__)


class ConcurrencyLimiter:
    """
    Allow at most ``limit`` concurrent holders.

    Waiters are served in arrival order by the underlying ``asyncio.Semaphore``.
    There is no acquisition timeout: a caller waits until a slot frees up.

    Parameters
    ----------
    limit : int
        Maximum number of concurrent holders.
    name : str
        Limiter name used in logs.
    """

    def __init__(self, limit: int, *, name: str = "limiter") -> None:
        if limit < 1:
            raise ValueError(f"Limiter size must be >= 1, got {limit}")
        self._limit = limit
        self._name = name
        self._semaphore = asyncio.Semaphore(value=limit)
        self._in_flight = 0
        self._peak = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def name(self) -> str:
        return self._name

    @property
    def in_flight(self) -> int:
        """Number of slots currently held."""
        return self._in_flight

    @property
    def peak(self) -> int:
        """Highest number of slots held at the same time since creation."""
        return self._peak

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        self._in_flight += 1
        self._peak = max(self._peak, self._in_flight)
        log.debug(
            event="Limiter slot acquired",
            limiter=self._name,
            in_flight=self._in_flight,
            limit=self._limit,
        )

    def release(self) -> None:
        if self._in_flight == 0:
            raise RuntimeError(f"Limiter {self._name!r} released more times than acquired")
        self._in_flight -= 1
        self._semaphore.release()
        log.debug(
            event="Limiter slot released",
            limiter=self._name,
            in_flight=self._in_flight,
            limit=self._limit,
        )

    @asynccontextmanager
    async def slot(self) -> t.AsyncIterator[None]:
        """
        Hold a slot for the duration of the ``async with`` block.

        The slot is released on every exit path, including exceptions and
        cancellation.
        """
        await self.acquire()
        try:
            yield
        finally:
            self.release()
