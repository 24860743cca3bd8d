"""
Account-wide request throttling for the data pipeline.

This module provides:
    - RateLimiter: spaces requests to a calls-per-minute budget and
      implements the global pause every worker honours after a
      throttling response

Example:
    limiter = RateLimiter(requests_per_minute=55, pause_seconds=25)

    await limiter.acquire()          # wait for a request slot
    ...
    await limiter.pause('HTTP 429')  # suspend every worker for 25s
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """
    Shared request pacer with a global pause switch.

    Slots are handed out at most once every 60 / requests_per_minute
    seconds. While a pause is active, acquire() blocks every caller until
    the pause window elapses; in-flight requests are not cancelled.

    Attributes:
        requests_per_minute: Request budget
        pause_seconds: Length of a global pause
        pause_count: Number of pauses engaged so far
    """

    def __init__(
        self,
        requests_per_minute: float = 55,
        pause_seconds: float = 25.0,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep
    ):
        """
        Initialize the RateLimiter.

        Args:
            requests_per_minute: Maximum calls per minute (<= 0 disables pacing)
            pause_seconds: Cooldown applied on a throttling response
            clock: Monotonic clock, injectable for tests
            sleep: Async sleep, injectable for tests
        """
        if pause_seconds < 0:
            raise ValueError(f"pause_seconds must be non-negative, got {pause_seconds}")

        self.requests_per_minute = requests_per_minute
        self.pause_seconds = pause_seconds
        self.pause_count = 0
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._resume: Optional[asyncio.Event] = None
        self._paused = False
        self._pause_task: Optional[asyncio.Task] = None

    @property
    def interval(self) -> float:
        """Minimum spacing between two requests, in seconds."""
        if self.requests_per_minute <= 0:
            return 0.0
        return 60.0 / self.requests_per_minute

    @property
    def paused(self) -> bool:
        return self._paused

    def _primitives(self):
        # Created lazily so they bind to the running event loop
        if self._lock is None:
            self._lock = asyncio.Lock()
            self._resume = asyncio.Event()
            self._resume.set()
        return self._lock, self._resume

    async def acquire(self) -> None:
        """
        Wait for the next request slot.

        Honours an active global pause first, then the per-minute spacing.
        """
        lock, resume = self._primitives()
        await resume.wait()

        async with lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.interval
            wait = slot - now

        if wait > 0:
            await self._sleep(wait)
        # A pause may have started while this caller was spaced out
        await resume.wait()

    async def pause(self, reason: str = '', wait: bool = True) -> None:
        """
        Engage the global pause.

        The first caller starts a pause_seconds window and every acquire()
        blocks until it ends. Callers arriving while a pause is already
        active join it instead of extending it.

        Args:
            reason: Text for the log line (e.g. the provider message)
            wait: Whether this caller waits for the window to end
        """
        _, resume = self._primitives()
        if not self._paused:
            self._paused = True
            self.pause_count += 1
            resume.clear()
            logger.warning(
                f"Rate limited{': ' + reason if reason else ''}. "
                f"Pausing all requests for {self.pause_seconds:.0f}s"
            )
            self._pause_task = asyncio.create_task(self._hold_pause())
            # Runs even if the task is cancelled before it starts
            self._pause_task.add_done_callback(lambda _: self._release(resume))

        if wait:
            await resume.wait()

    async def _hold_pause(self) -> None:
        await self._sleep(self.pause_seconds)
        logger.info("Global pause elapsed, resuming requests")

    def _release(self, resume: asyncio.Event) -> None:
        self._paused = False
        resume.set()
