import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional, Union

from api.services.countdown import Countdown, TRIAL_DURATION, compute_countdown, utcnow

logger = logging.getLogger(__name__)

TickCallback = Callable[[Countdown], Union[None, Awaitable[None]]]


class CountdownTicker:
    """
    Recomputes a countdown on a fixed interval and hands each result to a
    callback, until stopped.

    Each tick reads the clock afresh; nothing carries over between ticks.
    Use as ``async with CountdownTicker(...)`` or call start()/stop() so the
    task never outlives its consumer.
    """

    def __init__(
        self,
        expires_at: Optional[datetime],
        on_tick: TickCallback,
        interval: float = 1.0,
        window: timedelta = TRIAL_DURATION,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.expires_at = expires_at
        self.on_tick = on_tick
        self.interval = interval
        self.window = window
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> Countdown:
        return compute_countdown(self.expires_at, self.clock(), self.window)

    async def _run(self):
        while True:
            result = self.on_tick(self.tick())
            if asyncio.iscoroutine(result):
                await result
            await asyncio.sleep(self.interval)

    def start(self) -> "CountdownTicker":
        if self.running:
            return self
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._log_failure)
        return self

    async def stop(self):
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def _log_failure(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Countdown ticker stopped after error: {exc}")

    async def __aenter__(self):
        return self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.stop()
