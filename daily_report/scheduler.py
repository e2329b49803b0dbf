"""Daily scheduler running on the asyncio event loop."""

import asyncio
import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


class DailyScheduler:
    """Invoke a coroutine function once a day at a fixed wall-clock time."""

    def __init__(
        self,
        job: Callable[[], Awaitable[Any]],
        run_at: time = time(6, 0),
        timezone_name: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.job = job
        self.run_at = run_at
        self.tz = ZoneInfo(timezone_name)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self.next_run: Optional[datetime] = None

    def next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """Next occurrence of ``run_at`` strictly after ``now``."""
        local_now = (now or self.clock()).astimezone(self.tz)
        candidate = datetime.combine(local_now.date(), self.run_at, tzinfo=self.tz)
        if candidate <= local_now:
            candidate = datetime.combine(local_now.date() + timedelta(days=1), self.run_at, tzinfo=self.tz)
        return candidate

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Main scheduler loop.

        Args:
            stop_event: Event that ends the loop once set
        """
        while not stop_event.is_set():
            self.next_run = self.next_run_time()
            delay = max((self.next_run - self.clock()).total_seconds(), 0.0)
            logger.info(f"Next report run scheduled for {self.next_run.isoformat()} (in {delay:.0f}s)")

            await self._sleep(delay)
            if stop_event.is_set():
                break

            logger.info("Scheduled run triggered")
            try:
                await self.job()
            except Exception as e:
                logger.error(f"Scheduled run error: {e}", exc_info=True)

        logger.info("Scheduler stop signal received")

    def start(self) -> None:
        """Start the scheduler as a background task on the running loop."""
        if self._task and not self._task.done():
            return
        self._stop_event = asyncio.Event()
        self.next_run = self.next_run_time()
        self._task = asyncio.create_task(self.run_forever(self._stop_event))
        logger.info(f"Daily run scheduled at {self.run_at.strftime('%H:%M')} {self.tz.key}")

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the task to finish."""
        if not self._task:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Scheduler stopped")
