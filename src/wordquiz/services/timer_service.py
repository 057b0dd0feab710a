"""Cancelable countdown for answering a word."""
import asyncio
import logging
from typing import Callable, Optional

from wordquiz.config import settings

logger = logging.getLogger(__name__)


class AnswerTimer:
    """Counts down once per tick and fires a callback when time runs out."""

    def __init__(self, duration: Optional[int] = None, tick_seconds: float = 1.0):
        self.duration = duration or settings.game.timer_duration
        self.tick_seconds = tick_seconds
        self.time_left = self.duration
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(
        self,
        on_tick: Optional[Callable[[int], None]] = None,
        on_timeout: Optional[Callable[[], None]] = None,
    ) -> asyncio.Task:
        """Start counting from the full duration, replacing any running countdown."""
        self.cancel()
        self.time_left = self.duration
        self._task = asyncio.create_task(self._run(on_tick, on_timeout))
        logger.debug(f"Starting timer: {self.time_left}")
        return self._task

    async def _run(
        self,
        on_tick: Optional[Callable[[int], None]],
        on_timeout: Optional[Callable[[], None]],
    ) -> None:
        while self.time_left > 0:
            await asyncio.sleep(self.tick_seconds)
            self.time_left -= 1
            if on_tick:
                on_tick(self.time_left)

        # Detach first so a callback that cancels the timer does not cancel itself
        self._task = None
        logger.debug("Answer time is up")
        if on_timeout:
            on_timeout()

    def cancel(self) -> None:
        """Stop the countdown. Safe to call when nothing is running."""
        if self._task is not None:
            if not self._task.done():
                self._task.cancel()
                logger.debug("Timer cleared")
            self._task = None
