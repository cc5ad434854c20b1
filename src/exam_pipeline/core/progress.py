# ============================================================================
# src/exam_pipeline/core/progress.py
# ============================================================================
"""
Synthetic progress for extraction calls.

The extraction service gives no real progress, so a background task nudges
the value upward by a random step until a cap, and completion snaps it to
100. The value never decreases except through reset().
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import progress_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[float], None]

COMPLETE = 100.0


class ProgressToken:
    """Handle on one outstanding progress stream."""

    def __init__(
        self,
        interval: float,
        cap: float,
        max_step: float,
        rng: random.Random,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.interval = interval
        self.cap = cap
        self.max_step = max_step
        self._rng = rng
        self._on_progress = on_progress
        self._value = 0.0
        self._cancelled = False
        self._completed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def value(self) -> float:
        return self._value

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._completed)

    def _start_ticker(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: caller drives tick() by hand
            logger.debug("No running event loop; progress ticks are manual")
            return
        self._task = loop.create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        while self.active:
            await asyncio.sleep(self.interval)
            if not self.active:
                return
            self.tick()

    def _stop_ticker(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def _emit(self) -> None:
        if self._on_progress is not None:
            self._on_progress(self._value)

    def tick(self) -> float:
        """Advance by a random step in [0, max_step), never past the cap."""
        if not self.active:
            return self._value
        step = self._rng.random() * self.max_step
        self._value = max(self._value, min(self.cap, self._value + step))
        self._emit()
        return self._value

    def complete(self) -> None:
        if self._cancelled:
            return
        self._stop_ticker()
        self._completed = True
        self._value = COMPLETE
        self._emit()

    def cancel(self) -> None:
        """Stop ticking. Safe to call more than once and after complete()."""
        self._stop_ticker()
        if self._completed or self._cancelled:
            return
        self._cancelled = True

    def reset(self) -> None:
        self._stop_ticker()
        if self.active:
            self._cancelled = True
        self._value = 0.0
        self._emit()


class ProgressEmitter:
    """
    Factory for progress tokens.

    Args:
        interval: Seconds between ticks
        cap: Highest value reachable by ticking
        max_step: Upper bound (exclusive) of one random increment
        hold: Seconds the completed value is held before reset in track()
        rng: Random source, injectable for deterministic tests
    """

    def __init__(
        self,
        interval: Optional[float] = None,
        cap: Optional[float] = None,
        max_step: Optional[float] = None,
        hold: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        self.interval = interval if interval is not None else progress_settings.PROGRESS_INTERVAL_SECONDS
        self.cap = cap if cap is not None else progress_settings.PROGRESS_CAP
        self.max_step = max_step if max_step is not None else progress_settings.PROGRESS_MAX_STEP
        self.hold = hold if hold is not None else progress_settings.PROGRESS_HOLD_SECONDS
        self.rng = rng or random.Random()

        if not 0 < self.cap <= COMPLETE:
            raise ValueError(f"Progress cap must be in (0, 100], got {self.cap}")

    def start(self, on_progress: Optional[ProgressCallback] = None) -> ProgressToken:
        token = ProgressToken(
            interval=self.interval,
            cap=self.cap,
            max_step=self.max_step,
            rng=self.rng,
            on_progress=on_progress,
        )
        token._start_ticker()
        return token

    async def track(
        self,
        awaitable: Awaitable[T],
        token: Optional[ProgressToken] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> T:
        """
        Await `awaitable` while progress runs.

        On return the value snaps to 100, is held briefly, then reset to 0.
        If the token was cancelled meanwhile, no completion is reported.
        """
        token = token or self.start(on_progress)
        try:
            result = await awaitable
        except BaseException:
            token.cancel()
            token.reset()
            raise

        if token.cancelled:
            token.reset()
            return result

        token.complete()
        if self.hold > 0:
            await asyncio.sleep(self.hold)
        token.reset()
        return result
