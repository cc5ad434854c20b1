# ============================================================================
# src/exam_pipeline/core/retry.py
# ============================================================================
"""
Bounded retry with a fixed backoff.

retry_async() never raises for failures of the retried operation; it reports
every attempt and leaves the fatal decision to the caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Tuple, Type, TypeVar

from .models import AttemptStatus

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AttemptRecord:
    attempt: int
    status: AttemptStatus
    error: Optional[BaseException] = None


@dataclass
class RetryResult(Generic[T]):
    value: Optional[T] = None
    history: List[AttemptRecord] = field(default_factory=list)

    @property
    def attempts(self) -> int:
        return len(self.history)

    @property
    def status(self) -> Optional[AttemptStatus]:
        return self.history[-1].status if self.history else None

    @property
    def succeeded(self) -> bool:
        return self.status is AttemptStatus.SUCCESS

    @property
    def last_error(self) -> Optional[BaseException]:
        for record in reversed(self.history):
            if record.error is not None:
                return record.error
        return None


async def retry_async(
    operation: Callable[[int], Awaitable[T]],
    max_attempts: int = 3,
    backoff_seconds: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> RetryResult[T]:
    """
    Run `operation(attempt)` until it succeeds or `max_attempts` is reached.

    Args:
        operation: Coroutine function receiving the 1-based attempt number
        max_attempts: Hard upper bound on calls
        backoff_seconds: Fixed wait between attempts
        retry_on: Exception types counted as attempt failures; others propagate
        sleep: Sleep coroutine, injectable for tests

    Returns:
        RetryResult with the value (on success) and one record per attempt
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    result: RetryResult[T] = RetryResult()

    for attempt in range(1, max_attempts + 1):
        try:
            value = await operation(attempt)
        except retry_on as e:
            if attempt < max_attempts:
                logger.warning(f"Attempt {attempt}/{max_attempts} failed: {e}")
                result.history.append(
                    AttemptRecord(attempt, AttemptStatus.RETRYABLE_FAILURE, e)
                )
                await sleep(backoff_seconds)
                continue

            logger.error(f"Attempt {attempt}/{max_attempts} failed, giving up: {e}")
            result.history.append(
                AttemptRecord(attempt, AttemptStatus.FATAL_AFTER_MAX_ATTEMPTS, e)
            )
            return result

        if attempt > 1:
            logger.info(f"Operation succeeded after {attempt - 1} retries")
        result.value = value
        result.history.append(AttemptRecord(attempt, AttemptStatus.SUCCESS))
        return result

    return result
