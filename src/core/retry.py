"""Retry logic with exponential backoff, built on tenacity."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.core.exceptions import RETRYABLE_ERRORS
from src.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


class RetryPolicy(BaseModel):
    """Retry configuration shared by every scraping variant.

    Delays are in seconds. The wait before retry ``n`` (0-based) is
    ``initial_delay * backoff_multiplier ** n``.
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=60.0, gt=0)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_index: int) -> float:
        """Delay before the given retry (0 = first retry)."""
        delay = self.initial_delay * (self.backoff_multiplier ** retry_index)
        return min(delay, self.max_delay)


def _log_retry(label: str) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retrying_after_error",
            target=label,
            attempt=state.attempt_number,
            delay=state.next_action.sleep if state.next_action else None,
            error=str(error),
            error_type=type(error).__name__,
        )

    return before_sleep


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[Exception], ...] = RETRYABLE_ERRORS,
    sleep: SleepFunc = asyncio.sleep,
    label: str = "",
) -> T:
    """Call ``func`` until it succeeds or the policy is exhausted.

    Only exceptions in ``retry_on`` are retried; anything else propagates
    immediately. On exhaustion the last exception is re-raised.

    Usage:
        html = await retry_async(lambda: client.get(url), policy, label=url)
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(
            multiplier=policy.initial_delay,
            exp_base=policy.backoff_multiplier,
            max=policy.max_delay,
        ),
        retry=retry_if_exception_type(retry_on),
        before_sleep=_log_retry(label),
        sleep=sleep,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            return await func()

    raise RuntimeError("Retry loop exited without a result")  # pragma: no cover
