"""Retry policy: which failures are worth another try, and after how long.

The dispatcher evaluates the policy after every failed attempt rather than
wrapping the call in a tenacity decorator; the one-shot authentication retry
is not counted against the retry budget. Tenacity supplies the building
blocks: ``stop_after_attempt`` bounds the budget, ``wait_fixed``,
``wait_exponential`` and ``wait_random`` compute delays, and
``retry_if_exception`` classifies errors.
"""

from dataclasses import dataclass
from datetime import datetime
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Collection, Optional

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
    wait_random,
)
from tenacity.wait import wait_base

from ._utils.constants import HEADER_RETRY_AFTER
from .models.errors import HttpStatusError, TransportError

DEFAULT_RETRY_STATUS_CODES = frozenset(range(500, 600))


class BackoffStrategy(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class BackoffParameters(BaseModel):
    """Delay between retries.

    ``fixed`` waits ``initial_delay`` every time; ``exponential`` waits
    ``initial_delay * multiplier ** (attempt - 1)`` capped at ``max_delay``.
    ``jitter`` adds a uniformly random ``[0, jitter]`` seconds on top.
    """

    model_config = ConfigDict(frozen=True)

    strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    initial_delay: float = Field(default=0.5, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=30.0, ge=0)
    jitter: float = Field(default=0.0, ge=0)


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay: float = 0.0

    @classmethod
    def stop(cls) -> "RetryDecision":
        return cls(retry=False)

    @classmethod
    def after(cls, delay: float) -> "RetryDecision":
        return cls(retry=True, delay=max(delay, 0.0))


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header value (RFC 7231): delay-seconds or HTTP-date.

    Returns:
        Seconds to wait (never negative), or ``None`` when the header is
        missing or unparsable.
    """
    if not value:
        return None

    try:
        return max(float(value), 0.0)
    except ValueError:
        pass

    try:
        retry_date = parsedate_to_datetime(value)
        delta = (retry_date - datetime.now(retry_date.tzinfo)).total_seconds()
        return max(delta, 0.0)
    except (ValueError, TypeError):
        return None


def build_wait_strategy(backoff: BackoffParameters) -> wait_base:
    if backoff.strategy is BackoffStrategy.FIXED:
        wait: wait_base = wait_fixed(backoff.initial_delay)
    else:
        wait = wait_exponential(
            multiplier=backoff.initial_delay,
            exp_base=backoff.multiplier,
            min=backoff.initial_delay,
            max=backoff.max_delay,
        )
    if backoff.jitter > 0:
        wait = wait + wait_random(0, backoff.jitter)
    return wait


class RetryPolicy:
    """Decides whether a failed attempt gets another try.

    Attempt numbers start at 1 for the original try, so a policy with
    ``max_retry_count=3`` allows at most four transmissions.
    """

    def __init__(
        self,
        max_retry_count: int = 0,
        backoff: Optional[BackoffParameters] = None,
        retry_status_codes: Collection[int] = DEFAULT_RETRY_STATUS_CODES,
        respect_retry_after: bool = True,
    ) -> None:
        if max_retry_count < 0:
            raise ValueError("max_retry_count must not be negative")
        self.max_retry_count = max_retry_count
        self.backoff = backoff or BackoffParameters()
        self.retry_status_codes = frozenset(retry_status_codes)
        self.respect_retry_after = respect_retry_after

        self._stop = stop_after_attempt(max_retry_count + 1)
        self._wait = build_wait_strategy(self.backoff)
        self._retry = retry_if_exception(self.is_retryable)

    @property
    def max_attempts(self) -> int:
        return self.max_retry_count + 1

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, TransportError):
            return error.is_retryable
        if isinstance(error, HttpStatusError):
            return error.status_code in self.retry_status_codes
        return False

    def should_retry(self, attempt_number: int, error: BaseException) -> RetryDecision:
        """Evaluate ``error`` raised by attempt ``attempt_number``.

        The bound is checked regardless of the error kind, so no error ever
        extends the budget.
        """
        state = RetryCallState(retry_object=None, fn=None, args=(), kwargs={})  # type: ignore[arg-type]
        state.attempt_number = attempt_number
        state.set_exception((type(error), error, error.__traceback__))

        if self._stop(state) or not self._retry(state):
            return RetryDecision.stop()

        delay = self._wait(state)
        if self.respect_retry_after and isinstance(error, HttpStatusError):
            retry_after = parse_retry_after(_header(error, HEADER_RETRY_AFTER))
            if retry_after is not None:
                delay = min(retry_after, self.backoff.max_delay)
        return RetryDecision.after(delay)


def _header(error: HttpStatusError, name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in error.headers.items():
        if key.lower() == lowered:
            return value
    return None
