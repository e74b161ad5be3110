"""Bounded retry with Fibonacci backoff.

Registries rate-limit uploads and occasionally time out, so each publish
is attempted several times, waiting a little longer before each retry::

    attempt 1 ─ fail ─ sleep 4s ─ attempt 2 ─ fail ─ sleep 4s ─ attempt 3
      ─ fail ─ sleep 8s ─ attempt 4 ─ fail ─ sleep 12s ─ ... ─ attempt N
      ─ fail ─▶ FATAL

A retried upload may already have succeeded server-side (the response was
lost). Treating "version already exists" as success is the registry
client's job; this module has no compensating logic.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from itertools import islice

from pydantic import BaseModel, ConfigDict, Field
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from .logging import get_logger
from .models import PublishResult, PublishStatus

log = get_logger("armory.retry")

DEFAULT_MAX_ATTEMPTS = 6
DEFAULT_BASE_DELAY = 4.0


def fibonacci_delays(base: float) -> Iterator[float]:
    """Yield base, base, 2*base, 3*base, 5*base, ... forever."""
    current, following = base, base
    while True:
        yield current
        current, following = following, current + following


class FibonacciWait(wait_base):
    """Wait ``base``, ``base``, ``2*base``, ... after attempts 1, 2, 3, ..."""

    def __init__(self, base: float) -> None:
        self.base = base

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = max(1, retry_state.attempt_number)
        return next(islice(fibonacci_delays(self.base), attempt - 1, None))


def _is_retryable(result: PublishResult) -> bool:
    return result.status is PublishStatus.RETRYABLE


def _failure_reason(retry_state: RetryCallState) -> str | None:
    outcome = retry_state.outcome
    if outcome is None:
        return None
    if outcome.failed:
        exc = outcome.exception()
        return f"{type(exc).__name__}: {exc}"
    return outcome.result().error


class RetryPolicy(BaseModel):
    """Retries one member's publish until it succeeds or the budget is spent.

    Attributes:
        max_attempts: Total attempts per member, including the first.
        base_delay: First delay in seconds; later delays follow Fibonacci.
        sleep: Sleep function, replaceable in tests.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    base_delay: float = Field(default=DEFAULT_BASE_DELAY, ge=0)
    sleep: Callable[[float], None] = time.sleep

    def call(
        self, member: str, attempt_fn: Callable[[], PublishResult]
    ) -> PublishResult:
        """Run ``attempt_fn`` until it succeeds, fails fatally, or runs out.

        Exceptions raised by ``attempt_fn`` count as retryable failures.

        Returns:
            The successful result, the client's FATAL result, or a FATAL
            result once ``max_attempts`` attempts have failed. ``attempts``
            always holds the number of attempts actually made.
        """
        attempts = 0
        exhausted = False

        def attempt() -> PublishResult:
            nonlocal attempts
            attempts += 1
            return attempt_fn().model_copy(update={"attempts": attempts})

        def log_retry(retry_state: RetryCallState) -> None:
            log.warning(
                "publish_attempt_failed",
                member=member,
                attempt=retry_state.attempt_number,
                max_attempts=self.max_attempts,
                retry_in=retry_state.next_action.sleep if retry_state.next_action else None,
                error=_failure_reason(retry_state),
            )

        def give_up(retry_state: RetryCallState) -> PublishResult:
            nonlocal exhausted
            exhausted = True
            error = _failure_reason(retry_state)
            log.error(
                "publish_retries_exhausted",
                member=member,
                attempts=retry_state.attempt_number,
                error=error,
            )
            return PublishResult(
                member=member,
                status=PublishStatus.FATAL,
                attempts=retry_state.attempt_number,
                error=error,
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=FibonacciWait(self.base_delay),
            sleep=self.sleep,
            retry=retry_if_exception_type(Exception) | retry_if_result(_is_retryable),
            before_sleep=log_retry,
            retry_error_callback=give_up,
        )
        result = retrying(attempt)

        if result.status is PublishStatus.SUCCESS and attempts > 1:
            log.info("publish_recovered", member=member, attempts=attempts)
        elif result.status is PublishStatus.FATAL and not exhausted:
            log.error(
                "publish_failed_fatal",
                member=member,
                attempts=attempts,
                error=result.error,
            )
        return result

    def wrap(
        self, publish: Callable[[str], PublishResult]
    ) -> Callable[[str], PublishResult]:
        """Turn a single-attempt publish function into a retrying one."""

        def publish_one(member: str) -> PublishResult:
            return self.call(member, lambda: publish(member))

        return publish_one
