"""
Bounded retry with backoff.

The default policy mirrors a typical object store client default:
5 attempts, 10 ms apart, constant factor, 10 percent jitter.

Callers choose which error types are retriable. Anything else propagates on
the first failure. When the budget is exhausted the last error propagates.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

from loopback_hwmgr.core.errors import ConflictError, NotFoundError, TransientError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry budget.

    steps
    Maximum number of attempts, including the first.

    duration_seconds
    Initial wait between attempts.

    factor
    Multiplier applied to the wait after each attempt.

    jitter
    Fraction of the wait added at random.

    cap_seconds
    Upper bound for a single wait.
    """

    steps: int = 5
    duration_seconds: float = 0.01
    factor: float = 1.0
    jitter: float = 0.1
    cap_seconds: float = 5.0

    def delays(self) -> list[float]:
        """Return the waits between attempts, without jitter."""
        out: list[float] = []
        wait = self.duration_seconds
        for _ in range(max(0, self.steps - 1)):
            out.append(min(wait, self.cap_seconds))
            wait *= self.factor
        return out


DEFAULT_RETRY = RetryPolicy()

CONFLICT_RETRIABLE_OR_NOT_FOUND = (ConflictError, TransientError, NotFoundError)


def retry_on(
    policy: RetryPolicy,
    fn: Callable[[], T],
    retriable: tuple[type[BaseException], ...],
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn until it succeeds or the budget runs out.

    Only errors listed in retriable are retried.
    """
    delays = policy.delays()
    attempt = 0
    while True:
        try:
            return fn()
        except retriable as err:
            if attempt >= len(delays):
                raise
            wait = delays[attempt]
            if policy.jitter > 0:
                wait += random.uniform(0.0, policy.jitter * wait)
            attempt += 1
            LOGGER.debug(f"retrying after {type(err).__name__} (attempt {attempt}): {err}")
            sleep(wait)


def retry_on_conflict_or_retriable_or_not_found(
    policy: RetryPolicy,
    fn: Callable[[], T],
) -> T:
    """Retry used around fetch and write cycles, where the object may lag after create."""
    return retry_on(policy, fn, CONFLICT_RETRIABLE_OR_NOT_FOUND)
