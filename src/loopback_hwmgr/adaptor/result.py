"""
Reconcile results.

Every entrypoint returns a ReconcileResult: when to look at the request again
and the error of this invocation, if any. The dispatch layer owns scheduling.
"""

from __future__ import annotations

from dataclasses import dataclass

SHORT_INTERVAL_SECONDS = 15.0
MEDIUM_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class ReconcileResult:
    """
    requeue_after
    Seconds until the next invocation. None means only on the next change.

    error
    Failure of this invocation. Retryable unless the error type says otherwise.
    """

    requeue_after: float | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None


def do_not_requeue(error: Exception | None = None) -> ReconcileResult:
    return ReconcileResult(requeue_after=None, error=error)


def requeue_with_short_interval(error: Exception | None = None) -> ReconcileResult:
    return ReconcileResult(requeue_after=SHORT_INTERVAL_SECONDS, error=error)


def requeue_with_medium_interval(error: Exception | None = None) -> ReconcileResult:
    return ReconcileResult(requeue_after=MEDIUM_INTERVAL_SECONDS, error=error)
