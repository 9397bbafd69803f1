import pytest

from loopback_hwmgr.core.errors import (
    ConflictError,
    DecodeError,
    InsufficientResources,
    LedgerConflictError,
    NotFoundError,
    PersistenceError,
    TransientError,
    is_retryable,
)
from loopback_hwmgr.core.retry import RetryPolicy, retry_on


def test_context_is_rendered_into_message():
    err = NotFoundError("node missing", node="n1", group="g1", operation="get")
    assert str(err) == "node missing (operation=get, group=g1, node=n1)"
    assert str(NotFoundError("plain")) == "plain"


def test_with_context_fills_only_missing_fields():
    err = TransientError("flaky", operation="create node")
    wrapped = err.with_context(node="n1", group="g1", operation="allocate")

    assert isinstance(wrapped, TransientError)
    assert wrapped.operation == "create node"
    assert wrapped.node == "n1"
    assert wrapped.group == "g1"
    assert err.node is None


def test_retryable_classification():
    assert is_retryable(NotFoundError("x"))
    assert is_retryable(ConflictError("x"))
    assert is_retryable(TransientError("x"))
    assert is_retryable(PersistenceError("x"))
    assert is_retryable(InsufficientResources("x", pool_id="P1", requested=2, available=1))
    assert not is_retryable(DecodeError("x"))
    assert not is_retryable(ValueError("x"))


def test_ledger_conflict_is_both_conflict_and_persistence_error():
    err = LedgerConflictError("stale")
    assert isinstance(err, ConflictError)
    assert isinstance(err, PersistenceError)


def test_retry_stops_after_budget_and_reraises_last_error():
    calls = []
    sleeps = []

    def fail() -> None:
        calls.append(1)
        raise ConflictError(f"attempt {len(calls)}")

    policy = RetryPolicy(steps=3, duration_seconds=0.5, factor=2.0, jitter=0.0)
    with pytest.raises(ConflictError, match="attempt 3"):
        retry_on(policy, fail, (ConflictError,), sleep=sleeps.append)

    assert len(calls) == 3
    assert sleeps == [0.5, 1.0]


def test_retry_does_not_retry_other_errors():
    calls = []

    def fail() -> None:
        calls.append(1)
        raise DecodeError("bad")

    with pytest.raises(DecodeError):
        retry_on(RetryPolicy(), fail, (ConflictError,), sleep=lambda _: None)

    assert len(calls) == 1
