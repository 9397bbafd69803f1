"""
Generic object operations built on ObjectClient.

update_status_with_retry
Refetches the object and reapplies the caller's field changes on conflict, so
status fields owned by someone else are never overwritten with stale values.
Not found is retried too, because objects may not be visible immediately after
create. Fetch and write share one retry budget.

delete_ignore_not_found
Treats a missing object as already deleted.
"""

from __future__ import annotations

from typing import Callable, Protocol, TypeVar

from loopback_hwmgr.core.errors import AlreadyExistsError, NotFoundError
from loopback_hwmgr.core.retry import (
    DEFAULT_RETRY,
    RetryPolicy,
    retry_on_conflict_or_retriable_or_not_found,
)
from loopback_hwmgr.resources.base import ObjectClient

T = TypeVar("T")


class Deletable(Protocol):
    def delete(self, name: str) -> None:
        """Remove the object."""


def update_status_with_retry(
    client: ObjectClient[T],
    name: str,
    mutate: Callable[[T], None],
    policy: RetryPolicy = DEFAULT_RETRY,
) -> T:
    """
    Fetch, mutate and write status until the write is accepted.

    mutate receives a fresh copy on every attempt and must only set the fields
    the caller owns.
    """

    def _attempt() -> T:
        obj = client.get(name)
        mutate(obj)
        return client.update_status(obj)

    return retry_on_conflict_or_retriable_or_not_found(policy, _attempt)


def create_or_get(client: ObjectClient[T], obj: T) -> tuple[T, bool]:
    """
    Create obj, or return the existing object with the same name.

    The second value is True when the object was created by this call.
    """
    try:
        return client.create(obj), True
    except AlreadyExistsError:
        return client.get(getattr(obj, "name")), False


def delete_ignore_not_found(client: Deletable, name: str) -> bool:
    """Delete name. Returns False when it was already gone."""
    try:
        client.delete(name)
    except NotFoundError:
        return False
    return True
