"""
Error taxonomy.

We separate error types so callers can react correctly.
Example:
NotFoundError is success for deletes and retryable for status fetches.
ConflictError is retried with refetch and reapply.
InsufficientResources is surfaced immediately, the caller requeues later.
DecodeError is fatal for the invocation.

Every error carries optional node, group and operation context.
The context is rendered into the message so logs are useful without a stack.
"""

from __future__ import annotations

import copy
from typing import Any


class HwMgrError(Exception):
    """Base class for all hardware manager exceptions."""

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        group: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.node = node
        self.group = group
        self.operation = operation

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.group:
            context.append(f"group={self.group}")
        if self.node:
            context.append(f"node={self.node}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"

    def with_context(
        self,
        *,
        node: str | None = None,
        group: str | None = None,
        operation: str | None = None,
    ) -> HwMgrError:
        """
        Return a copy of this error with missing context fields filled in.

        Fields already set by a lower layer win.
        """
        err = copy.copy(self)
        if err.node is None:
            err.node = node
        if err.group is None:
            err.group = group
        if err.operation is None:
            err.operation = operation
        return err


class NotFoundError(HwMgrError):
    """Raised when an object does not exist in the object store."""


class AlreadyExistsError(HwMgrError):
    """Raised when creating an object whose name is already taken."""


class ConflictError(HwMgrError):
    """Raised when a write was based on a stale resource version."""


class TransientError(HwMgrError):
    """Raised for failures that are expected to clear on retry."""


class DecodeError(HwMgrError):
    """Raised when BMC credentials in the catalog are not valid base64."""


class PersistenceError(HwMgrError):
    """Raised when the allocation ledger could not be written back."""


class LedgerConflictError(ConflictError, PersistenceError):
    """Raised when the ledger was saved with a stale version token."""


class InsufficientResources(HwMgrError):
    """
    Raised when a node group asks for more nodes than its pool has free.

    outcomes holds the per group outcomes computed before the error, so the
    caller can see which groups were already committed in this invocation.
    """

    def __init__(
        self,
        message: str,
        *,
        pool_id: str = "",
        requested: int = 0,
        available: int = 0,
        outcomes: list[Any] | None = None,
        node: str | None = None,
        group: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, node=node, group=group, operation=operation)
        self.pool_id = pool_id
        self.requested = requested
        self.available = available
        self.outcomes = list(outcomes or [])


RETRYABLE_ERRORS: tuple[type[HwMgrError], ...] = (
    NotFoundError,
    ConflictError,
    TransientError,
    InsufficientResources,
    PersistenceError,
)


def is_retryable(err: BaseException) -> bool:
    """
    Return True when a later invocation may succeed without operator action.

    DecodeError is the only fatal error: the catalog itself must be fixed.
    """
    if isinstance(err, DecodeError):
        return False
    return isinstance(err, RETRYABLE_ERRORS)
