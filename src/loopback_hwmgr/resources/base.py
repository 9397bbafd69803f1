"""
Object store interfaces.

Goal
Define stable interfaces for the externally owned objects the adaptor reads
and writes, without binding the engine to a specific API server.

Objects are keyed by name within a fixed namespace.

Design notes
update_status replaces the status of the stored object and must fail with
ConflictError when the passed resource_version is stale. Callers refetch and
reapply their field changes, see update_status_with_retry.
"""

from __future__ import annotations

from typing import Protocol, TypeVar

from loopback_hwmgr.core.types import CredentialObject

T = TypeVar("T")


class ObjectClient(Protocol[T]):
    """
    Generic CRUD client for one object kind.

    get, update_status, update and delete raise NotFoundError for unknown names.
    create raises AlreadyExistsError when the name is taken.
    """

    namespace: str

    def create(self, obj: T) -> T:
        """Store a new object and return the stored copy."""

    def get(self, name: str) -> T:
        """Return a copy of the stored object."""

    def list(self) -> list[T]:
        """Return copies of all stored objects ordered by name."""

    def update(self, obj: T) -> T:
        """Replace spec and metadata, keeping status."""

    def update_status(self, obj: T) -> T:
        """Replace status only."""

    def delete(self, name: str) -> None:
        """Remove the object."""


class CredentialClient(Protocol):
    """
    Credential object client.

    create_or_update is idempotent. delete raises NotFoundError for unknown names.
    """

    namespace: str

    def create_or_update(self, secret: CredentialObject) -> CredentialObject:
        """Create the credential object or replace its data."""

    def get(self, name: str) -> CredentialObject:
        """Return the credential object."""

    def delete(self, name: str) -> None:
        """Remove the credential object."""
