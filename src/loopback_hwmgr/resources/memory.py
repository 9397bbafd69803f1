"""
In memory object stores.

These stores are used for tests and local simulations.
They behave like a namespaced object database keyed by name.

Features
- Objects are copied on the way in and out, like a remote API
- resource_version is bumped on every write and checked on status updates
- Failures can be injected per operation to exercise retry paths
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from loopback_hwmgr.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from loopback_hwmgr.core.types import CredentialObject
from loopback_hwmgr.resources.base import CredentialClient

T = TypeVar("T")


@dataclass
class FailureInjector:
    """
    Queue of errors to raise before an operation runs normally.

    failures maps an operation name such as "get" or "update_status" to a list
    of exceptions. Each call pops one exception and raises it.
    calls counts every operation call, failed or not.
    """

    failures: dict[str, list[Exception]] = field(default_factory=dict)
    calls: dict[str, int] = field(default_factory=dict)

    def check(self, op: str) -> None:
        self.calls[op] = self.calls.get(op, 0) + 1
        pending = self.failures.get(op)
        if pending:
            raise pending.pop(0)

    def inject(self, op: str, *errors: Exception) -> None:
        self.failures.setdefault(op, []).extend(errors)


class InMemoryObjectStore(Generic[T]):
    """
    In memory store for one object kind.

    The stored type must expose name, status and resource_version attributes.
    """

    def __init__(self, kind: str, namespace: str = "default") -> None:
        self.kind = kind
        self.namespace = namespace
        self.faults = FailureInjector()
        self._objects: dict[str, Any] = {}
        self._lock = threading.Lock()

    def create(self, obj: T) -> T:
        self.faults.check("create")
        name = getattr(obj, "name")
        with self._lock:
            if name in self._objects:
                raise AlreadyExistsError(f"{self.kind} {name} already exists", operation="create")
            stored = copy.deepcopy(obj)
            stored.resource_version = 1
            self._objects[name] = stored
            return copy.deepcopy(stored)

    def get(self, name: str) -> T:
        self.faults.check("get")
        with self._lock:
            stored = self._objects.get(name)
            if stored is None:
                raise NotFoundError(f"{self.kind} {name} not found", operation="get")
            return copy.deepcopy(stored)

    def list(self) -> list[T]:
        self.faults.check("list")
        with self._lock:
            return [copy.deepcopy(self._objects[k]) for k in sorted(self._objects)]

    def update(self, obj: T) -> T:
        self.faults.check("update")
        name = getattr(obj, "name")
        with self._lock:
            stored = self._objects.get(name)
            if stored is None:
                raise NotFoundError(f"{self.kind} {name} not found", operation="update")
            replacement = copy.deepcopy(obj)
            replacement.status = stored.status
            replacement.resource_version = stored.resource_version + 1
            self._objects[name] = replacement
            return copy.deepcopy(replacement)

    def update_status(self, obj: T) -> T:
        self.faults.check("update_status")
        name = getattr(obj, "name")
        with self._lock:
            stored = self._objects.get(name)
            if stored is None:
                raise NotFoundError(f"{self.kind} {name} not found", operation="update status")
            if getattr(obj, "resource_version") != stored.resource_version:
                raise ConflictError(
                    f"{self.kind} {name} was modified, resource version "
                    f"{getattr(obj, 'resource_version')} is stale",
                    operation="update status",
                )
            stored.status = copy.deepcopy(getattr(obj, "status"))
            stored.resource_version += 1
            return copy.deepcopy(stored)

    def delete(self, name: str) -> None:
        self.faults.check("delete")
        with self._lock:
            if self._objects.pop(name, None) is None:
                raise NotFoundError(f"{self.kind} {name} not found", operation="delete")

    def names(self) -> list[str]:
        """Return sorted object names. Useful for deterministic assertions."""
        with self._lock:
            return sorted(self._objects.keys())


@dataclass
class InMemoryCredentialStore(CredentialClient):
    """In memory credential objects keyed by name."""

    namespace: str = "default"
    faults: FailureInjector = field(default_factory=FailureInjector)
    secrets: dict[str, CredentialObject] = field(default_factory=dict)

    def create_or_update(self, secret: CredentialObject) -> CredentialObject:
        self.faults.check("create_or_update")
        self.secrets[secret.name] = copy.deepcopy(secret)
        return copy.deepcopy(secret)

    def get(self, name: str) -> CredentialObject:
        self.faults.check("get")
        secret = self.secrets.get(name)
        if secret is None:
            raise NotFoundError(f"secret {name} not found", operation="get")
        return copy.deepcopy(secret)

    def delete(self, name: str) -> None:
        self.faults.check("delete")
        if self.secrets.pop(name, None) is None:
            raise NotFoundError(f"secret {name} not found", operation="delete")
