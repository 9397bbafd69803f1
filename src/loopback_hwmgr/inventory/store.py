"""
Inventory store.

The inventory is one keyed record with two YAML sub documents:
resources    the ResourceCatalog, provisioned by an operator, read only here
allocations  the AllocationLedger, rewritten by the adaptor

load returns both parsed documents plus a version token.
save writes the allocations document only, and only when the token still
matches the stored version. A stale token raises LedgerConflictError, which
turns concurrent read modify write cycles into a retryable conflict instead of
a lost update.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Protocol

from loopback_hwmgr.core.errors import LedgerConflictError
from loopback_hwmgr.core.serialization import catalog_from_yaml, ledger_from_yaml, ledger_to_yaml
from loopback_hwmgr.core.types import AllocationLedger, ResourceCatalog

RESOURCES_KEY = "resources"
ALLOCATIONS_KEY = "allocations"


@dataclass(frozen=True)
class InventorySnapshot:
    """
    Parsed inventory at a point in time.

    token identifies the stored version and must be passed back to save.
    """

    catalog: ResourceCatalog
    ledger: AllocationLedger
    token: str


class InventoryStore(Protocol):
    """
    Inventory store interface.

    load returns a fresh snapshot on every call.
    save returns the token of the newly written version.
    """

    def load(self) -> InventorySnapshot:
        """Read and parse both sub documents."""

    def save(self, ledger: AllocationLedger, token: str) -> str:
        """Replace the allocations sub document if token is current."""


@dataclass
class InMemoryInventoryStore(InventoryStore):
    """
    In memory inventory record.

    data holds the raw sub documents keyed like the persisted record.
    version is a counter bumped on every successful save.

    This store is used for tests and local simulations.
    """

    data: dict[str, str] = field(default_factory=dict)
    version: int = 1
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @classmethod
    def from_documents(cls, resources: str, allocations: str = "") -> InMemoryInventoryStore:
        return cls(data={RESOURCES_KEY: resources, ALLOCATIONS_KEY: allocations})

    def load(self) -> InventorySnapshot:
        with self._lock:
            resources = self.data.get(RESOURCES_KEY, "")
            allocations = self.data.get(ALLOCATIONS_KEY, "")
            token = str(self.version)

        return InventorySnapshot(
            catalog=catalog_from_yaml(resources),
            ledger=ledger_from_yaml(allocations),
            token=token,
        )

    def save(self, ledger: AllocationLedger, token: str) -> str:
        text = ledger_to_yaml(ledger)
        with self._lock:
            if token != str(self.version):
                raise LedgerConflictError(
                    f"allocations were modified concurrently, "
                    f"token {token} is stale (current {self.version})",
                    operation="save allocations",
                )
            self.data[ALLOCATIONS_KEY] = text
            self.version += 1
            return str(self.version)
