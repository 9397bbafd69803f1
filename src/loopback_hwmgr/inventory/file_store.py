"""
File backed inventory store.

Reads a local YAML file holding the inventory record:

resources: |
  resourcepools: [master]
  nodes: {...}
allocations: |
  clouds: []

Each sub document is stored as a YAML string so the record keeps the same
shape as a keyed document store entry.

The version token is a hash of the file content. Saves take a FileLock on a
sibling lock file, so several adaptor processes can share one inventory file.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from filelock import FileLock, Timeout

from loopback_hwmgr.core.errors import LedgerConflictError, PersistenceError
from loopback_hwmgr.core.serialization import catalog_from_yaml, ledger_from_yaml, ledger_to_yaml
from loopback_hwmgr.core.types import AllocationLedger
from loopback_hwmgr.inventory.store import (
    ALLOCATIONS_KEY,
    RESOURCES_KEY,
    InventorySnapshot,
    InventoryStore,
)

LOGGER = logging.getLogger(__name__)

# Suppress messages from filelock
logging.getLogger("filelock").setLevel(logging.WARNING)


def _content_token(raw: bytes) -> str:
    return hashlib.sha256(raw).hexdigest()


@dataclass(frozen=True)
class FileInventoryStore(InventoryStore):
    """
    Inventory record kept in a YAML file.

    path points to the record file.
    lock_timeout_seconds bounds how long save waits for other writers.
    """

    path: Path
    lock_timeout_seconds: float = 10.0

    @property
    def lock_path(self) -> Path:
        return self.path.with_name(self.path.name + ".lock")

    def _read(self) -> tuple[dict[str, Any], str]:
        try:
            raw = self.path.read_bytes()
        except OSError as err:
            raise PersistenceError(
                f"unable to read inventory file {self.path}: {err}",
                operation="load",
            ) from err

        try:
            record = yaml.safe_load(raw) or {}
        except yaml.YAMLError as err:
            raise PersistenceError(
                f"unable to parse inventory file {self.path}: {err}",
                operation="load",
            ) from err

        if not isinstance(record, dict):
            raise PersistenceError(f"inventory file {self.path} must hold a mapping", operation="load")
        return record, _content_token(raw)

    def load(self) -> InventorySnapshot:
        record, token = self._read()
        return InventorySnapshot(
            catalog=catalog_from_yaml(str(record.get(RESOURCES_KEY, "") or "")),
            ledger=ledger_from_yaml(str(record.get(ALLOCATIONS_KEY, "") or "")),
            token=token,
        )

    def save(self, ledger: AllocationLedger, token: str) -> str:
        try:
            with FileLock(str(self.lock_path), timeout=self.lock_timeout_seconds):
                record, current = self._read()
                if current != token:
                    raise LedgerConflictError(
                        f"inventory file {self.path} changed since it was loaded",
                        operation="save allocations",
                    )

                record[ALLOCATIONS_KEY] = ledger_to_yaml(ledger)
                raw = yaml.safe_dump(record, sort_keys=False).encode("utf-8")
                self._replace(raw)
        except Timeout as err:
            raise PersistenceError(
                f"timed out waiting for inventory lock {self.lock_path}",
                operation="save allocations",
            ) from err

        LOGGER.debug(f"saved allocations to {self.path}")
        return _content_token(raw)

    def _replace(self, raw: bytes) -> None:
        """Write raw to a temp file and atomically move it over the record."""
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(raw)
            os.replace(tmp_name, self.path)
        except OSError as err:
            Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(
                f"unable to write inventory file {self.path}: {err}",
                operation="save allocations",
            ) from err


def write_inventory_file(path: Path, resources: str, allocations: str = "") -> None:
    """Create an inventory record file from raw sub documents."""
    record = {RESOURCES_KEY: resources, ALLOCATIONS_KEY: allocations}
    path.write_text(yaml.safe_dump(record, sort_keys=False), encoding="utf-8")
