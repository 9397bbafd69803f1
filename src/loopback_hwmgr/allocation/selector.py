"""
Free node selection.

A node is free when no ledger entry lists it, in any cloud or group.
The result keeps catalog order. The engine always takes the first entry, so
repeated runs against the same catalog allocate in the same order.
"""

from __future__ import annotations

from loopback_hwmgr.core.types import AllocationLedger, ResourceCatalog


def get_free_nodes_in_pool(
    catalog: ResourceCatalog,
    ledger: AllocationLedger,
    pool_id: str,
) -> list[str]:
    """Return free nodes of pool_id in catalog order. Unknown pools have none."""
    in_use = ledger.allocated_node_names()
    return [name for name in catalog.pool_members(pool_id) if name not in in_use]
