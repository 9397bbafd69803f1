"""
Release engine.

Reverses allocation for a pool request being torn down:
delete every node resource and bmc secret recorded for the request's cloud,
then drop the cloud entry from the ledger so the nodes are free again.

Deletes treat not found as success, so a retried release converges.
The ledger update is retried with reload on a stale version token.
"""

from __future__ import annotations

import logging

from loopback_hwmgr.core.errors import HwMgrError, LedgerConflictError
from loopback_hwmgr.core.retry import DEFAULT_RETRY, RetryPolicy, retry_on
from loopback_hwmgr.core.types import NodeResource, PoolRequest
from loopback_hwmgr.inventory.store import InventoryStore
from loopback_hwmgr.resources.base import CredentialClient, ObjectClient
from loopback_hwmgr.resources.credentials import delete_bmc_secret
from loopback_hwmgr.resources.nodes import delete_node

LOGGER = logging.getLogger(__name__)


class ReleaseEngine:
    def __init__(
        self,
        inventory: InventoryStore,
        nodes: ObjectClient[NodeResource],
        credentials: CredentialClient,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._inventory = inventory
        self._nodes = nodes
        self._credentials = credentials
        self._retry = retry or DEFAULT_RETRY

    def release(self, request: PoolRequest) -> list[str]:
        """
        Release all nodes of request's cloud.

        Returns the released node names. A cloud without ledger entry releases
        nothing.
        """
        cloud_id = request.cloud_id

        cloud = self._inventory.load().ledger.find_cloud(cloud_id)
        if cloud is None:
            LOGGER.info(f"no allocated nodes found for cloud {cloud_id}")
            return []

        released: list[str] = []
        for group, names in cloud.node_groups.items():
            for node in names:
                try:
                    delete_bmc_secret(self._credentials, node)
                    delete_node(self._nodes, node)
                except HwMgrError as err:
                    raise err.with_context(node=node, group=group, operation="release") from err
                released.append(node)

        self._remove_cloud(cloud_id)
        LOGGER.info(f"Released {len(released)} nodes of cloud {cloud_id}")
        return released

    def _remove_cloud(self, cloud_id: str) -> None:
        def _attempt() -> None:
            snapshot = self._inventory.load()
            if snapshot.ledger.remove_cloud(cloud_id) is None:
                return
            self._inventory.save(snapshot.ledger, snapshot.token)

        try:
            retry_on(self._retry, _attempt, (LedgerConflictError,))
        except HwMgrError as err:
            raise err.with_context(operation="release allocations") from err
