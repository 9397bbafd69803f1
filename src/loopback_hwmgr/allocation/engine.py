"""
Allocation engine.

This engine assigns free catalog nodes to the node groups of a pool request.

Per node group, in declaration order
1) compute remaining demand from the ledger, skip satisfied groups
2) select free nodes in the group's resource pool
3) stop with InsufficientResources when the pool cannot cover the demand
4) allocate up to the policy limit, one node at a time:
   create the bmc secret, append to the ledger and save it,
   create the node resource, project its status

Failures are not rolled back. Every step is idempotent, so the next
invocation converges: nodes already in the ledger whose resources are missing
or not yet provisioned are completed before new demand is considered.

The provisioning delay runs once per call, before any state is read.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from loopback_hwmgr.allocation.policy import AllocationPolicy
from loopback_hwmgr.allocation.selector import get_free_nodes_in_pool
from loopback_hwmgr.allocation.status import StatusProjection, is_node_provisioned
from loopback_hwmgr.core.errors import (
    ConflictError,
    HwMgrError,
    InsufficientResources,
    LedgerConflictError,
    NotFoundError,
)
from loopback_hwmgr.core.retry import DEFAULT_RETRY, RetryPolicy, retry_on
from loopback_hwmgr.core.types import (
    AllocationLedger,
    NodeGroupSpec,
    NodeResource,
    PoolRequest,
    ResourceCatalog,
)
from loopback_hwmgr.inventory.store import InventorySnapshot, InventoryStore
from loopback_hwmgr.resources.base import CredentialClient, ObjectClient
from loopback_hwmgr.resources.credentials import create_bmc_secret
from loopback_hwmgr.resources.nodes import create_node

LOGGER = logging.getLogger(__name__)


class OutcomeKind(StrEnum):
    allocated = "Allocated"
    skipped = "Skipped"
    insufficient = "Insufficient"


@dataclass(frozen=True)
class GroupOutcome:
    """
    Result of one engine pass for one node group.

    nodes
    Nodes newly allocated in this pass.

    remaining
    Demand still open after this pass.
    """

    group: str
    kind: OutcomeKind
    nodes: list[str] = field(default_factory=list)
    remaining: int = 0
    detail: str = ""


@dataclass(frozen=True)
class AllocationResult:
    cloud_id: str
    outcomes: list[GroupOutcome]

    @property
    def allocated_nodes(self) -> list[str]:
        return [n for o in self.outcomes for n in o.nodes]

    @property
    def complete(self) -> bool:
        """True when every group had its full demand after this pass."""
        return all(o.remaining <= 0 for o in self.outcomes)


class AllocationEngine:
    """
    Allocation engine.

    inventory
    Holds the catalog and the shared ledger.

    nodes
    Node resource object store.

    credentials
    Credential object store.

    policy
    Throttling, shortage handling and provisioning delay.

    retry
    Budget for fetches, status writes and ledger conflicts.
    """

    def __init__(
        self,
        inventory: InventoryStore,
        nodes: ObjectClient[NodeResource],
        credentials: CredentialClient,
        policy: AllocationPolicy | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._inventory = inventory
        self._nodes = nodes
        self._credentials = credentials
        self._policy = policy or AllocationPolicy()
        self._retry = retry or DEFAULT_RETRY
        self._status = StatusProjection(nodes, self._retry)

    def allocate(self, request: PoolRequest) -> AllocationResult:
        """
        Run one allocation pass for request.

        Raises InsufficientResources when a group cannot be satisfied. The error
        carries the per group outcomes computed so far.
        """
        cloud_id = request.cloud_id

        self._policy.delay.wait()

        snapshot = self._load()
        catalog = snapshot.catalog
        ledger = snapshot.ledger
        token = snapshot.token

        outcomes: list[GroupOutcome] = []
        shortages: list[InsufficientResources] = []

        for group in request.node_groups:
            used = ledger.nodes_for(cloud_id, group.name)
            self._resume_group(cloud_id, group, used, catalog)

            remaining = group.size - len(used)
            if remaining <= 0:
                LOGGER.info(f"nodegroup {group.name} is fully allocated")
                outcomes.append(GroupOutcome(group=group.name, kind=OutcomeKind.skipped))
                continue

            free = get_free_nodes_in_pool(catalog, ledger, group.resource_pool_id)
            if remaining > len(free):
                detail = (
                    f"not enough free resources remaining in resource pool {group.resource_pool_id}: "
                    f"need {remaining}, free {len(free)}"
                )
                outcomes.append(
                    GroupOutcome(
                        group=group.name,
                        kind=OutcomeKind.insufficient,
                        remaining=remaining,
                        detail=detail,
                    )
                )
                shortage = InsufficientResources(
                    detail,
                    pool_id=group.resource_pool_id,
                    requested=remaining,
                    available=len(free),
                    outcomes=outcomes,
                    group=group.name,
                    operation="allocate",
                )
                if self._policy.abort_on_insufficient:
                    raise shortage
                shortages.append(shortage)
                continue

            allocated: list[str] = []
            for node in free[: self._policy.allocations_for(remaining)]:
                ledger, token = self._allocate_node(cloud_id, group, node, catalog, ledger, token)
                allocated.append(node)

            outcomes.append(
                GroupOutcome(
                    group=group.name,
                    kind=OutcomeKind.allocated,
                    nodes=allocated,
                    remaining=remaining - len(allocated),
                )
            )

        if shortages:
            groups = ", ".join(s.group or "" for s in shortages)
            first = shortages[0]
            raise InsufficientResources(
                f"not enough free resources for nodegroups {groups}",
                pool_id=first.pool_id,
                requested=first.requested,
                available=first.available,
                outcomes=outcomes,
                group=groups,
                operation="allocate",
            )

        return AllocationResult(cloud_id=cloud_id, outcomes=outcomes)

    def check_capacity(self, request: PoolRequest) -> None:
        """
        Verify that every group's open demand fits its pool.

        Used when a new request arrives, before any state is written.
        """
        snapshot = self._load()
        for group in request.node_groups:
            remaining = group.size - len(snapshot.ledger.nodes_for(request.cloud_id, group.name))
            if remaining <= 0:
                continue
            free = get_free_nodes_in_pool(snapshot.catalog, snapshot.ledger, group.resource_pool_id)
            if remaining > len(free):
                raise InsufficientResources(
                    f"not enough free resources in resource pool {group.resource_pool_id}: "
                    f"need {remaining}, free {len(free)}",
                    pool_id=group.resource_pool_id,
                    requested=remaining,
                    available=len(free),
                    group=group.name,
                    operation="check capacity",
                )

    def allocated_counts(self, request: PoolRequest) -> dict[str, int]:
        """Return the allocated node count per group of request."""
        ledger = self._inventory.load().ledger
        return {g.name: len(ledger.nodes_for(request.cloud_id, g.name)) for g in request.node_groups}

    def is_fully_allocated(self, request: PoolRequest) -> bool:
        counts = self.allocated_counts(request)
        return all(counts[g.name] >= g.size for g in request.node_groups)

    def allocated_nodes(self, request: PoolRequest) -> list[str]:
        """Return the request's allocated nodes in group declaration order."""
        ledger = self._inventory.load().ledger
        names: list[str] = []
        for group in request.node_groups:
            names.extend(ledger.nodes_for(request.cloud_id, group.name))
        return names

    def _load(self) -> InventorySnapshot:
        snapshot = self._inventory.load()
        for problem in snapshot.ledger.validate(snapshot.catalog):
            LOGGER.warning(f"allocation ledger inconsistency: {problem}")
        return snapshot

    def _allocate_node(
        self,
        cloud_id: str,
        group: NodeGroupSpec,
        node: str,
        catalog: ResourceCatalog,
        ledger: AllocationLedger,
        token: str,
    ) -> tuple[AllocationLedger, str]:
        info = catalog.nodes.get(node)
        if info is None:
            raise NotFoundError(
                f"unable to find nodeinfo for {node}",
                node=node,
                group=group.name,
                operation="allocate",
            )

        try:
            create_bmc_secret(self._credentials, node, info.bmc.username_base64, info.bmc.password_base64)
            ledger, token = self._commit(cloud_id, group, node, ledger, token)
            create_node(self._nodes, cloud_id, node, group.name, group.hw_profile)
            self._status.update_node_status(node, info, group.hw_profile)
        except HwMgrError as err:
            raise err.with_context(node=node, group=group.name, operation="allocate") from err

        LOGGER.info(f"Allocated node {node} to cloud {cloud_id} nodegroup {group.name}")
        return ledger, token

    def _commit(
        self,
        cloud_id: str,
        group: NodeGroupSpec,
        node: str,
        ledger: AllocationLedger,
        token: str,
    ) -> tuple[AllocationLedger, str]:
        """
        Append node to the group and save the whole ledger.

        On a stale token the ledger is reloaded and the append reapplied,
        provided the node is still free and the group still short.
        """
        current = ledger
        current_token = token

        def _attempt() -> tuple[AllocationLedger, str]:
            nonlocal current, current_token

            owner = current.owner_of(node)
            if owner is not None:
                raise ConflictError(
                    f"node {node} was allocated concurrently to {owner[0]}/{owner[1]}",
                    node=node,
                    group=group.name,
                    operation="save allocations",
                )
            if len(current.nodes_for(cloud_id, group.name)) >= group.size:
                raise ConflictError(
                    f"nodegroup {group.name} was satisfied concurrently",
                    node=node,
                    group=group.name,
                    operation="save allocations",
                )

            current.append(cloud_id, group.name, node)
            try:
                new_token = self._inventory.save(current, current_token)
            except LedgerConflictError:
                LOGGER.warning(f"allocations changed while allocating node {node}, reloading")
                fresh = self._inventory.load()
                current = fresh.ledger
                current_token = fresh.token
                raise
            return current, new_token

        return retry_on(self._retry, _attempt, (LedgerConflictError,))

    def _resume_group(
        self,
        cloud_id: str,
        group: NodeGroupSpec,
        used: list[str],
        catalog: ResourceCatalog,
    ) -> None:
        """
        Finish nodes already in the ledger whose provisioning was interrupted.

        A node counts as finished when its resource exists and is Provisioned.
        """
        for node in used:
            try:
                obj: NodeResource | None = self._nodes.get(node)
            except NotFoundError:
                obj = None
            except HwMgrError as err:
                raise err.with_context(node=node, group=group.name, operation="resume") from err

            if obj is not None and is_node_provisioned(obj):
                continue

            info = catalog.nodes.get(node)
            if info is None:
                LOGGER.warning(f"node {node} of nodegroup {group.name} is missing from the catalog")
                continue

            LOGGER.info(f"Resuming provisioning of node {node} in nodegroup {group.name}")
            try:
                create_bmc_secret(self._credentials, node, info.bmc.username_base64, info.bmc.password_base64)
                if obj is None:
                    create_node(self._nodes, cloud_id, node, group.name, group.hw_profile)
                self._status.update_node_status(node, info, group.hw_profile)
            except HwMgrError as err:
                raise err.with_context(node=node, group=group.name, operation="resume") from err
