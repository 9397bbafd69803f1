"""
Core types.

This file defines the shared data structures used across the adaptor.

Two groups of types live here.

Inventory types
ResourceCatalog and AllocationLedger describe the physical nodes and which of
them are assigned to which cloud and node group. They are persisted as YAML
sub documents inside one inventory record.

Object types
PoolRequest, NodeResource and CredentialObject model the externally owned
objects the adaptor reads and writes through an object store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class ConditionStatus(StrEnum):
    true = "True"
    false = "False"
    unknown = "Unknown"


class ConditionType(StrEnum):
    provisioned = "Provisioned"


class ConditionReason(StrEnum):
    """
    Reasons recorded on the Provisioned condition.

    in_progress
      Allocation is under way, more invocations are needed.

    completed
      Every node group is satisfied.

    failed
      The last invocation failed. The request is retried later.
    """

    in_progress = "InProgress"
    completed = "Completed"
    failed = "Failed"


@dataclass
class Condition:
    """
    A named status condition.

    last_transition_time only moves when status changes, see set_condition.
    """

    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    last_transition_time: float = 0.0


# ---------------------------
# INVENTORY
# ---------------------------


@dataclass
class BmcInfo:
    """
    BMC access for a physical node.

    username_base64 and password_base64 are stored encoded in the catalog and
    decoded only when the credential object is created.
    """

    address: str
    username_base64: str
    password_base64: str


@dataclass
class NetworkInterface:
    name: str
    label: str = ""
    mac_address: str = ""


@dataclass
class NodeInfo:
    """Catalog entry for one physical node."""

    pool_id: str
    bmc: BmcInfo
    interfaces: list[NetworkInterface] = field(default_factory=list)


@dataclass
class ResourceCatalog:
    """
    All known physical nodes.

    resource_pools maps a pool id to its node names in catalog order.
    The order is what makes allocation reproducible across runs.
    """

    resource_pools: dict[str, list[str]] = field(default_factory=dict)
    nodes: dict[str, NodeInfo] = field(default_factory=dict)

    def pool_members(self, pool_id: str) -> list[str]:
        return list(self.resource_pools.get(pool_id, []))


@dataclass
class CloudAllocation:
    """Node groups of one cloud, each an ordered list of node names."""

    cloud_id: str
    node_groups: dict[str, list[str]] = field(default_factory=dict)


@dataclass
class AllocationLedger:
    """
    Persisted record of which nodes are assigned where.

    One CloudAllocation per cloud. A node name may appear at most once across
    the whole ledger.
    """

    clouds: list[CloudAllocation] = field(default_factory=list)

    def find_cloud(self, cloud_id: str) -> CloudAllocation | None:
        for cloud in self.clouds:
            if cloud.cloud_id == cloud_id:
                return cloud
        return None

    def nodes_for(self, cloud_id: str, group: str) -> list[str]:
        """Return the nodes allocated to a group, empty when none."""
        cloud = self.find_cloud(cloud_id)
        if cloud is None:
            return []
        return list(cloud.node_groups.get(group, []))

    def append(self, cloud_id: str, group: str, node: str) -> None:
        """Allocate node to group, creating the cloud entry if needed."""
        cloud = self.find_cloud(cloud_id)
        if cloud is None:
            cloud = CloudAllocation(cloud_id=cloud_id)
            self.clouds.append(cloud)
        cloud.node_groups.setdefault(group, []).append(node)

    def remove_cloud(self, cloud_id: str) -> CloudAllocation | None:
        """Drop the cloud entry and return it, or None if it was absent."""
        for idx, cloud in enumerate(self.clouds):
            if cloud.cloud_id == cloud_id:
                return self.clouds.pop(idx)
        return None

    def allocated_node_names(self) -> set[str]:
        names: set[str] = set()
        for cloud in self.clouds:
            for nodes in cloud.node_groups.values():
                names.update(nodes)
        return names

    def owner_of(self, node: str) -> tuple[str, str] | None:
        """Return (cloud_id, group) holding node, or None when it is free."""
        for cloud in self.clouds:
            for group, nodes in cloud.node_groups.items():
                if node in nodes:
                    return cloud.cloud_id, group
        return None

    def validate(self, catalog: ResourceCatalog) -> list[str]:
        """
        Check ledger invariants against the catalog.

        Returns human readable problems:
        nodes allocated more than once
        nodes that are not in the catalog
        """
        problems: list[str] = []
        seen: dict[str, str] = {}
        for cloud in self.clouds:
            for group, nodes in cloud.node_groups.items():
                where = f"{cloud.cloud_id}/{group}"
                for node in nodes:
                    if node in seen:
                        problems.append(f"node {node} allocated to both {seen[node]} and {where}")
                    else:
                        seen[node] = where
                    if node not in catalog.nodes:
                        problems.append(f"node {node} in {where} is not in the resource catalog")
        return problems


# ---------------------------
# OBJECTS
# ---------------------------


@dataclass
class NodeGroupSpec:
    """
    A named subset of a pool request.

    size is the desired node count drawn from resource_pool_id.
    """

    name: str
    resource_pool_id: str
    size: int
    hw_profile: str = ""


@dataclass
class PoolRequestStatus:
    conditions: list[Condition] = field(default_factory=list)
    observed_generation: int = 0
    node_names: list[str] = field(default_factory=list)


@dataclass
class PoolRequest:
    """
    A request for node groups on behalf of a cloud.

    generation is bumped by the request owner on every spec change.
    observed_generation in status records the last generation fully provisioned.
    """

    name: str
    cloud_id: str
    node_groups: list[NodeGroupSpec] = field(default_factory=list)
    generation: int = 1
    deletion_requested: bool = False
    status: PoolRequestStatus = field(default_factory=PoolRequestStatus)
    resource_version: int = 0


@dataclass
class BmcReference:
    address: str
    credentials_name: str


@dataclass
class NodeStatus:
    bmc: BmcReference | None = None
    interfaces: list[NetworkInterface] = field(default_factory=list)
    hw_profile: str = ""
    conditions: list[Condition] = field(default_factory=list)


@dataclass
class NodeResource:
    """
    An allocated node as seen by the requesting cloud.

    pool_request holds the owning cloud id.
    """

    name: str
    pool_request: str
    group_name: str
    hw_profile: str = ""
    status: NodeStatus = field(default_factory=NodeStatus)
    resource_version: int = 0


@dataclass
class CredentialObject:
    """Decoded BMC credentials for one node."""

    name: str
    data: dict[str, bytes] = field(default_factory=dict)
