from __future__ import annotations

import base64
from dataclasses import dataclass

import pytest

from loopback_hwmgr.adaptor.adaptor import LoopbackAdaptor
from loopback_hwmgr.allocation.engine import AllocationEngine
from loopback_hwmgr.allocation.policy import AllocationPolicy, NoDelay
from loopback_hwmgr.allocation.release import ReleaseEngine
from loopback_hwmgr.core.retry import RetryPolicy
from loopback_hwmgr.core.serialization import catalog_to_yaml
from loopback_hwmgr.core.types import (
    BmcInfo,
    NetworkInterface,
    NodeGroupSpec,
    NodeInfo,
    NodeResource,
    PoolRequest,
    ResourceCatalog,
)
from loopback_hwmgr.inventory.store import InMemoryInventoryStore
from loopback_hwmgr.resources.memory import InMemoryCredentialStore, InMemoryObjectStore

FAST_RETRY = RetryPolicy(steps=5, duration_seconds=0.0, jitter=0.0)


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def make_catalog(pools: dict[str, list[str]]) -> ResourceCatalog:
    catalog = ResourceCatalog()
    for idx, (pool_id, names) in enumerate(pools.items()):
        catalog.resource_pools[pool_id] = []
        for jdx, name in enumerate(names):
            catalog.resource_pools[pool_id].append(name)
            catalog.nodes[name] = NodeInfo(
                pool_id=pool_id,
                bmc=BmcInfo(
                    address=f"redfish+https://192.168.{idx}.{jdx}/redfish/v1/Systems/1",
                    username_base64=b64("admin"),
                    password_base64=b64(f"secret-{name}"),
                ),
                interfaces=[
                    NetworkInterface(
                        name="eth0",
                        label="bootable-interface",
                        mac_address=f"c6:b6:13:a0:{idx:02x}:{jdx:02x}",
                    )
                ],
            )
    return catalog


def make_store(pools: dict[str, list[str]], allocations: str = "") -> InMemoryInventoryStore:
    return InMemoryInventoryStore.from_documents(catalog_to_yaml(make_catalog(pools)), allocations)


def make_request(name: str = "pool1", *groups: NodeGroupSpec, cloud_id: str | None = None) -> PoolRequest:
    return PoolRequest(name=name, cloud_id=cloud_id or name, node_groups=list(groups))


def group(name: str, pool: str, size: int, hw_profile: str = "profile-64G") -> NodeGroupSpec:
    return NodeGroupSpec(name=name, resource_pool_id=pool, size=size, hw_profile=hw_profile)


@dataclass
class Harness:
    inventory: InMemoryInventoryStore
    nodes: InMemoryObjectStore[NodeResource]
    pool_requests: InMemoryObjectStore[PoolRequest]
    credentials: InMemoryCredentialStore

    def engine(self, **policy_kwargs: object) -> AllocationEngine:
        policy_kwargs.setdefault("delay", NoDelay())
        return AllocationEngine(
            inventory=self.inventory,
            nodes=self.nodes,
            credentials=self.credentials,
            policy=AllocationPolicy(**policy_kwargs),  # type: ignore[arg-type]
            retry=FAST_RETRY,
        )

    def release_engine(self) -> ReleaseEngine:
        return ReleaseEngine(
            inventory=self.inventory,
            nodes=self.nodes,
            credentials=self.credentials,
            retry=FAST_RETRY,
        )

    def adaptor(self) -> LoopbackAdaptor:
        return LoopbackAdaptor(
            pool_requests=self.pool_requests,
            nodes=self.nodes,
            credentials=self.credentials,
            inventory=self.inventory,
            policy=AllocationPolicy(delay=NoDelay()),
            retry=FAST_RETRY,
        )


@pytest.fixture()
def harness() -> Harness:
    return Harness(
        inventory=make_store({"P1": ["n1", "n2", "n3"], "P2": ["m1"]}),
        nodes=InMemoryObjectStore("Node", "hwmgr"),
        pool_requests=InMemoryObjectStore("PoolRequest", "hwmgr"),
        credentials=InMemoryCredentialStore(namespace="hwmgr"),
    )
