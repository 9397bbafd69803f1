"""
YAML codec for the inventory sub documents.

resources schema example

resourcepools:
  - master
  - worker
nodes:
  node-0:
    poolID: master
    bmc:
      address: "redfish+https://192.168.2.10/redfish/v1/Systems/1"
      username-base64: YWRtaW4=
      password-base64: cGFzc3dvcmQ=
    interfaces:
      - name: eth0
        label: bootable-interface
        macAddress: "c6:b6:13:a0:02:00"

allocations schema example

clouds:
  - cloudID: cloud-1
    nodegroups:
      controller:
        - node-0

Pool membership follows the order of the nodes mapping.
PyYAML keeps mapping order, which makes allocation order reproducible.
"""

from __future__ import annotations

from typing import Any

import yaml

from loopback_hwmgr.core.errors import PersistenceError
from loopback_hwmgr.core.types import (
    AllocationLedger,
    BmcInfo,
    CloudAllocation,
    NetworkInterface,
    NodeInfo,
    ResourceCatalog,
)


def _load_mapping(text: str, what: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text) if text else None
    except yaml.YAMLError as err:
        raise PersistenceError(f"unable to parse {what} document: {err}", operation="parse") from err

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PersistenceError(f"{what} document must be a mapping", operation="parse")
    return data


def _interface_from_dict(obj: dict[str, Any]) -> NetworkInterface:
    return NetworkInterface(
        name=str(obj.get("name", "")),
        label=str(obj.get("label", "")),
        mac_address=str(obj.get("macAddress", "")),
    )


def _node_from_dict(obj: dict[str, Any]) -> NodeInfo:
    bmc_obj = obj.get("bmc", {}) or {}
    node = NodeInfo(
        pool_id=str(obj.get("poolID", "")),
        bmc=BmcInfo(
            address=str(bmc_obj.get("address", "")),
            username_base64=str(bmc_obj.get("username-base64", "")),
            password_base64=str(bmc_obj.get("password-base64", "")),
        ),
    )
    for raw in obj.get("interfaces", []) or []:
        if isinstance(raw, dict):
            node.interfaces.append(_interface_from_dict(raw))
    return node


def catalog_from_yaml(text: str) -> ResourceCatalog:
    """Parse the resources sub document into a ResourceCatalog."""
    data = _load_mapping(text, "resources")

    catalog = ResourceCatalog()
    for pool_id in data.get("resourcepools", []) or []:
        catalog.resource_pools.setdefault(str(pool_id), [])

    nodes = data.get("nodes", {}) or {}
    if not isinstance(nodes, dict):
        raise PersistenceError("resources.nodes must be a mapping", operation="parse")

    for name, raw in nodes.items():
        if not isinstance(raw, dict):
            continue
        node = _node_from_dict(raw)
        catalog.nodes[str(name)] = node
        catalog.resource_pools.setdefault(node.pool_id, []).append(str(name))

    return catalog


def catalog_to_yaml(catalog: ResourceCatalog) -> str:
    """Render a ResourceCatalog, used by tests and the CLI to seed inventories."""
    nodes: dict[str, Any] = {}
    for name, info in catalog.nodes.items():
        nodes[name] = {
            "poolID": info.pool_id,
            "bmc": {
                "address": info.bmc.address,
                "username-base64": info.bmc.username_base64,
                "password-base64": info.bmc.password_base64,
            },
            "interfaces": [
                {"name": i.name, "label": i.label, "macAddress": i.mac_address}
                for i in info.interfaces
            ],
        }
    payload = {"resourcepools": list(catalog.resource_pools.keys()), "nodes": nodes}
    return yaml.safe_dump(payload, sort_keys=False)


def ledger_from_yaml(text: str) -> AllocationLedger:
    """Parse the allocations sub document. Empty text is an empty ledger."""
    data = _load_mapping(text, "allocations")

    ledger = AllocationLedger()
    for raw in data.get("clouds", []) or []:
        if not isinstance(raw, dict):
            continue
        groups = raw.get("nodegroups", {}) or {}
        ledger.clouds.append(
            CloudAllocation(
                cloud_id=str(raw.get("cloudID", "")),
                node_groups={str(g): [str(n) for n in (names or [])] for g, names in groups.items()},
            )
        )
    return ledger


def ledger_to_yaml(ledger: AllocationLedger) -> str:
    """Serialize the full ledger. The whole document is written back on every save."""
    payload = {
        "clouds": [
            {
                "cloudID": cloud.cloud_id,
                "nodegroups": {g: list(names) for g, names in cloud.node_groups.items()},
            }
            for cloud in ledger.clouds
        ]
    }
    return yaml.safe_dump(payload, sort_keys=False)
