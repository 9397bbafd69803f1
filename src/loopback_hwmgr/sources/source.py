"""
Pool request sources.

Goal
Provide pluggable pool request ingestion for the runner.

A source returns the desired set of pool requests. sync_pool_requests turns
that desired set into object store changes, the way a request owner would:
new requests are created, changed specs bump the generation, and requests
that disappeared are marked for deletion.

Schema example (YAML)

poolrequests:
  - name: cluster-1
    cloudID: cluster-1
    nodegroups:
      - name: controller
        resourcePoolId: master
        size: 3
        hwProfile: profile-spr-single-processor-64G
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yaml

from loopback_hwmgr.core.errors import NotFoundError
from loopback_hwmgr.core.types import NodeGroupSpec, PoolRequest
from loopback_hwmgr.resources.base import ObjectClient

LOGGER = logging.getLogger(__name__)


class PoolRequestSource(Protocol):
    """
    Pool request source interface.

    fetch returns the full desired set of pool requests.
    """

    def fetch(self) -> list[PoolRequest]:
        """Fetch the desired pool requests."""


def _group_from_dict(obj: dict[str, Any]) -> NodeGroupSpec:
    return NodeGroupSpec(
        name=str(obj.get("name", "")),
        resource_pool_id=str(obj.get("resourcePoolId", "")),
        size=int(obj.get("size", 0) or 0),
        hw_profile=str(obj.get("hwProfile", "")),
    )


def _request_from_dict(obj: dict[str, Any]) -> PoolRequest:
    """Convert a dict into PoolRequest. cloudID defaults to the name."""
    name = str(obj["name"])
    groups = obj.get("nodegroups", []) or []
    return PoolRequest(
        name=name,
        cloud_id=str(obj.get("cloudID") or name),
        node_groups=[_group_from_dict(g) for g in groups if isinstance(g, dict)],
    )


@dataclass(frozen=True)
class StaticPoolRequestSource(PoolRequestSource):
    """Load pool requests from a local YAML file."""

    path: Path

    def fetch(self) -> list[PoolRequest]:
        data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}

        if isinstance(data, dict) and "poolrequests" in data:
            raw = data.get("poolrequests", []) or []
            return [_request_from_dict(x) for x in raw if isinstance(x, dict)]

        if isinstance(data, dict):
            return [_request_from_dict(data)]

        return []


def sync_pool_requests(desired: list[PoolRequest], client: ObjectClient[PoolRequest]) -> None:
    """Apply the desired request set to the object store."""
    wanted = {r.name: r for r in desired}

    for request in desired:
        try:
            current = client.get(request.name)
        except NotFoundError:
            LOGGER.info(f"new pool request {request.name}")
            client.create(request)
            continue

        if current.cloud_id != request.cloud_id or current.node_groups != request.node_groups:
            LOGGER.info(f"pool request {request.name} spec changed")
            current.cloud_id = request.cloud_id
            current.node_groups = request.node_groups
            current.generation += 1
            client.update(current)

    for current in client.list():
        if current.name not in wanted and not current.deletion_requested:
            LOGGER.info(f"pool request {current.name} removed, marking for deletion")
            current.deletion_requested = True
            client.update(current)
