"""
Node resource operations.

Creation is idempotent: an existing node resource with the same name is
reused, so a retried allocation converges after a partial failure.
"""

from __future__ import annotations

import logging

from loopback_hwmgr.core.errors import HwMgrError
from loopback_hwmgr.core.types import NodeResource
from loopback_hwmgr.resources.base import ObjectClient
from loopback_hwmgr.resources.ops import create_or_get, delete_ignore_not_found

LOGGER = logging.getLogger(__name__)


def create_node(
    client: ObjectClient[NodeResource],
    cloud_id: str,
    node: str,
    group: str,
    hw_profile: str,
) -> NodeResource:
    LOGGER.info(f"Creating node {node} for cloud {cloud_id} nodegroup {group}")

    try:
        obj, created = create_or_get(
            client,
            NodeResource(name=node, pool_request=cloud_id, group_name=group, hw_profile=hw_profile),
        )
    except HwMgrError as err:
        raise err.with_context(node=node, group=group, operation="create node") from err

    if not created:
        LOGGER.info(f"Node {node} already exists, reusing it")
    return obj


def delete_node(client: ObjectClient[NodeResource], node: str) -> None:
    LOGGER.info(f"Deleting node {node}")
    try:
        delete_ignore_not_found(client, node)
    except HwMgrError as err:
        raise err.with_context(node=node, operation="delete node") from err
