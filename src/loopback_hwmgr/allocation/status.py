"""
Status projection.

After a node is allocated its resource status is filled from the catalog:
BMC address and credentials reference, network interfaces, hardware profile,
and a Provisioned condition set to True.

Only those fields are written. Everything else in status is taken from the
freshly fetched object, and a conflict causes a refetch and reapply.
"""

from __future__ import annotations

import copy
import logging

from loopback_hwmgr.core.conditions import is_condition_true, set_condition
from loopback_hwmgr.core.errors import HwMgrError
from loopback_hwmgr.core.retry import DEFAULT_RETRY, RetryPolicy
from loopback_hwmgr.core.types import (
    BmcReference,
    ConditionReason,
    ConditionStatus,
    ConditionType,
    NodeInfo,
    NodeResource,
)
from loopback_hwmgr.resources.base import ObjectClient
from loopback_hwmgr.resources.credentials import bmc_secret_name
from loopback_hwmgr.resources.ops import update_status_with_retry

LOGGER = logging.getLogger(__name__)


def is_node_provisioned(node: NodeResource) -> bool:
    return is_condition_true(node.status.conditions, ConditionType.provisioned)


class StatusProjection:
    """Project catalog attributes onto node resource status."""

    def __init__(self, nodes: ObjectClient[NodeResource], retry: RetryPolicy | None = None) -> None:
        self._nodes = nodes
        self._retry = retry or DEFAULT_RETRY

    def update_node_status(self, node: str, info: NodeInfo, hw_profile: str) -> NodeResource:
        LOGGER.info(f"Updating status of node {node}")

        def _apply(obj: NodeResource) -> None:
            obj.status.bmc = BmcReference(
                address=info.bmc.address,
                credentials_name=bmc_secret_name(node),
            )
            obj.status.interfaces = copy.deepcopy(info.interfaces)
            obj.status.hw_profile = hw_profile
            set_condition(
                obj.status.conditions,
                ConditionType.provisioned,
                ConditionReason.completed,
                ConditionStatus.true,
                "Provisioned",
            )

        try:
            return update_status_with_retry(self._nodes, node, _apply, self._retry)
        except HwMgrError as err:
            raise err.with_context(node=node, operation="update node status") from err
