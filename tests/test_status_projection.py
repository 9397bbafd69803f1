from __future__ import annotations

import pytest
from conftest import FAST_RETRY, make_catalog

from loopback_hwmgr.allocation.status import StatusProjection, is_node_provisioned
from loopback_hwmgr.core.conditions import find_condition, set_condition
from loopback_hwmgr.core.errors import ConflictError, NotFoundError
from loopback_hwmgr.core.types import (
    Condition,
    ConditionReason,
    ConditionStatus,
    ConditionType,
    NodeResource,
)
from loopback_hwmgr.resources.memory import InMemoryObjectStore


def _store_with_node() -> InMemoryObjectStore[NodeResource]:
    nodes: InMemoryObjectStore[NodeResource] = InMemoryObjectStore("Node")
    nodes.create(NodeResource(name="n1", pool_request="cloud1", group_name="g1", hw_profile="profile-64G"))
    return nodes


def test_projection_copies_catalog_attributes():
    catalog = make_catalog({"P1": ["n1"]})
    nodes = _store_with_node()

    StatusProjection(nodes, FAST_RETRY).update_node_status("n1", catalog.nodes["n1"], "profile-64G")

    obj = nodes.get("n1")
    assert obj.status.bmc is not None
    assert obj.status.bmc.address == catalog.nodes["n1"].bmc.address
    assert obj.status.bmc.credentials_name == "n1-bmc-secret"
    assert obj.status.interfaces == catalog.nodes["n1"].interfaces
    assert obj.status.hw_profile == "profile-64G"

    cond = find_condition(obj.status.conditions, ConditionType.provisioned)
    assert cond is not None
    assert cond.status == ConditionStatus.true
    assert cond.reason == ConditionReason.completed
    assert is_node_provisioned(obj)


def test_projection_keeps_fields_written_by_others():
    catalog = make_catalog({"P1": ["n1"]})
    nodes = _store_with_node()

    # another writer sets its own condition between our fetch and write
    obj = nodes.get("n1")
    obj.status.conditions.append(Condition(type="Healthy", status=ConditionStatus.true, reason="Probe"))
    nodes.update_status(obj)
    nodes.faults.inject("update_status", ConflictError("stale"))

    StatusProjection(nodes, FAST_RETRY).update_node_status("n1", catalog.nodes["n1"], "profile-64G")

    types = [c.type for c in nodes.get("n1").status.conditions]
    assert types == ["Healthy", "Provisioned"]


def test_set_condition_keeps_transition_time_when_status_is_unchanged():
    conditions: list[Condition] = []
    set_condition(
        conditions, ConditionType.provisioned, ConditionReason.in_progress, ConditionStatus.false, "a"
    )
    first = conditions[0].last_transition_time

    set_condition(conditions, ConditionType.provisioned, ConditionReason.failed, ConditionStatus.false, "b")

    assert len(conditions) == 1
    assert conditions[0].last_transition_time == first
    assert conditions[0].reason == ConditionReason.failed
    assert conditions[0].message == "b"


def test_fetch_and_write_share_one_retry_budget():
    catalog = make_catalog({"P1": ["n1"]})
    nodes = _store_with_node()
    nodes.faults.inject("get", NotFoundError("lagging"), NotFoundError("lagging"))
    nodes.faults.inject("update_status", *[ConflictError("stale") for _ in range(10)])

    with pytest.raises(ConflictError):
        StatusProjection(nodes, FAST_RETRY).update_node_status("n1", catalog.nodes["n1"], "profile-64G")

    assert nodes.faults.calls["get"] == FAST_RETRY.steps
    assert nodes.faults.calls["update_status"] == FAST_RETRY.steps - 2
    assert not is_node_provisioned(nodes.get("n1"))
