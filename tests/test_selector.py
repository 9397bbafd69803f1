from conftest import make_catalog

from loopback_hwmgr.allocation.selector import get_free_nodes_in_pool
from loopback_hwmgr.core.types import AllocationLedger, CloudAllocation


def test_free_nodes_exclude_every_ledger_entry_and_keep_catalog_order():
    catalog = make_catalog({"P1": ["n1", "n2", "n3", "n4"], "P2": ["m1"]})
    ledger = AllocationLedger(
        clouds=[
            CloudAllocation(cloud_id="c1", node_groups={"g1": ["n2"]}),
            CloudAllocation(cloud_id="c2", node_groups={"g1": ["n4"], "g2": ["m1"]}),
        ]
    )

    assert get_free_nodes_in_pool(catalog, ledger, "P1") == ["n1", "n3"]
    assert get_free_nodes_in_pool(catalog, ledger, "P2") == []


def test_unknown_pool_has_no_free_nodes():
    catalog = make_catalog({"P1": ["n1"]})
    assert get_free_nodes_in_pool(catalog, AllocationLedger(), "missing") == []


def test_free_nodes_are_a_subset_of_the_pool_for_any_allocation():
    catalog = make_catalog({"P1": ["n1", "n2", "n3"], "P2": ["m1", "m2"]})
    all_nodes = ["n1", "n2", "n3", "m1", "m2"]

    for mask in range(1 << len(all_nodes)):
        used = [n for i, n in enumerate(all_nodes) if mask & (1 << i)]
        ledger = AllocationLedger(clouds=[CloudAllocation(cloud_id="c", node_groups={"g": used})])

        for pool_id in ("P1", "P2"):
            free = get_free_nodes_in_pool(catalog, ledger, pool_id)
            assert set(free) <= set(catalog.resource_pools[pool_id])
            assert not set(free) & set(used)
            assert set(free) | (set(used) & set(catalog.resource_pools[pool_id])) == set(
                catalog.resource_pools[pool_id]
            )
