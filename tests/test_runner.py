from __future__ import annotations

import argparse
import json
from pathlib import Path

from conftest import Harness, make_catalog

from loopback_hwmgr.__main__ import build_runner
from loopback_hwmgr.adaptor.result import MEDIUM_INTERVAL_SECONDS, SHORT_INTERVAL_SECONDS
from loopback_hwmgr.adaptor.runner import AdaptorRunner
from loopback_hwmgr.config import AdaptorConfig
from loopback_hwmgr.core.errors import DecodeError
from loopback_hwmgr.core.serialization import catalog_to_yaml
from loopback_hwmgr.inventory.file_store import FileInventoryStore, write_inventory_file
from loopback_hwmgr.inventory.store import RESOURCES_KEY
from loopback_hwmgr.sources.source import StaticPoolRequestSource, sync_pool_requests


def _write_requests(path: Path, size: int, include: bool = True) -> None:
    if not include:
        path.write_text("poolrequests: []\n", encoding="utf-8")
        return
    path.write_text(
        "poolrequests:\n"
        "  - name: cluster-1\n"
        "    nodegroups:\n"
        "      - name: controller\n"
        "        resourcePoolId: P1\n"
        f"        size: {size}\n"
        "        hwProfile: profile-64G\n",
        encoding="utf-8",
    )


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _runner(harness: Harness, requests_file: Path, clock: _Clock, **config_kwargs: object) -> AdaptorRunner:
    return AdaptorRunner(
        adaptor=harness.adaptor(),
        pool_requests=harness.pool_requests,
        source=StaticPoolRequestSource(path=requests_file),
        config=AdaptorConfig(**config_kwargs),  # type: ignore[arg-type]
        clock=clock,
    )


def test_static_source_reads_pool_requests(tmp_path: Path):
    requests_file = tmp_path / "poolrequests.yaml"
    _write_requests(requests_file, size=2)

    requests = StaticPoolRequestSource(path=requests_file).fetch()

    assert len(requests) == 1
    assert requests[0].name == "cluster-1"
    assert requests[0].cloud_id == "cluster-1"
    spec = requests[0].node_groups[0]
    assert (spec.name, spec.resource_pool_id) == ("controller", "P1")
    assert (spec.size, spec.hw_profile) == (2, "profile-64G")


def test_sync_bumps_generation_only_on_spec_change(harness: Harness, tmp_path: Path):
    requests_file = tmp_path / "poolrequests.yaml"
    _write_requests(requests_file, size=2)
    source = StaticPoolRequestSource(path=requests_file)

    sync_pool_requests(source.fetch(), harness.pool_requests)
    sync_pool_requests(source.fetch(), harness.pool_requests)
    assert harness.pool_requests.get("cluster-1").generation == 1

    _write_requests(requests_file, size=3)
    sync_pool_requests(source.fetch(), harness.pool_requests)
    assert harness.pool_requests.get("cluster-1").generation == 2

    _write_requests(requests_file, size=3, include=False)
    sync_pool_requests(source.fetch(), harness.pool_requests)
    assert harness.pool_requests.get("cluster-1").deletion_requested


def test_runner_requeues_until_provisioned_then_releases(harness: Harness, tmp_path: Path):
    requests_file = tmp_path / "poolrequests.yaml"
    audit_file = tmp_path / "audit" / "reconcile.jsonl"
    _write_requests(requests_file, size=2)
    clock = _Clock()
    runner = _runner(harness, requests_file, clock, workers=2, audit_log=audit_file)

    results = runner.run_cycle()
    assert list(results) == ["cluster-1"]
    assert results["cluster-1"].requeue_after == SHORT_INTERVAL_SECONDS
    assert harness.nodes.names() == ["n1"]

    # not due before the requeue interval elapses
    assert runner.run_cycle() == {}

    clock.now += SHORT_INTERVAL_SECONDS
    results = runner.run_cycle()
    assert results["cluster-1"].ok
    assert not results["cluster-1"].requeue
    assert harness.pool_requests.get("cluster-1").status.node_names == ["n1", "n2"]

    clock.now += 3600
    assert runner.run_cycle() == {}

    _write_requests(requests_file, size=2, include=False)
    results = runner.run_cycle()
    assert results["cluster-1"].ok
    assert harness.pool_requests.names() == []
    assert harness.nodes.names() == []
    assert harness.inventory.load().ledger.clouds == []

    lines = audit_file.read_text(encoding="utf-8").splitlines()
    events = [json.loads(line) for line in lines]
    assert [e["deletion"] for e in events] == [False, False, True]
    assert all(e["pool_request"] == "cluster-1" for e in events)
    assert [e["node_names"] for e in events] == [[], ["n1", "n2"], []]
    assert [e["requeue_after"] for e in events] == [SHORT_INTERVAL_SECONDS, None, None]
    assert all(e["error_type"] is None and e["ts_unix"] > 0 for e in events)


def test_runner_reconciles_spec_change(harness: Harness, tmp_path: Path):
    requests_file = tmp_path / "poolrequests.yaml"
    _write_requests(requests_file, size=1)
    clock = _Clock()
    runner = _runner(harness, requests_file, clock)

    assert runner.run_cycle()["cluster-1"].ok
    assert harness.pool_requests.get("cluster-1").status.node_names == ["n1"]

    _write_requests(requests_file, size=2)
    results = runner.run_cycle()

    assert results["cluster-1"].ok
    request = harness.pool_requests.get("cluster-1")
    assert request.status.node_names == ["n1", "n2"]
    assert request.status.observed_generation == 2


def test_cli_runner_allocates_from_inventory_file(tmp_path: Path):
    inventory_file = tmp_path / "nodelist.yaml"
    requests_file = tmp_path / "poolrequests.yaml"
    write_inventory_file(inventory_file, catalog_to_yaml(make_catalog({"P1": ["n1", "n2"]})))
    _write_requests(requests_file, size=2)

    args = argparse.Namespace(inventory=inventory_file, requests=requests_file)
    config = AdaptorConfig(provision_delay_seconds=0.0, max_new_allocations_per_invocation=None)
    results = build_runner(args, config).run_cycle()

    assert results["cluster-1"].ok
    ledger = FileInventoryStore(path=inventory_file).load().ledger
    assert ledger.nodes_for("cluster-1", "controller") == ["n1", "n2"]


def test_request_converges_after_catalog_credentials_are_fixed(harness: Harness, tmp_path: Path):
    pools = {"P1": ["n1", "n2", "n3"], "P2": ["m1"]}
    broken = make_catalog(pools)
    broken.nodes["n1"].bmc.username_base64 = "%%%"
    harness.inventory.data[RESOURCES_KEY] = catalog_to_yaml(broken)

    requests_file = tmp_path / "poolrequests.yaml"
    _write_requests(requests_file, size=1)
    clock = _Clock()
    runner = _runner(harness, requests_file, clock)

    results = runner.run_cycle()
    assert isinstance(results["cluster-1"].error, DecodeError)
    assert results["cluster-1"].requeue_after == MEDIUM_INTERVAL_SECONDS
    assert harness.nodes.names() == []

    harness.inventory.data[RESOURCES_KEY] = catalog_to_yaml(make_catalog(pools))
    clock.now += 3600

    results = runner.run_cycle()

    assert results["cluster-1"].ok
    assert harness.pool_requests.get("cluster-1").status.node_names == ["n1"]
    assert harness.nodes.names() == ["n1"]
