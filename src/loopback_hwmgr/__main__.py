"""
Command line entrypoint.

python -m loopback_hwmgr --inventory nodelist.yaml --requests poolrequests.yaml

The inventory file is shared and may be used by several processes at once.
Node resources, bmc secrets and pool requests live in memory for the lifetime
of the process, standing in for the external object store.
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
from pathlib import Path

from loopback_hwmgr.adaptor.adaptor import LoopbackAdaptor
from loopback_hwmgr.adaptor.runner import AdaptorRunner
from loopback_hwmgr.config import AdaptorConfig
from loopback_hwmgr.core.types import NodeResource, PoolRequest
from loopback_hwmgr.inventory.file_store import FileInventoryStore
from loopback_hwmgr.resources.memory import InMemoryCredentialStore, InMemoryObjectStore
from loopback_hwmgr.sources.source import StaticPoolRequestSource

LOGGER = logging.getLogger("loopback_hwmgr")


def get_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Loopback hardware manager adaptor")
    parser.add_argument(
        "-i",
        "--inventory",
        type=Path,
        help="Inventory record file (default: <inventory name>.yaml)",
    )
    parser.add_argument(
        "-r",
        "--requests",
        type=Path,
        required=True,
        help="YAML file with the desired pool requests",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconcile cycle and exit",
    )
    parser.add_argument(
        "--delay",
        type=float,
        help="Override the simulated provisioning delay in seconds",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser.parse_args()


def build_runner(args: argparse.Namespace, config: AdaptorConfig) -> AdaptorRunner:
    inventory_path = args.inventory or Path(f"{config.inventory_name}.yaml")

    pool_requests: InMemoryObjectStore[PoolRequest] = InMemoryObjectStore("PoolRequest", config.namespace)
    nodes: InMemoryObjectStore[NodeResource] = InMemoryObjectStore("Node", config.namespace)

    adaptor = LoopbackAdaptor(
        pool_requests=pool_requests,
        nodes=nodes,
        credentials=InMemoryCredentialStore(namespace=config.namespace),
        inventory=FileInventoryStore(path=inventory_path),
        config=config,
    )
    return AdaptorRunner(
        adaptor=adaptor,
        pool_requests=pool_requests,
        source=StaticPoolRequestSource(path=args.requests),
        config=config,
    )


def main() -> int:
    args = get_args()
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=getattr(logging, args.log_level),
    )

    config = AdaptorConfig.from_env()
    if args.delay is not None:
        config = dataclasses.replace(config, provision_delay_seconds=args.delay)

    runner = build_runner(args, config)

    if args.once:
        results = runner.run_cycle()
        failed = [name for name, res in results.items() if not res.ok]
        LOGGER.info(f"reconciled {len(results)} pool requests, {len(failed)} failed")
        return 1 if failed else 0

    runner.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
