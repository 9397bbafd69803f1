"""
Adaptor configuration.

Defaults suit a local simulation. from_env reads HWMGR_* variables so a
deployment can tune the adaptor without code changes:

HWMGR_NAMESPACE                 namespace of node, secret and request objects
HWMGR_INVENTORY_NAME            name of the inventory record
HWMGR_PROVISION_DELAY_SECONDS   simulated provisioning latency per call
HWMGR_MAX_NEW_ALLOCATIONS       new nodes per group per call, 0 for no limit
HWMGR_ABORT_ON_INSUFFICIENT     "0" evaluates every group before failing
HWMGR_INTERVAL_SECONDS          runner sleep between cycles
HWMGR_WORKERS                   concurrent reconciles in the runner
HWMGR_AUDIT_LOG                 optional JSON lines audit file
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from loopback_hwmgr.allocation.policy import AllocationPolicy, FixedDelay


def _env_bool(value: str) -> bool:
    return value.strip().lower() not in ("", "0", "false", "no")


@dataclass(frozen=True)
class AdaptorConfig:
    namespace: str = "loopback-hwmgr"
    inventory_name: str = "loopback-adaptor-nodelist"
    provision_delay_seconds: float = 10.0
    max_new_allocations_per_invocation: int | None = 1
    abort_on_insufficient: bool = True
    interval_seconds: float = 10.0
    workers: int = 4
    audit_log: Path | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AdaptorConfig:
        env = os.environ if environ is None else environ
        defaults = cls()

        max_new = int(
            env.get("HWMGR_MAX_NEW_ALLOCATIONS") or defaults.max_new_allocations_per_invocation or 0
        )
        workers = int(env.get("HWMGR_WORKERS") or defaults.workers)
        if workers < 1:
            msg = f"Invalid HWMGR_WORKERS: {workers}"
            raise ValueError(msg)

        audit_log = env.get("HWMGR_AUDIT_LOG") or ""

        return cls(
            namespace=env.get("HWMGR_NAMESPACE") or defaults.namespace,
            inventory_name=env.get("HWMGR_INVENTORY_NAME") or defaults.inventory_name,
            provision_delay_seconds=float(
                env.get("HWMGR_PROVISION_DELAY_SECONDS") or defaults.provision_delay_seconds
            ),
            max_new_allocations_per_invocation=max_new if max_new > 0 else None,
            abort_on_insufficient=_env_bool(env.get("HWMGR_ABORT_ON_INSUFFICIENT") or "1"),
            interval_seconds=float(env.get("HWMGR_INTERVAL_SECONDS") or defaults.interval_seconds),
            workers=workers,
            audit_log=Path(audit_log).expanduser() if audit_log else None,
        )

    def allocation_policy(self) -> AllocationPolicy:
        return AllocationPolicy(
            max_new_allocations_per_invocation=self.max_new_allocations_per_invocation,
            abort_on_insufficient=self.abort_on_insufficient,
            delay=FixedDelay(seconds=self.provision_delay_seconds),
        )
