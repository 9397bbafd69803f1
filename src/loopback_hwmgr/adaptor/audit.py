"""
Reconcile audit trail.

One JSON object per line for every reconcile the runner performs, so an
operator can follow a pool request through allocation, failures and release
without reading the service log.
"""

from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path

from loopback_hwmgr.adaptor.result import ReconcileResult
from loopback_hwmgr.core.types import PoolRequest


@dataclass(frozen=True)
class ReconcileRecord:
    pool_request: str
    cloud_id: str
    deletion: bool
    ok: bool
    error: str | None = None
    error_type: str | None = None
    requeue_after: float | None = None
    node_names: list[str] = field(default_factory=list)
    ts_unix: int = 0

    @classmethod
    def from_result(
        cls,
        request: PoolRequest,
        result: ReconcileResult,
        node_names: list[str],
    ) -> ReconcileRecord:
        return cls(
            pool_request=request.name,
            cloud_id=request.cloud_id,
            deletion=request.deletion_requested,
            ok=result.ok,
            error=str(result.error) if result.error else None,
            error_type=type(result.error).__name__ if result.error else None,
            requeue_after=result.requeue_after,
            node_names=list(node_names),
            ts_unix=int(time.time()),
        )


@dataclass(frozen=True)
class AuditLogger:
    """Appends ReconcileRecord lines to path. Concurrent workers are serialized."""

    path: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, entry: ReconcileRecord) -> None:
        line = json.dumps(asdict(entry), sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
