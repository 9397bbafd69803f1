"""
Adaptor runner.

Purpose
Continuously:
- Sync pool requests from a source into the object store
- Reconcile every request that is due
- Sleep

This is the composition layer of the system.
It plays the dispatch role: one invocation at a time per request, different
requests in parallel worker threads.

Scheduling
A request is due when it was never reconciled, when it changed since its last
reconcile, or when its requeue interval has elapsed. Status writes made by the
adaptor itself do not count as a change.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable

from loopback_hwmgr.adaptor.adaptor import LoopbackAdaptor
from loopback_hwmgr.adaptor.audit import AuditLogger, ReconcileRecord
from loopback_hwmgr.adaptor.result import ReconcileResult
from loopback_hwmgr.config import AdaptorConfig
from loopback_hwmgr.core.errors import NotFoundError
from loopback_hwmgr.core.types import PoolRequest
from loopback_hwmgr.resources.base import ObjectClient
from loopback_hwmgr.resources.ops import delete_ignore_not_found
from loopback_hwmgr.sources.source import PoolRequestSource, sync_pool_requests

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Schedule:
    resource_version: int
    requeue_at: float | None


class AdaptorRunner:
    """
    Top level reconcile loop.

    This is not the adaptor.
    This is the runtime loop around it.
    """

    def __init__(
        self,
        adaptor: LoopbackAdaptor,
        pool_requests: ObjectClient[PoolRequest],
        source: PoolRequestSource | None = None,
        config: AdaptorConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or AdaptorConfig()
        self._adaptor = adaptor
        self._pool_requests = pool_requests
        self._source = source
        self._clock = clock
        self._audit = AuditLogger(path=self._config.audit_log) if self._config.audit_log else None
        self._schedule: dict[str, _Schedule] = {}
        self._lock = threading.Lock()

    def run_cycle(self) -> dict[str, ReconcileResult]:
        """
        Execute one reconcile cycle.

        Returns the results of the requests reconciled in this cycle.
        """
        if self._source is not None:
            sync_pool_requests(self._source.fetch(), self._pool_requests)

        now = self._clock()
        due = [r for r in self._pool_requests.list() if self._is_due(r, now)]
        if not due:
            return {}

        results: dict[str, ReconcileResult] = {}
        with ThreadPoolExecutor(max_workers=self._config.workers, thread_name_prefix="reconcile") as pool:
            futures = {pool.submit(self._reconcile, r): r.name for r in due}
            for fut in as_completed(futures):
                results[futures[fut]] = fut.result()
        return results

    def run_forever(self) -> None:
        """
        Continuous loop execution.
        """

        while True:
            self.run_cycle()
            time.sleep(self._config.interval_seconds)

    def _is_due(self, request: PoolRequest, now: float) -> bool:
        with self._lock:
            entry = self._schedule.get(request.name)
        if entry is None or entry.resource_version != request.resource_version:
            return True
        if entry.requeue_at is None:
            return False
        return now >= entry.requeue_at

    def _reconcile(self, request: PoolRequest) -> ReconcileResult:
        if request.deletion_requested:
            result = self._adaptor.handle_deletion(request)
            if result.ok:
                delete_ignore_not_found(self._pool_requests, request.name)
        else:
            result = self._adaptor.handle_pool_request(request)

        if not result.ok:
            LOGGER.error(f"reconcile of pool request {request.name} failed: {result.error}")

        current = self._record(request.name, result)

        if self._audit is not None:
            node_names = current.status.node_names if current is not None else []
            self._audit.record(ReconcileRecord.from_result(request, result, node_names))
        return result

    def _record(self, name: str, result: ReconcileResult) -> PoolRequest | None:
        """Store the next due time. Returns the request as it is now, None once deleted."""
        try:
            current = self._pool_requests.get(name)
        except NotFoundError:
            with self._lock:
                self._schedule.pop(name, None)
            return None

        requeue_at = None
        if result.requeue_after is not None:
            requeue_at = self._clock() + result.requeue_after
        with self._lock:
            self._schedule[name] = _Schedule(resource_version=current.resource_version, requeue_at=requeue_at)
        return current
