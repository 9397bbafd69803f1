"""
Loopback adaptor.

Invocation entrypoints for the dispatch layer.

handle_pool_request classifies the request and routes it:
Create       capacity check, mark InProgress, then allocate
Processing   one allocation pass, mark Completed once every group is full
SpecChanged  mark InProgress again, then allocate toward the new spec
Noop         nothing to do

handle_deletion releases every node of the request's cloud.

Each entrypoint returns a ReconcileResult. Errors are recorded on the
Provisioned condition and returned, never raised, so the caller only has to
schedule the requeue.
"""

from __future__ import annotations

import logging
from typing import Callable

from loopback_hwmgr.adaptor.fsm import PoolRequestAction, determine_action
from loopback_hwmgr.adaptor.result import (
    ReconcileResult,
    do_not_requeue,
    requeue_with_medium_interval,
    requeue_with_short_interval,
)
from loopback_hwmgr.allocation.engine import AllocationEngine
from loopback_hwmgr.allocation.policy import AllocationPolicy
from loopback_hwmgr.allocation.release import ReleaseEngine
from loopback_hwmgr.config import AdaptorConfig
from loopback_hwmgr.core.conditions import set_condition
from loopback_hwmgr.core.errors import HwMgrError, InsufficientResources, is_retryable
from loopback_hwmgr.core.retry import DEFAULT_RETRY, RetryPolicy
from loopback_hwmgr.core.types import (
    ConditionReason,
    ConditionStatus,
    ConditionType,
    NodeResource,
    PoolRequest,
)
from loopback_hwmgr.inventory.store import InventoryStore
from loopback_hwmgr.resources.base import CredentialClient, ObjectClient
from loopback_hwmgr.resources.ops import update_status_with_retry

LOGGER = logging.getLogger(__name__)


class LoopbackAdaptor:
    """
    Loopback hardware manager adaptor.

    pool_requests
    Object store holding the pool requests, used for status updates.

    nodes, credentials, inventory
    Collaborators of the allocation and release engines.

    policy
    Overrides the allocation policy derived from config.
    """

    def __init__(
        self,
        pool_requests: ObjectClient[PoolRequest],
        nodes: ObjectClient[NodeResource],
        credentials: CredentialClient,
        inventory: InventoryStore,
        config: AdaptorConfig | None = None,
        policy: AllocationPolicy | None = None,
        retry: RetryPolicy | None = None,
    ) -> None:
        self._config = config or AdaptorConfig()
        self._pool_requests = pool_requests
        self._retry = retry or DEFAULT_RETRY
        self._engine = AllocationEngine(
            inventory=inventory,
            nodes=nodes,
            credentials=credentials,
            policy=policy or self._config.allocation_policy(),
            retry=self._retry,
        )
        self._release = ReleaseEngine(
            inventory=inventory,
            nodes=nodes,
            credentials=credentials,
            retry=self._retry,
        )

    @property
    def engine(self) -> AllocationEngine:
        return self._engine

    def determine_action(self, request: PoolRequest) -> PoolRequestAction:
        action = determine_action(request)
        LOGGER.info(f"pool request {request.name}: {action.value}")
        return action

    def handle_pool_request(self, request: PoolRequest) -> ReconcileResult:
        action = self.determine_action(request)
        if action == PoolRequestAction.create:
            return self.handle_create(request)
        if action == PoolRequestAction.processing:
            return self.handle_processing(request)
        if action == PoolRequestAction.spec_changed:
            return self.handle_spec_changed(request)
        return do_not_requeue()

    def handle_create(self, request: PoolRequest) -> ReconcileResult:
        try:
            self._engine.check_capacity(request)
        except HwMgrError as err:
            LOGGER.error(f"failed to create pool request {request.name}: {err}")
            return self._fail(request, f"Creation request failed: {err}", err)

        try:
            request = self._set_provisioned(
                request,
                ConditionReason.in_progress,
                ConditionStatus.false,
                "Handling creation",
            )
        except HwMgrError as err:
            return requeue_with_medium_interval(err)

        return self.handle_processing(request)

    def handle_processing(self, request: PoolRequest) -> ReconcileResult:
        try:
            result = self._engine.allocate(request)
        except InsufficientResources as err:
            LOGGER.warning(f"pool request {request.name} waits for resources: {err}")
            return self._fail(request, f"Insufficient resources: {err}", err)
        except HwMgrError as err:
            LOGGER.error(f"failed to allocate nodes for pool request {request.name}: {err}")
            return self._fail(request, f"Allocation failed: {err}", err)

        if not result.complete:
            try:
                self._set_provisioned(
                    request,
                    ConditionReason.in_progress,
                    ConditionStatus.false,
                    f"Allocated {len(result.allocated_nodes)} new nodes",
                )
            except HwMgrError as err:
                return requeue_with_medium_interval(err)
            return requeue_with_short_interval()

        node_names = self._engine.allocated_nodes(request)
        generation = request.generation

        def _complete(obj: PoolRequest) -> None:
            obj.status.node_names = list(node_names)
            obj.status.observed_generation = generation

        try:
            self._set_provisioned(
                request,
                ConditionReason.completed,
                ConditionStatus.true,
                "Created",
                extra=_complete,
            )
        except HwMgrError as err:
            return requeue_with_medium_interval(err)

        LOGGER.info(f"pool request {request.name} provisioned with nodes {', '.join(node_names)}")
        return do_not_requeue()

    def handle_spec_changed(self, request: PoolRequest) -> ReconcileResult:
        """
        Converge to a changed spec.

        Growth is allocated like a new request. Shrinking a group does not
        release nodes, the surplus is only reported.
        """
        allocated = self._engine.allocated_counts(request)
        for group in request.node_groups:
            if allocated.get(group.name, 0) > group.size:
                LOGGER.warning(
                    f"nodegroup {group.name} of pool request {request.name} holds "
                    f"{allocated[group.name]} nodes, more than the new size {group.size}"
                )

        try:
            request = self._set_provisioned(
                request,
                ConditionReason.in_progress,
                ConditionStatus.false,
                "Handling spec change",
            )
        except HwMgrError as err:
            return requeue_with_medium_interval(err)

        return self.handle_processing(request)

    def handle_deletion(self, request: PoolRequest) -> ReconcileResult:
        LOGGER.info(f"Finalizing pool request {request.name}")
        try:
            self._release.release(request)
        except HwMgrError as err:
            LOGGER.error(f"failed to release pool request {request.name}: {err}")
            return requeue_with_short_interval(err)
        return do_not_requeue()

    def _fail(self, request: PoolRequest, message: str, err: HwMgrError) -> ReconcileResult:
        """
        Record a failure on the request and pick the requeue interval.

        Errors that need an operator fix, such as bad catalog credentials, are
        retried on the medium interval so a corrected catalog is picked up.
        """
        try:
            self._set_provisioned(request, ConditionReason.failed, ConditionStatus.false, message)
        except HwMgrError as status_err:
            LOGGER.error(f"failed to update status for pool request {request.name}: {status_err}")

        if not is_retryable(err) or isinstance(err, InsufficientResources):
            return requeue_with_medium_interval(err)
        return requeue_with_short_interval(err)

    def _set_provisioned(
        self,
        request: PoolRequest,
        reason: ConditionReason,
        status: ConditionStatus,
        message: str,
        extra: Callable[[PoolRequest], None] | None = None,
    ) -> PoolRequest:
        def _apply(obj: PoolRequest) -> None:
            set_condition(obj.status.conditions, ConditionType.provisioned, reason, status, message)
            if extra is not None:
                extra(obj)

        try:
            return update_status_with_retry(self._pool_requests, request.name, _apply, self._retry)
        except HwMgrError as err:
            raise err.with_context(operation=f"update status of pool request {request.name}") from err
