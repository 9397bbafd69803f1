"""
Pool request lifecycle classification.

Create
No status conditions recorded yet.

Processing
Provisioned condition present and not True.

SpecChanged
Provisioned is True but the request generation moved past the observed one.

Noop
Provisioned is True and generations match, or no Provisioned condition.

Classification is recomputed from status on every invocation.
Nothing else is stored.
"""

from __future__ import annotations

from enum import StrEnum

from loopback_hwmgr.core.conditions import find_condition
from loopback_hwmgr.core.types import ConditionStatus, ConditionType, PoolRequest


class PoolRequestAction(StrEnum):
    create = "Create"
    processing = "Processing"
    spec_changed = "SpecChanged"
    noop = "Noop"


def determine_action(request: PoolRequest) -> PoolRequestAction:
    status = request.status
    if not status.conditions:
        return PoolRequestAction.create

    provisioned = find_condition(status.conditions, ConditionType.provisioned)
    if provisioned is None:
        return PoolRequestAction.noop

    if provisioned.status != ConditionStatus.true:
        return PoolRequestAction.processing

    if request.generation != status.observed_generation:
        return PoolRequestAction.spec_changed
    return PoolRequestAction.noop
