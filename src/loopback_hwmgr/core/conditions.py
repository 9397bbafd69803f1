"""
Status condition helpers.

Conditions are kept as a list keyed by type.
set_condition updates in place so unrelated conditions are never dropped.
"""

from __future__ import annotations

import time

from loopback_hwmgr.core.types import Condition, ConditionStatus


def find_condition(conditions: list[Condition], cond_type: str) -> Condition | None:
    """Return the condition with the given type, or None."""
    for cond in conditions:
        if cond.type == cond_type:
            return cond
    return None


def is_condition_true(conditions: list[Condition], cond_type: str) -> bool:
    cond = find_condition(conditions, cond_type)
    return cond is not None and cond.status == ConditionStatus.true


def set_condition(
    conditions: list[Condition],
    cond_type: str,
    reason: str,
    status: ConditionStatus,
    message: str = "",
) -> None:
    """
    Add or update a condition.

    last_transition_time is set when the condition is added and when its
    status changes. Reason and message updates alone keep the old timestamp.
    """
    existing = find_condition(conditions, cond_type)
    if existing is None:
        conditions.append(
            Condition(
                type=cond_type,
                status=status,
                reason=reason,
                message=message,
                last_transition_time=time.time(),
            )
        )
        return

    if existing.status != status:
        existing.status = status
        existing.last_transition_time = time.time()
    existing.reason = reason
    existing.message = message
