"""
Allocation package.

Re-exports the engines and the selector used by the adaptor and by tests.
"""

from loopback_hwmgr.allocation.engine import AllocationEngine, AllocationResult, GroupOutcome, OutcomeKind
from loopback_hwmgr.allocation.policy import AllocationPolicy, FixedDelay, NoDelay
from loopback_hwmgr.allocation.release import ReleaseEngine
from loopback_hwmgr.allocation.selector import get_free_nodes_in_pool

__all__ = [
    "AllocationEngine",
    "AllocationPolicy",
    "AllocationResult",
    "FixedDelay",
    "GroupOutcome",
    "NoDelay",
    "OutcomeKind",
    "ReleaseEngine",
    "get_free_nodes_in_pool",
]
