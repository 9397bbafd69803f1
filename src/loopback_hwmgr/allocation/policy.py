"""
Allocation policy.

max_new_allocations_per_invocation
How many new nodes a single group may receive per engine call.
The default of 1 spreads credential and node creation over repeated
invocations. None removes the limit.

abort_on_insufficient
When True the first group that cannot be satisfied aborts the call.
Groups earlier in the request may already be committed by then.
When False all groups are evaluated and the error is raised at the end.

delay
Simulated hardware provisioning latency, applied once per engine call.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Protocol


class ProvisioningDelay(Protocol):
    def wait(self) -> None:
        """Block the calling worker for the simulated latency."""


@dataclass(frozen=True)
class FixedDelay(ProvisioningDelay):
    seconds: float = 10.0

    def wait(self) -> None:
        if self.seconds > 0:
            time.sleep(self.seconds)


@dataclass(frozen=True)
class NoDelay(ProvisioningDelay):
    def wait(self) -> None:
        return None


@dataclass(frozen=True)
class AllocationPolicy:
    max_new_allocations_per_invocation: int | None = 1
    abort_on_insufficient: bool = True
    delay: ProvisioningDelay = field(default_factory=FixedDelay)

    def allocations_for(self, remaining: int) -> int:
        """Return how many nodes to allocate now for a group still short by remaining."""
        if self.max_new_allocations_per_invocation is None:
            return remaining
        return min(remaining, self.max_new_allocations_per_invocation)
