"""Linear vesting schedules with cliff and revocation."""

from .ledger import (
    VestingLedger,
    VestingSchedule,
    VestingState,
    compute_releasable,
    compute_schedule_id,
)

__all__ = [
    "VestingLedger",
    "VestingSchedule",
    "VestingState",
    "compute_releasable",
    "compute_schedule_id",
]
