"""
stakeledger - Token Value-Accounting Ledgers

In-process implementations of three token accounting mechanisms:

Main Components:
- Staking: Continuous-time reward accrual for staked balances
- Vesting: Linear vesting schedules with cliff and revocation
- Governance: Duration-tiered token locks that grant voting power
- Core: Execution environment, token collaborator, access control, errors

All components run against an ExecutionEnvironment that supplies the clock
and all-or-nothing execution of every mutating operation.
"""

__version__ = "0.1.0"
__author__ = "stakeledger Development Team"

from stakeledger.core.environment import Clock, ExecutionEnvironment
from stakeledger.governance.lock_registry import LockRegistry, LockTier
from stakeledger.staking.accrual_pool import AccrualPool
from stakeledger.vesting.ledger import VestingLedger, compute_schedule_id

__all__ = [
    "AccrualPool",
    "Clock",
    "ExecutionEnvironment",
    "LockRegistry",
    "LockTier",
    "VestingLedger",
    "compute_schedule_id",
]
