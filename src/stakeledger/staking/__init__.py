"""Continuous-time reward accrual for staked balances."""

from .accrual_pool import AccrualPool, PoolState

__all__ = ["AccrualPool", "PoolState"]
