"""Duration-tiered token locks granting governance voting power."""

from .lock_registry import (
    LOCK_TIERS,
    LockPosition,
    LockRegistry,
    LockState,
    LockTier,
    TierConfig,
    get_tier_config,
)

__all__ = [
    "LOCK_TIERS",
    "LockPosition",
    "LockRegistry",
    "LockState",
    "LockTier",
    "TierConfig",
    "get_tier_config",
]
