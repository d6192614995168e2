"""
stakeledger Constants

Fixed-point scale and time units shared by the accounting ledgers.

NOTE: SCALE is part of every stored accumulator and multiplier. Changing it
invalidates all persisted ledger state.
"""

from typing import Final

# =============================================================================
# FIXED-POINT ARITHMETIC
# =============================================================================

# Scale for reward-per-unit accumulators and lock multipliers (18 decimals)
SCALE: Final[int] = 10**18

# Largest representable token amount
UINT256_MAX: Final[int] = 2**256 - 1

# =============================================================================
# TIME CONSTANTS
# =============================================================================

SECONDS_PER_DAY: Final[int] = 86400  # 60 * 60 * 24

# =============================================================================
# ADDRESSES
# =============================================================================

ZERO_ADDRESS: Final[str] = "0x" + "0" * 40
