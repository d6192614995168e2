"""
Address helpers shared by the ledgers.

Addresses are opaque strings compared case-insensitively. The all-zero
address is never a valid participant.
"""

from __future__ import annotations

import hashlib

from .constants import ZERO_ADDRESS
from .exceptions import InvalidInputError


def normalize_address(address: str) -> str:
    """Normalize address to lowercase."""
    return address.lower()


def is_zero_address(address: str | None) -> bool:
    return not address or normalize_address(address) == ZERO_ADDRESS


def validate_address(address: str | None, field: str) -> str:
    """Return the normalized address, rejecting empty and zero addresses."""
    if not isinstance(address, str) or is_zero_address(address):
        raise InvalidInputError(
            f"{field} cannot be the zero address",
            details={"field": field, "address": address},
        )
    return normalize_address(address)


def derive_address(seed: str) -> str:
    """Derive a contract-style address from a seed string."""
    digest = hashlib.sha3_256(seed.encode()).digest()
    return f"0x{digest[-20:].hex()}"
