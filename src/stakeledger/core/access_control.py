"""
Owner-based access control for ledger administration.

Owner-only operations: reward-rate changes, forced reward checkpoints,
foreign-token recovery, vesting schedule creation, revocation and surplus
withdrawal. The gate is a standalone object so each ledger composes one
instead of inheriting ownership behavior.

Usage:
    gate = Ownable(owner="0xOwner")
    gate.require_owner(caller, "set_reward_rate")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .addresses import normalize_address, validate_address
from .exceptions import UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass
class Ownable:
    """Single-owner gate."""

    owner: str

    def __post_init__(self) -> None:
        self.owner = validate_address(self.owner, "owner")

    def is_owner(self, caller: str) -> bool:
        return isinstance(caller, str) and normalize_address(caller) == self.owner

    def require_owner(self, caller: str, operation: str = "") -> None:
        """Raise UnauthorizedError unless ``caller`` is the owner."""
        if self.is_owner(caller):
            return
        logger.warning(
            "Access denied: caller is not owner",
            extra={
                "event": "access_control.not_owner",
                "caller": str(caller)[:10],
                "operation": operation,
            },
        )
        raise UnauthorizedError(
            f"{operation or 'operation'}: caller is not owner",
            details={"caller": caller, "operation": operation},
        )

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        """Hand ownership to ``new_owner`` (owner only)."""
        self.require_owner(caller, "transfer_ownership")
        previous = self.owner
        self.owner = validate_address(new_owner, "new owner")
        logger.info(
            "Ownership transferred",
            extra={
                "event": "access_control.ownership_transferred",
                "previous_owner": previous[:10],
                "new_owner": self.owner[:10],
            },
        )
