"""
Ledger exception hierarchy for stakeledger.

Provides typed exceptions for ledger operations so callers can tell a bad
argument from a missing record, a permission problem, a state conflict, a
funding shortfall or a failed token movement.

Every exception aborts the operation that raised it. The environment rolls
back all state touched by that operation before the exception reaches the
caller.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class LedgerError(Exception):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether resubmitting the same call later can succeed
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Input Errors ====================


class InvalidInputError(LedgerError):
    """Raised when an argument is rejected outright.

    Examples: zero amount, zero address, cliff longer than duration,
    unrecognized lock tier.
    """
    pass


class NotFoundError(LedgerError):
    """Raised when a referenced record does not exist.

    Examples: unknown vesting schedule ID, out-of-range lock position.
    """
    pass


class UnauthorizedError(LedgerError):
    """Raised when the caller may not perform the operation."""
    pass


# ==================== State Errors ====================


class InvalidStateError(LedgerError):
    """Raised when the record is in the wrong state for the operation.

    Examples: schedule already revoked or not revocable, position already
    withdrawn, lock not yet expired, schedule ID collision.
    """
    pass


class ReentrancyError(InvalidStateError):
    """Raised when a mutating operation is entered while another is running."""
    pass


# ==================== Funding Errors ====================


class InsufficientFundsError(LedgerError):
    """Raised when an operation asks for more than is available.

    Examples: release beyond the releasable amount, schedule creation beyond
    the ledger's holdings, recovery of a protected token.
    """
    pass


class TransferFailedError(LedgerError):
    """Raised when the token collaborator rejects a pull or push."""

    def __init__(
        self,
        message: str,
        token: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.token = token


# ==================== Configuration Errors ====================


class ConfigurationError(LedgerError):
    """Raised when required configuration is missing or invalid."""
    pass
