"""
Safe token movement helpers.

The ledgers never trust the token collaborator: a ``False`` return or any
exception from the token becomes TransferFailedError, which aborts (and
rolls back) the calling operation. Ledger errors raised from inside the
token call, such as a reentrancy rejection triggered by a token callback,
propagate unchanged.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from ..exceptions import LedgerError, TransferFailedError

logger = logging.getLogger(__name__)


@runtime_checkable
class TransferableToken(Protocol):
    """Token operations the ledgers rely on."""

    address: str

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, from_addr: str, to_addr: str, amount: int) -> bool:
        ...

    def balance_of(self, account: str) -> int:
        ...


def safe_transfer(token: TransferableToken, sender: str, recipient: str, amount: int) -> None:
    """Push ``amount`` from ``sender`` (a ledger) to ``recipient``."""
    details = {"sender": sender, "recipient": recipient, "amount": amount}
    try:
        ok = token.transfer(sender, recipient, amount)
    except LedgerError:
        raise
    except Exception as exc:
        _log_failure(token, "transfer", exc, details)
        raise TransferFailedError(
            f"Token transfer failed: {exc}", token=token.address, details=details
        ) from exc
    if not ok:
        _log_failure(token, "transfer", None, details)
        raise TransferFailedError(
            "Token transfer returned false", token=token.address, details=details
        )


def safe_transfer_from(
    token: TransferableToken, spender: str, from_addr: str, to_addr: str, amount: int
) -> None:
    """Pull ``amount`` from ``from_addr`` into ``to_addr`` using ``spender``'s allowance."""
    details = {"spender": spender, "from": from_addr, "to": to_addr, "amount": amount}
    try:
        ok = token.transfer_from(spender, from_addr, to_addr, amount)
    except LedgerError:
        raise
    except Exception as exc:
        _log_failure(token, "transfer_from", exc, details)
        raise TransferFailedError(
            f"Token transferFrom failed: {exc}", token=token.address, details=details
        ) from exc
    if not ok:
        _log_failure(token, "transfer_from", None, details)
        raise TransferFailedError(
            "Token transferFrom returned false", token=token.address, details=details
        )


def _log_failure(token: TransferableToken, method: str, exc: Exception | None, details: dict) -> None:
    logger.warning(
        "Token %s rejected: %s",
        method,
        exc if exc is not None else "returned false",
        extra={
            "event": "token.transfer_failed",
            "token": str(getattr(token, "address", ""))[:10],
            "method": method,
            "amount": details.get("amount"),
        },
    )
