"""
Token collaborator used by the ledgers.

- ERC20: In-memory fungible token with transfer/transferFrom/balanceOf
- Safe transfer helpers that turn any rejected movement into TransferFailedError
"""

from .erc20 import ERC20Token, TokenError, TokenEvent
from .safe_transfer import TransferableToken, safe_transfer, safe_transfer_from

__all__ = [
    "ERC20Token",
    "TokenError",
    "TokenEvent",
    "TransferableToken",
    "safe_transfer",
    "safe_transfer_from",
]
