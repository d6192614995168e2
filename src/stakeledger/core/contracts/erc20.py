"""
ERC20 Token Standard Implementation.

In-memory fungible token used as the transfer collaborator of the ledgers:
- Basic token operations (transfer, approve, transferFrom)
- Minting and burning capabilities
- Metadata (name, symbol, decimals)
- Events (Transfer, Approval)
- Journaled writes so the execution environment can roll it back

Security features:
- Zero address checks
- Balance underflow prevention
- Allowance validation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict

from ..addresses import derive_address
from ..constants import UINT256_MAX, ZERO_ADDRESS
from ..environment import Journal

logger = logging.getLogger(__name__)


class TokenError(Exception):
    """Raised when the token refuses an operation."""
    pass


@dataclass
class TokenEvent:
    """Represents an ERC20 event."""

    event_type: str  # "Transfer" or "Approval"
    from_address: str
    to_address: str
    value: int


@dataclass
class ERC20Token:
    """
    In-memory ERC20 token.

    Caller identity is explicit: every state-changing method takes the
    acting address (msg.sender) as its first argument.
    """

    # Token metadata
    name: str
    symbol: str
    decimals: int = 18
    total_supply: int = 0

    # Contract address
    address: str = ""

    # Owner (for minting permissions)
    owner: str = ""

    # State
    balances: dict[str, int] = field(default_factory=dict)
    allowances: dict[str, dict[str, int]] = field(default_factory=dict)

    # Event log
    events: list[TokenEvent] = field(default_factory=list)

    # Supply cap (0 = unlimited)
    max_supply: int = 0

    # Pause state
    paused: bool = False

    def __post_init__(self) -> None:
        """Initialize token after dataclass creation."""
        if not self.address:
            self.address = derive_address(f"erc20:{self.name}:{self.symbol}:{self.owner}")
        self.address = self._normalize(self.address)
        self.owner = self._normalize(self.owner)
        self._journal = Journal()
        self._journal_attached = False

    # ==================== View Functions ====================

    def balance_of(self, account: str) -> int:
        """Get the token balance of an account."""
        return self.balances.get(self._normalize(account), 0)

    def allowance(self, owner: str, spender: str) -> int:
        """Get the allowance granted by owner to spender."""
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)
        return self.allowances.get(owner_norm, {}).get(spender_norm, 0)

    # ==================== State-Changing Functions ====================

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """
        Transfer tokens from sender to recipient.

        Args:
            sender: Address sending tokens (msg.sender)
            recipient: Address receiving tokens
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        self._require_not_paused()
        sender_norm = self._normalize(sender)
        recipient_norm = self._normalize(recipient)

        self._validate_address(recipient_norm, "recipient")
        self._validate_amount(amount)

        sender_balance = self.balances.get(sender_norm, 0)
        if sender_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance "
                f"({amount} > {sender_balance})"
            )

        self._move(sender_norm, recipient_norm, amount)

        logger.debug(
            "ERC20 transfer",
            extra={
                "event": "erc20.transfer",
                "token": self.symbol,
                "from": sender_norm[:10],
                "to": recipient_norm[:10],
                "amount": amount,
            }
        )

        return True

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        """Approve spender to spend tokens on behalf of owner."""
        self._require_not_paused()
        owner_norm = self._normalize(owner)
        spender_norm = self._normalize(spender)

        self._validate_address(spender_norm, "spender")
        self._validate_amount(amount)

        if owner_norm not in self.allowances:
            self._journal.set_item(self.allowances, owner_norm, {})
        self._journal.set_item(self.allowances[owner_norm], spender_norm, amount)
        self._emit(TokenEvent("Approval", owner_norm, spender_norm, amount))

        return True

    def transfer_from(
        self, spender: str, from_addr: str, to_addr: str, amount: int
    ) -> bool:
        """
        Transfer tokens using an allowance.

        Args:
            spender: Address executing transfer (msg.sender)
            from_addr: Token owner
            to_addr: Recipient
            amount: Amount to transfer

        Returns:
            True if successful

        Raises:
            TokenError: If transfer fails
        """
        self._require_not_paused()
        spender_norm = self._normalize(spender)
        from_norm = self._normalize(from_addr)
        to_norm = self._normalize(to_addr)

        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        current_allowance = self.allowance(from_norm, spender_norm)
        if current_allowance < amount:
            raise TokenError(
                f"ERC20: insufficient allowance ({current_allowance} < {amount})"
            )

        from_balance = self.balances.get(from_norm, 0)
        if from_balance < amount:
            raise TokenError(
                f"ERC20: transfer amount exceeds balance ({amount} > {from_balance})"
            )

        # Unlimited allowances are never drawn down
        if current_allowance != UINT256_MAX:
            self._journal.set_item(self.allowances[from_norm], spender_norm, current_allowance - amount)

        self._move(from_norm, to_norm, amount)

        return True

    # ==================== Minting & Burning ====================

    def mint(self, minter: str, to: str, amount: int) -> bool:
        """Mint new tokens (owner only)."""
        self._require_not_paused()
        self._require_owner(minter)

        to_norm = self._normalize(to)
        self._validate_address(to_norm, "recipient")
        self._validate_amount(amount)

        if self.max_supply > 0 and self.total_supply + amount > self.max_supply:
            raise TokenError(
                f"ERC20: mint would exceed max supply "
                f"({self.total_supply + amount} > {self.max_supply})"
            )

        self._journal.set_attr(self, "total_supply", self.total_supply + amount)
        self._journal.set_item(self.balances, to_norm, self.balances.get(to_norm, 0) + amount)
        self._emit(TokenEvent("Transfer", ZERO_ADDRESS, to_norm, amount))

        logger.info(
            "ERC20 mint",
            extra={
                "event": "erc20.mint",
                "token": self.symbol,
                "to": to_norm[:10],
                "amount": amount,
                "new_supply": self.total_supply,
            }
        )

        return True

    def burn(self, holder: str, amount: int) -> bool:
        """Burn tokens from holder's balance."""
        self._require_not_paused()
        holder_norm = self._normalize(holder)
        self._validate_amount(amount)

        balance = self.balances.get(holder_norm, 0)
        if balance < amount:
            raise TokenError(
                f"ERC20: burn amount exceeds balance ({amount} > {balance})"
            )

        self._journal.set_item(self.balances, holder_norm, balance - amount)
        self._journal.set_attr(self, "total_supply", self.total_supply - amount)
        self._emit(TokenEvent("Transfer", holder_norm, ZERO_ADDRESS, amount))

        return True

    # ==================== Admin Functions ====================

    def pause(self, caller: str) -> bool:
        """Pause token transfers (owner only)."""
        self._require_owner(caller)
        self._journal.set_attr(self, "paused", True)
        return True

    def unpause(self, caller: str) -> bool:
        """Unpause token transfers (owner only)."""
        self._require_owner(caller)
        self._journal.set_attr(self, "paused", False)
        return True

    # ==================== Rollback Support ====================

    def attach_journal(self, journal: Journal) -> None:
        """Record every later write in ``journal`` (one environment per token)."""
        if journal is self._journal:
            return
        if self._journal_attached:
            raise TokenError(f"ERC20: {self.symbol} already belongs to another environment")
        self._journal = journal
        self._journal_attached = True

    # ==================== Helpers ====================

    def _move(self, from_norm: str, to_norm: str, amount: int) -> None:
        self._journal.set_item(self.balances, from_norm, self.balances.get(from_norm, 0) - amount)
        self._journal.set_item(self.balances, to_norm, self.balances.get(to_norm, 0) + amount)
        self._emit(TokenEvent("Transfer", from_norm, to_norm, amount))

    def _normalize(self, address: str) -> str:
        """Normalize address to lowercase."""
        return address.lower()

    def _validate_address(self, address: str, field: str) -> None:
        """Validate address is not zero."""
        if address == ZERO_ADDRESS or not address:
            raise TokenError(f"ERC20: {field} is zero address")

    def _validate_amount(self, amount: int) -> None:
        """Validate amount is valid."""
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TokenError("ERC20: amount must be an integer")
        if amount < 0:
            raise TokenError("ERC20: amount cannot be negative")
        if amount > UINT256_MAX:
            raise TokenError("ERC20: amount exceeds uint256")

    def _require_owner(self, caller: str) -> None:
        """Require caller is owner."""
        if self._normalize(caller) != self.owner:
            raise TokenError("ERC20: caller is not owner")

    def _require_not_paused(self) -> None:
        """Require token is not paused."""
        if self.paused:
            raise TokenError("ERC20: token is paused")

    def _emit(self, event: TokenEvent) -> None:
        self._journal.append(self.events, event)

    # ==================== Serialization ====================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize token state to dictionary."""
        return {
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "total_supply": self.total_supply,
            "address": self.address,
            "owner": self.owner,
            "balances": dict(self.balances),
            "max_supply": self.max_supply,
            "paused": self.paused,
        }
