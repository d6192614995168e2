"""
Lock Registry - time-locked positions that grant voting power.

Each lock is an independent position with its own expiry. Voting power is
fixed at creation from the tier multiplier:

    power = amount * multiplier // SCALE

and is removed in full when the position is withdrawn after expiry. Tiers
are a fixed lookup table, so adding a tier is a data change.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Iterator

from ..core.addresses import derive_address, normalize_address, validate_address
from ..core.constants import SCALE, SECONDS_PER_DAY
from ..core.contracts.safe_transfer import TransferableToken, safe_transfer, safe_transfer_from
from ..core.environment import ExecutionEnvironment, Journal
from ..core.events import LedgerEvent, emit_event
from ..core.exceptions import InvalidInputError, InvalidStateError, NotFoundError
from ..core.guards import ReentrancyGuard

logger = logging.getLogger(__name__)


class LockTier(Enum):
    THIRTY_DAYS = "THIRTY_DAYS"
    NINETY_DAYS = "NINETY_DAYS"
    ONE_EIGHTY_DAYS = "ONE_EIGHTY_DAYS"
    ONE_YEAR = "ONE_YEAR"
    TWO_YEARS = "TWO_YEARS"


@dataclass(frozen=True)
class TierConfig:
    tier: LockTier
    duration: int  # seconds
    multiplier: int  # scaled by SCALE

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "duration": self.duration,
            "duration_days": self.duration // SECONDS_PER_DAY,
            "multiplier": self.multiplier,
        }


# Ordered by duration; multipliers must increase with duration
LOCK_TIERS: tuple[TierConfig, ...] = (
    TierConfig(LockTier.THIRTY_DAYS, 30 * SECONDS_PER_DAY, 110 * SCALE // 100),
    TierConfig(LockTier.NINETY_DAYS, 90 * SECONDS_PER_DAY, 130 * SCALE // 100),
    TierConfig(LockTier.ONE_EIGHTY_DAYS, 180 * SECONDS_PER_DAY, 160 * SCALE // 100),
    TierConfig(LockTier.ONE_YEAR, 365 * SECONDS_PER_DAY, 200 * SCALE // 100),
    TierConfig(LockTier.TWO_YEARS, 730 * SECONDS_PER_DAY, 300 * SCALE // 100),
)

_TIERS_BY_KEY = {config.tier: config for config in LOCK_TIERS}


def get_tier_config(tier: LockTier | str) -> TierConfig:
    """Look up a tier by enum member or name (e.g. ``"ONE_YEAR"``)."""
    key = tier
    if isinstance(tier, str):
        try:
            key = LockTier(tier.strip().upper())
        except ValueError:
            key = None
    config = _TIERS_BY_KEY.get(key) if isinstance(key, LockTier) else None
    if config is None:
        raise InvalidInputError(
            f"Unrecognized lock tier: {tier!r}",
            details={"tier": str(tier), "allowed": [t.value for t in LockTier]},
        )
    return config


@dataclass
class LockPosition:
    amount: int
    multiplier: int
    lock_end_time: int
    withdrawn: bool = False
    tier: LockTier = LockTier.THIRTY_DAYS
    start_time: int = 0

    @property
    def voting_power(self) -> int:
        return self.amount * self.multiplier // SCALE

    def to_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "multiplier": self.multiplier,
            "lock_end_time": self.lock_end_time,
            "withdrawn": self.withdrawn,
            "tier": self.tier.value,
            "start_time": self.start_time,
            "voting_power": self.voting_power,
        }


@dataclass
class LockState:
    positions: dict[str, list[LockPosition]] = field(default_factory=dict)
    voting_power: dict[str, int] = field(default_factory=dict)
    total_locked: int = 0
    events: list[LedgerEvent] = field(default_factory=list)


class LockRegistry:
    """
    Holds locked tokens and tracks each account's voting power.

    An account may hold any number of positions; position ids are indexes
    into the account's position list and are never reused. Withdrawn
    positions stay in the list with ``withdrawn`` set.

    Args:
        env: Execution environment supplying the clock and atomicity
        token: Token accepted for locking
        address: Registry address on the token ledger (derived if omitted)
        state: Pre-built state, for restoring or testing a registry
    """

    COMPONENT = "lock_registry"

    def __init__(
        self,
        env: ExecutionEnvironment,
        token: TransferableToken,
        address: str | None = None,
        state: LockState | None = None,
    ):
        self.env = env
        self.token = token
        self.address = (
            validate_address(address, "registry address")
            if address is not None
            else derive_address(f"{self.COMPONENT}:{uuid.uuid4().hex}")
        )
        self.state = state if state is not None else LockState()
        self._guard = ReentrancyGuard("LockRegistry")

        env.enlist(token)

        logger.info(
            "LockRegistry initialized at %s with %d tiers",
            self.address,
            len(LOCK_TIERS),
        )

    def create_lock(self, caller: str, amount: int, tier: LockTier | str) -> int:
        """
        Lock ``amount`` tokens in ``tier`` and return the new position id.

        The caller must have approved the registry for ``amount``.

        Raises:
            InvalidInputError: If amount is not positive or the tier is unknown
            TransferFailedError: If the token pull fails
        """
        with self._operation("create_lock") as now:
            account = validate_address(caller, "caller")
            if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
                raise InvalidInputError("Amount to lock must be a positive integer.", details={"amount": amount})
            config = get_tier_config(tier)

            position = LockPosition(
                amount=amount,
                multiplier=config.multiplier,
                lock_end_time=now + config.duration,
                tier=config.tier,
                start_time=now,
            )
            state = self.state
            journal = self._journal
            if account not in state.positions:
                journal.set_item(state.positions, account, [])
            positions = state.positions[account]
            journal.append(positions, position)
            position_id = len(positions) - 1
            journal.set_attr(state, "total_locked", state.total_locked + amount)
            power = state.voting_power.get(account, 0) + position.voting_power
            journal.set_item(state.voting_power, account, power)

            safe_transfer_from(self.token, self.address, account, self.address, amount)

            emit_event(
                journal, state.events, self.COMPONENT, "Locked", now,
                account=account, position_id=position_id, amount=amount,
                tier=config.tier.value, lock_end_time=position.lock_end_time,
            )
            emit_event(
                journal, state.events, self.COMPONENT, "VotingPowerUpdated", now,
                account=account, voting_power=power,
            )
            logger.info(
                "%s locked %s tokens in tier %s until %s (voting power %s)",
                account,
                amount,
                config.tier.value,
                position.lock_end_time,
                power,
                extra={"event": "lock_registry.locked", "amount": amount, "position_id": position_id},
            )
            return position_id

    def withdraw_expired_lock(self, caller: str, position_id: int) -> int:
        """
        Withdraw one expired position and return its amount.

        Raises:
            NotFoundError: If the caller has no position ``position_id``
            InvalidStateError: If already withdrawn or not yet expired
        """
        with self._operation("withdraw_expired_lock") as now:
            account = validate_address(caller, "caller")
            position = self._position(account, position_id)
            if position.withdrawn:
                raise InvalidStateError(
                    f"Lock position {position_id} already withdrawn.",
                    details={"account": account, "position_id": position_id},
                )
            if now < position.lock_end_time:
                raise InvalidStateError(
                    f"Lock position {position_id} is locked until {position.lock_end_time}.",
                    details={"position_id": position_id, "lock_end_time": position.lock_end_time, "now": now},
                )

            state = self.state
            journal = self._journal
            journal.set_attr(position, "withdrawn", True)
            journal.set_attr(state, "total_locked", state.total_locked - position.amount)
            power = state.voting_power.get(account, 0) - position.voting_power
            journal.set_item(state.voting_power, account, power)

            safe_transfer(self.token, self.address, account, position.amount)

            emit_event(
                journal, state.events, self.COMPONENT, "LockWithdrawn", now,
                account=account, position_id=position_id, amount=position.amount,
            )
            emit_event(
                journal, state.events, self.COMPONENT, "VotingPowerUpdated", now,
                account=account, voting_power=power,
            )
            logger.info(
                "%s withdrew lock %s (%s tokens)",
                account,
                position_id,
                position.amount,
                extra={"event": "lock_registry.withdrawn", "amount": position.amount, "position_id": position_id},
            )
            return position.amount

    def get_voting_power(self, account: str) -> int:
        return self.state.voting_power.get(normalize_address(account), 0)

    def get_position_count(self, account: str) -> int:
        return len(self.state.positions.get(normalize_address(account), []))

    def get_position(self, account: str, position_id: int) -> LockPosition:
        """Copy of one position; out-of-range ids raise NotFoundError."""
        return replace(self._position(normalize_address(account), position_id))

    def get_positions(self, account: str) -> list[LockPosition]:
        return [replace(p) for p in self.state.positions.get(normalize_address(account), [])]

    def get_total_locked(self) -> int:
        return self.state.total_locked

    @staticmethod
    def get_tier(tier: LockTier | str) -> TierConfig:
        return get_tier_config(tier)

    @staticmethod
    def list_tiers() -> list[TierConfig]:
        return list(LOCK_TIERS)

    @property
    def _journal(self) -> Journal:
        return self.env.journal

    @contextmanager
    def _operation(self, action: str) -> Iterator[int]:
        with self._guard:
            with self.env.transaction(f"{self.COMPONENT}.{action}"):
                yield self.env.now()

    def _position(self, account: str, position_id: int) -> LockPosition:
        positions = self.state.positions.get(account, [])
        if (
            not isinstance(position_id, int)
            or isinstance(position_id, bool)
            or not 0 <= position_id < len(positions)
        ):
            raise NotFoundError(
                f"No lock position {position_id} for {account}.",
                details={"account": account, "position_id": position_id},
            )
        return positions[position_id]
