"""
Accrual Pool - time-weighted staking rewards.

Stakers deposit the staking token and earn the reward token at
``reward_rate`` units per second, shared pro rata by stake. Entitlement is
tracked through one global accumulator, ``reward_per_unit_stored`` (scaled
by SCALE), instead of looping over stakers:

    reward_per_unit = stored + elapsed * reward_rate * SCALE // total_staked
    earned(a)       = balance[a] * (reward_per_unit - paid[a]) // SCALE + owed[a]

Every mutating operation checkpoints first, so elapsed time is always
priced at the rate that was in force while it elapsed. Floor division
means rounding only ever loses dust; the pool never owes more than it
accrued.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from ..core.access_control import Ownable
from ..core.addresses import derive_address, normalize_address, validate_address
from ..core.constants import SCALE
from ..core.contracts.safe_transfer import TransferableToken, safe_transfer, safe_transfer_from
from ..core.environment import ExecutionEnvironment, Journal
from ..core.events import LedgerEvent, emit_event
from ..core.exceptions import InsufficientFundsError, InvalidInputError
from ..core.guards import ReentrancyGuard

logger = logging.getLogger(__name__)


@dataclass
class PoolState:
    total_staked: int = 0
    reward_rate: int = 0
    reward_per_unit_stored: int = 0
    last_update_time: int = 0
    balances: dict[str, int] = field(default_factory=dict)
    reward_per_unit_paid: dict[str, int] = field(default_factory=dict)
    owed_rewards: dict[str, int] = field(default_factory=dict)
    events: list[LedgerEvent] = field(default_factory=list)


class AccrualPool:
    """
    Staking pool paying rewards proportional to stake-time.

    Rewards are paid out of the pool's own reward-token holdings; the owner
    funds the pool by transferring reward tokens to ``pool.address``. The
    staking token and reward token may be the same token, in which case
    stakers' principal (``total_staked``) is reserved and only the surplus
    above it can be paid out as reward.

    Args:
        env: Execution environment supplying the clock and atomicity
        owner: Address allowed to run administrative operations
        staking_token: Token accepted as stake
        reward_token: Token paid as reward
        reward_rate: Initial reward units emitted per second
        address: Pool address on the token ledgers (derived if omitted)
        state: Pre-built state, for restoring or testing a pool
    """

    COMPONENT = "accrual_pool"

    def __init__(
        self,
        env: ExecutionEnvironment,
        owner: str,
        staking_token: TransferableToken,
        reward_token: TransferableToken,
        reward_rate: int = 0,
        address: str | None = None,
        state: PoolState | None = None,
    ):
        self._validate_rate(reward_rate)

        self.env = env
        self.access = Ownable(owner)
        self.staking_token = staking_token
        self.reward_token = reward_token
        self.address = (
            validate_address(address, "pool address")
            if address is not None
            else derive_address(f"{self.COMPONENT}:{uuid.uuid4().hex}")
        )
        self.state = state if state is not None else PoolState(
            reward_rate=reward_rate,
            last_update_time=env.now(),
        )
        self._guard = ReentrancyGuard("AccrualPool")

        for token in (staking_token, reward_token):
            env.enlist(token)

        logger.info(
            "AccrualPool initialized at %s with reward rate %s/s",
            self.address,
            self.state.reward_rate,
            extra={"event": "accrual_pool.initialized", "reward_rate": self.state.reward_rate},
        )

    # ==================== View Functions ====================

    @property
    def owner(self) -> str:
        return self.access.owner

    @property
    def total_staked(self) -> int:
        return self.state.total_staked

    @property
    def reward_rate(self) -> int:
        return self.state.reward_rate

    def balance_of(self, account: str) -> int:
        return self.state.balances.get(normalize_address(account), 0)

    def reward_per_unit(self) -> int:
        """Accumulator value as of now, without checkpointing."""
        return self._reward_per_unit_at(self.env.now())

    def earned(self, account: str) -> int:
        """
        Reward owed to ``account`` as of now, without checkpointing.

        Matches exactly what a checkpoint at the same instant would store.
        """
        account = normalize_address(account)
        return self._earned(account, self._reward_per_unit_at(self.env.now()))

    def reward_reserve(self) -> int:
        """Reward-token holdings available for payouts (principal excluded when shared)."""
        holdings = self.reward_token.balance_of(self.address)
        if self._same_token(self.reward_token, self.staking_token):
            holdings -= self.state.total_staked
        return max(holdings, 0)

    # ==================== Staker Operations ====================

    def stake(self, caller: str, amount: int) -> None:
        """
        Stake ``amount`` of the staking token.

        The caller must have approved the pool for ``amount`` beforehand.

        Raises:
            InvalidInputError: If amount is not positive
            TransferFailedError: If the token pull fails
        """
        with self._operation("stake") as now:
            account = validate_address(caller, "caller")
            self._validate_amount(amount)

            self._update_reward(account, now)
            state = self.state
            journal = self._journal
            journal.set_attr(state, "total_staked", state.total_staked + amount)
            journal.set_item(state.balances, account, state.balances.get(account, 0) + amount)

            safe_transfer_from(self.staking_token, self.address, account, self.address, amount)

            emit_event(journal, state.events, self.COMPONENT, "Staked", now, account=account, amount=amount)
            logger.info(
                "Staked %s for %s (total staked %s)",
                amount,
                account,
                state.total_staked,
                extra={"event": "accrual_pool.staked", "amount": amount},
            )

    def withdraw(self, caller: str, amount: int) -> None:
        """
        Withdraw ``amount`` of principal back to the caller.

        Raises:
            InvalidInputError: If amount is not positive
            InsufficientFundsError: If amount exceeds the caller's stake
            TransferFailedError: If the token push fails
        """
        with self._operation("withdraw") as now:
            account = validate_address(caller, "caller")
            self._withdraw(account, amount, now)

    def claim_reward(self, caller: str) -> int:
        """Pay out everything the caller has earned. Returns the amount paid (0 is not an error)."""
        with self._operation("claim_reward") as now:
            account = validate_address(caller, "caller")
            return self._claim(account, now)

    def exit(self, caller: str) -> dict[str, int]:
        """
        Withdraw the caller's whole stake and claim all rewards.

        Both parts succeed or neither does. The caller must hold a nonzero
        stake.

        Returns:
            Dictionary with 'withdrawn' and 'reward'
        """
        with self._operation("exit") as now:
            account = validate_address(caller, "caller")
            balance = self.state.balances.get(account, 0)
            self._withdraw(account, balance, now)
            reward = self._claim(account, now)
            return {"withdrawn": balance, "reward": reward}

    # ==================== Owner Operations ====================

    def set_reward_rate(self, caller: str, rate: int) -> None:
        """
        Change the emission rate (owner only).

        The pool is checkpointed first: time elapsed so far is priced at the
        old rate, time after the change at the new one.
        """
        with self._operation("set_reward_rate") as now:
            self.access.require_owner(caller, "set_reward_rate")
            self._validate_rate(rate)

            self._update_reward(None, now)
            old_rate = self.state.reward_rate
            self._journal.set_attr(self.state, "reward_rate", rate)

            emit_event(
                self._journal, self.state.events, self.COMPONENT, "RewardRateUpdated", now,
                old_rate=old_rate, new_rate=rate,
            )
            logger.info(
                "Reward rate changed from %s to %s",
                old_rate,
                rate,
                extra={"event": "accrual_pool.rate_changed", "old_rate": old_rate, "new_rate": rate},
            )

    def update_reward(self, caller: str, account: str | None = None) -> None:
        """Force a checkpoint of the pool, and of ``account`` if given (owner only)."""
        with self._operation("update_reward") as now:
            self.access.require_owner(caller, "update_reward")
            target = validate_address(account, "account") if account is not None else None
            self._update_reward(target, now)
            emit_event(
                self._journal, self.state.events, self.COMPONENT, "RewardUpdated", now,
                account=target, reward_per_unit=self.state.reward_per_unit_stored,
            )

    def recover_foreign_token(self, caller: str, token: TransferableToken, amount: int) -> None:
        """
        Send ``amount`` of a stray token held by the pool to the owner.

        The staking and reward tokens are refused: they back stakers'
        principal and accrued rewards. The token joins the environment's
        rollback set only once the request has passed these checks.

        Raises:
            UnauthorizedError: If caller is not the owner
            InsufficientFundsError: If ``token`` is the staking or reward token
        """
        self.access.require_owner(caller, "recover_foreign_token")
        self._validate_amount(amount)
        if self._is_protected(token):
            raise InsufficientFundsError(
                "Cannot recover the staking or reward token",
                details={"token": token.address},
            )
        self.env.enlist(token)

        with self._operation("recover_foreign_token") as now:
            safe_transfer(token, self.address, self.owner, amount)

            emit_event(
                self._journal, self.state.events, self.COMPONENT, "Recovered", now,
                token=normalize_address(token.address), amount=amount,
            )
            logger.info(
                "Recovered %s of foreign token %s",
                amount,
                token.address,
                extra={"event": "accrual_pool.recovered", "amount": amount},
            )

    # ==================== Internals ====================

    @property
    def _journal(self) -> Journal:
        return self.env.journal

    @contextmanager
    def _operation(self, action: str) -> Iterator[int]:
        with self._guard:
            with self.env.transaction(f"{self.COMPONENT}.{action}"):
                yield self.env.now()

    def _reward_per_unit_at(self, now: int) -> int:
        state = self.state
        if state.total_staked == 0:
            return state.reward_per_unit_stored
        elapsed = max(now - state.last_update_time, 0)
        return state.reward_per_unit_stored + elapsed * state.reward_rate * SCALE // state.total_staked

    def _earned(self, account: str, reward_per_unit: int) -> int:
        state = self.state
        balance = state.balances.get(account, 0)
        paid = state.reward_per_unit_paid.get(account, 0)
        return balance * (reward_per_unit - paid) // SCALE + state.owed_rewards.get(account, 0)

    def _update_reward(self, account: str | None, now: int) -> None:
        """Checkpoint the accumulator, then ``account``'s entitlement."""
        state = self.state
        journal = self._journal
        reward_per_unit = self._reward_per_unit_at(now)
        journal.set_attr(state, "reward_per_unit_stored", reward_per_unit)
        journal.set_attr(state, "last_update_time", max(now, state.last_update_time))
        if account is not None:
            journal.set_item(state.owed_rewards, account, self._earned(account, reward_per_unit))
            journal.set_item(state.reward_per_unit_paid, account, reward_per_unit)

    def _withdraw(self, account: str, amount: int, now: int) -> None:
        self._validate_amount(amount)
        state = self.state
        balance = state.balances.get(account, 0)
        if amount > balance:
            raise InsufficientFundsError(
                f"Withdrawal of {amount} exceeds staked balance {balance}",
                details={"account": account, "amount": amount, "balance": balance},
            )

        self._update_reward(account, now)
        journal = self._journal
        journal.set_attr(state, "total_staked", state.total_staked - amount)
        journal.set_item(state.balances, account, balance - amount)

        safe_transfer(self.staking_token, self.address, account, amount)

        emit_event(journal, state.events, self.COMPONENT, "Withdrawn", now, account=account, amount=amount)
        logger.info(
            "Withdrew %s for %s (total staked %s)",
            amount,
            account,
            state.total_staked,
            extra={"event": "accrual_pool.withdrawn", "amount": amount},
        )

    def _claim(self, account: str, now: int) -> int:
        self._update_reward(account, now)
        state = self.state
        reward = state.owed_rewards.get(account, 0)
        if reward == 0:
            logger.debug("No reward owed to %s", account)
            return 0

        reserve = self.reward_reserve()
        if self._same_token(self.reward_token, self.staking_token) and reserve < reward:
            raise InsufficientFundsError(
                f"Reward of {reward} exceeds the pool's reward reserve {reserve}",
                details={"account": account, "reward": reward, "reserve": reserve},
            )

        journal = self._journal
        journal.set_item(state.owed_rewards, account, 0)
        safe_transfer(self.reward_token, self.address, account, reward)

        emit_event(journal, state.events, self.COMPONENT, "RewardPaid", now, account=account, reward=reward)
        logger.info(
            "Paid reward %s to %s",
            reward,
            account,
            extra={"event": "accrual_pool.reward_paid", "reward": reward},
        )
        return reward

    def _is_protected(self, token: Any) -> bool:
        return any(self._same_token(token, p) for p in (self.staking_token, self.reward_token))

    @staticmethod
    def _same_token(left: Any, right: Any) -> bool:
        if left is right:
            return True
        left_address = normalize_address(getattr(left, "address", "") or "")
        right_address = normalize_address(getattr(right, "address", "") or "")
        return bool(left_address) and left_address == right_address

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidInputError(
                "Amount must be a positive integer.", details={"amount": amount}
            )

    @staticmethod
    def _validate_rate(rate: int) -> None:
        if not isinstance(rate, int) or isinstance(rate, bool) or rate < 0:
            raise InvalidInputError(
                "Reward rate must be a non-negative integer.", details={"rate": rate}
            )
