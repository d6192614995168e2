"""
Vesting Ledger - linear token vesting with a cliff.

The owner funds the ledger with the vesting token and then creates
schedules against those holdings. Each schedule vests linearly from
``start`` to ``start + duration``; nothing can be released before the
cliff. Schedule IDs are derived from the beneficiary and a per-beneficiary
counter, so they are predictable before creation.

``total_vested_amount`` is the sum over all schedules of
``total_amount - released`` for schedules that are not revoked, and the
ledger's token balance never drops below it.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Iterator

from ..core.access_control import Ownable
from ..core.addresses import derive_address, normalize_address, validate_address
from ..core.contracts.safe_transfer import TransferableToken, safe_transfer
from ..core.environment import ExecutionEnvironment, Journal
from ..core.events import LedgerEvent, emit_event
from ..core.exceptions import (
    InsufficientFundsError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
)
from ..core.guards import ReentrancyGuard

logger = logging.getLogger(__name__)


def compute_schedule_id(beneficiary: str, index: int) -> str:
    """
    Deterministic vesting schedule ID.

    Encoding: sha3_256(lowercase beneficiary as UTF-8 || index as 32-byte
    big-endian unsigned integer), hex-encoded with a ``0x`` prefix. Anyone
    can predict the ID of a beneficiary's next schedule without reading
    ledger state.
    """
    if not isinstance(beneficiary, str) or not beneficiary:
        raise InvalidInputError("Beneficiary address cannot be empty.")
    if not isinstance(index, int) or isinstance(index, bool) or index < 0:
        raise InvalidInputError("Schedule index must be a non-negative integer.")
    payload = normalize_address(beneficiary).encode() + index.to_bytes(32, "big")
    return "0x" + hashlib.sha3_256(payload).hexdigest()


@dataclass
class VestingSchedule:
    schedule_id: str
    beneficiary: str
    start: int
    cliff: int
    duration: int
    revocable: bool
    total_amount: int
    released: int = 0
    revoked: bool = False

    @property
    def end(self) -> int:
        return self.start + self.duration

    def to_dict(self) -> dict[str, Any]:
        return {
            "schedule_id": self.schedule_id,
            "beneficiary": self.beneficiary,
            "start": self.start,
            "cliff": self.cliff,
            "duration": self.duration,
            "revocable": self.revocable,
            "total_amount": self.total_amount,
            "released": self.released,
            "revoked": self.revoked,
        }


def compute_releasable(schedule: VestingSchedule, now: int) -> int:
    """
    Amount of ``schedule`` that can be released at ``now``.

    The cliff only gates release; vesting is measured from ``start``, so
    crossing the cliff unlocks everything accrued since ``start`` at once.
    """
    if schedule.revoked or now < schedule.cliff:
        return 0
    if now >= schedule.end:
        return schedule.total_amount - schedule.released
    vested = schedule.total_amount * (now - schedule.start) // schedule.duration
    return max(vested - schedule.released, 0)


@dataclass
class VestingState:
    schedules: dict[str, VestingSchedule] = field(default_factory=dict)
    schedule_ids: list[str] = field(default_factory=list)
    holder_counts: dict[str, int] = field(default_factory=dict)
    total_vested_amount: int = 0
    events: list[LedgerEvent] = field(default_factory=list)


class VestingLedger:
    """
    Holds tokens and releases them to beneficiaries on linear schedules.

    The ledger must already hold enough tokens to back every outstanding
    schedule before a new one is created.
    """

    COMPONENT = "vesting_ledger"

    def __init__(
        self,
        env: ExecutionEnvironment,
        owner: str,
        token: TransferableToken,
        address: str | None = None,
        state: VestingState | None = None,
    ):
        self.env = env
        self.access = Ownable(owner)
        self.token = token
        self.address = (
            validate_address(address, "ledger address")
            if address is not None
            else derive_address(f"{self.COMPONENT}:{uuid.uuid4().hex}")
        )
        self.state = state if state is not None else VestingState()
        self._guard = ReentrancyGuard("VestingLedger")

        env.enlist(token)

        logger.info("VestingLedger initialized at %s", self.address)

    @property
    def owner(self) -> str:
        return self.access.owner

    @property
    def total_vested_amount(self) -> int:
        return self.state.total_vested_amount

    # ==================== Owner Operations ====================

    def create_schedule(
        self,
        caller: str,
        beneficiary: str,
        start: int,
        cliff_duration: int,
        duration: int,
        revocable: bool,
        amount: int,
    ) -> str:
        """
        Creates a new vesting schedule and returns its ID.

        Raises:
            UnauthorizedError: If caller is not the owner
            InvalidInputError: On zero beneficiary, duration or amount, or a cliff longer than the duration
            InsufficientFundsError: If the ledger's holdings cannot back the new schedule
            InvalidStateError: If the computed ID already exists
        """
        with self._operation("create_schedule") as now:
            self.access.require_owner(caller, "create_schedule")
            holder = validate_address(beneficiary, "beneficiary")
            self._require_int(start, "start", minimum=0)
            self._require_int(duration, "duration", minimum=1)
            self._require_int(cliff_duration, "cliff_duration", minimum=0)
            self._require_int(amount, "amount", minimum=1)
            if cliff_duration > duration:
                raise InvalidInputError(
                    "Cliff duration cannot exceed vesting duration.",
                    details={"cliff_duration": cliff_duration, "duration": duration},
                )

            withdrawable = self.get_withdrawable_amount()
            if withdrawable < amount:
                raise InsufficientFundsError(
                    f"Ledger holdings cannot back a schedule of {amount} (available {withdrawable})",
                    details={"amount": amount, "available": withdrawable},
                )

            state = self.state
            index = state.holder_counts.get(holder, 0)
            schedule_id = compute_schedule_id(holder, index)
            if schedule_id in state.schedules:
                raise InvalidStateError(
                    f"Vesting schedule {schedule_id} already exists.",
                    details={"schedule_id": schedule_id},
                )

            journal = self._journal
            journal.set_item(
                state.schedules,
                schedule_id,
                VestingSchedule(
                    schedule_id=schedule_id,
                    beneficiary=holder,
                    start=start,
                    cliff=start + cliff_duration,
                    duration=duration,
                    revocable=bool(revocable),
                    total_amount=amount,
                ),
            )
            journal.append(state.schedule_ids, schedule_id)
            journal.set_item(state.holder_counts, holder, index + 1)
            journal.set_attr(state, "total_vested_amount", state.total_vested_amount + amount)

            emit_event(
                journal, state.events, self.COMPONENT, "ScheduleCreated", now,
                schedule_id=schedule_id, beneficiary=holder, amount=amount,
                start=start, cliff=start + cliff_duration, duration=duration,
                revocable=bool(revocable),
            )
            logger.info(
                "Vesting schedule %s created for %s (%s tokens)",
                schedule_id,
                holder,
                amount,
                extra={"event": "vesting.schedule_created", "amount": amount},
            )
            return schedule_id

    def revoke(self, caller: str, schedule_id: str) -> dict[str, int]:
        """
        Revoke a schedule (owner only).

        Whatever is releasable at this moment goes to the beneficiary; the
        rest of the unreleased allocation is refunded to the owner. The two
        debits together remove exactly the schedule's outstanding amount
        from ``total_vested_amount``.

        Returns:
            Dictionary with 'vested' (paid to beneficiary) and 'refund' (paid to owner)
        """
        with self._operation("revoke") as now:
            self.access.require_owner(caller, "revoke")
            schedule = self._get(schedule_id)
            if not schedule.revocable:
                raise InvalidStateError(
                    f"Vesting schedule {schedule_id} is not revocable.",
                    details={"schedule_id": schedule_id},
                )
            if schedule.revoked:
                raise InvalidStateError(
                    f"Vesting schedule {schedule_id} is already revoked.",
                    details={"schedule_id": schedule_id},
                )

            vested = compute_releasable(schedule, now)
            unreleased = schedule.total_amount - schedule.released
            refund = unreleased - vested
            state = self.state
            journal = self._journal
            journal.set_attr(schedule, "revoked", True)

            if vested > 0:
                journal.set_attr(schedule, "released", schedule.released + vested)
                journal.set_attr(state, "total_vested_amount", state.total_vested_amount - vested)
                safe_transfer(self.token, self.address, schedule.beneficiary, vested)
            if refund > 0:
                journal.set_attr(state, "total_vested_amount", state.total_vested_amount - refund)
                safe_transfer(self.token, self.address, self.owner, refund)

            emit_event(
                journal, state.events, self.COMPONENT, "ScheduleRevoked", now,
                schedule_id=schedule_id, vested=vested, refund=refund,
            )
            logger.info(
                "Vesting schedule %s revoked: %s vested to %s, %s refunded",
                schedule_id,
                vested,
                schedule.beneficiary,
                refund,
                extra={"event": "vesting.schedule_revoked", "vested": vested, "refund": refund},
            )
            return {"vested": vested, "refund": refund}

    def withdraw(self, caller: str, amount: int) -> None:
        """Withdraw tokens not backing any schedule to the owner."""
        with self._operation("withdraw") as now:
            self.access.require_owner(caller, "withdraw")
            self._require_int(amount, "amount", minimum=1)
            withdrawable = self.get_withdrawable_amount()
            if amount > withdrawable:
                raise InsufficientFundsError(
                    f"Withdrawal of {amount} exceeds unallocated holdings {withdrawable}",
                    details={"amount": amount, "available": withdrawable},
                )

            safe_transfer(self.token, self.address, self.owner, amount)
            emit_event(self._journal, self.state.events, self.COMPONENT, "Withdrawn", now, amount=amount)
            logger.info("Owner withdrew %s unallocated tokens", amount)

    # ==================== Beneficiary Operations ====================

    def release(self, caller: str, schedule_id: str, amount: int) -> None:
        """
        Release ``amount`` vested tokens to the schedule's beneficiary.

        Callable by the beneficiary or the owner; tokens always go to the
        beneficiary.
        """
        with self._operation("release") as now:
            schedule = self._get(schedule_id)
            if not (self.access.is_owner(caller) or self._is_beneficiary(caller, schedule)):
                logger.warning(
                    "Release of %s rejected for %s",
                    schedule_id,
                    caller,
                    extra={"event": "vesting.release_unauthorized"},
                )
                raise UnauthorizedError(
                    "Only the beneficiary or the owner can release vested tokens.",
                    details={"caller": caller, "schedule_id": schedule_id},
                )
            if schedule.revoked:
                raise InvalidStateError(
                    f"Vesting schedule {schedule_id} is revoked.",
                    details={"schedule_id": schedule_id},
                )
            self._require_int(amount, "amount", minimum=1)

            releasable = compute_releasable(schedule, now)
            if amount > releasable:
                raise InsufficientFundsError(
                    f"Cannot release {amount}; only {releasable} is releasable.",
                    details={"schedule_id": schedule_id, "amount": amount, "releasable": releasable},
                )

            journal = self._journal
            journal.set_attr(schedule, "released", schedule.released + amount)
            journal.set_attr(self.state, "total_vested_amount", self.state.total_vested_amount - amount)
            safe_transfer(self.token, self.address, schedule.beneficiary, amount)

            emit_event(
                journal, self.state.events, self.COMPONENT, "TokensReleased", now,
                schedule_id=schedule_id, beneficiary=schedule.beneficiary, amount=amount,
            )
            logger.info(
                "Released %s tokens for schedule %s",
                amount,
                schedule_id,
                extra={"event": "vesting.tokens_released", "amount": amount},
            )

    # ==================== View Functions ====================

    def compute_releasable_amount(self, schedule_id: str) -> int:
        return compute_releasable(self._get(schedule_id), self.env.now())

    def get_schedule(self, schedule_id: str) -> VestingSchedule:
        """Copy of the stored schedule."""
        return replace(self._get(schedule_id))

    def get_schedule_count(self) -> int:
        return len(self.state.schedule_ids)

    def get_schedule_count_for(self, beneficiary: str) -> int:
        return self.state.holder_counts.get(normalize_address(beneficiary), 0)

    def get_schedule_id_at(self, index: int) -> str:
        if not isinstance(index, int) or not 0 <= index < len(self.state.schedule_ids):
            raise NotFoundError(f"No vesting schedule at index {index}.", details={"index": index})
        return self.state.schedule_ids[index]

    def get_last_schedule_for(self, beneficiary: str) -> VestingSchedule:
        count = self.get_schedule_count_for(beneficiary)
        if count == 0:
            raise NotFoundError(
                f"No vesting schedules for {beneficiary}.", details={"beneficiary": beneficiary}
            )
        return self.get_schedule(compute_schedule_id(beneficiary, count - 1))

    def compute_next_schedule_id(self, beneficiary: str) -> str:
        return compute_schedule_id(beneficiary, self.get_schedule_count_for(beneficiary))

    def get_withdrawable_amount(self) -> int:
        """Ledger holdings not backing any outstanding schedule."""
        return self.token.balance_of(self.address) - self.state.total_vested_amount

    # ==================== Internals ====================

    @property
    def _journal(self) -> Journal:
        return self.env.journal

    @contextmanager
    def _operation(self, action: str) -> Iterator[int]:
        with self._guard:
            with self.env.transaction(f"{self.COMPONENT}.{action}"):
                yield self.env.now()

    def _get(self, schedule_id: str) -> VestingSchedule:
        schedule = self.state.schedules.get(schedule_id)
        if schedule is None:
            raise NotFoundError(
                f"Vesting schedule {schedule_id} not found.",
                details={"schedule_id": schedule_id},
            )
        return schedule

    @staticmethod
    def _is_beneficiary(caller: str, schedule: VestingSchedule) -> bool:
        return isinstance(caller, str) and normalize_address(caller) == schedule.beneficiary

    @staticmethod
    def _require_int(value: Any, name: str, minimum: int) -> None:
        if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
            qualifier = "a positive" if minimum > 0 else "a non-negative"
            raise InvalidInputError(
                f"{name} must be {qualifier} integer.", details={name: value}
            )
