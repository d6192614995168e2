"""
Execution environment for the ledgers.

Stands in for the chain: a clock that never moves backwards and atomic,
serialized execution of operations.

Ledgers and tokens write their state through the environment's Journal.
Inside a transaction each write records the value it replaced, and a
failed transaction undoes its writes in reverse order. Rolling back costs
as much as the failed operation wrote, independent of how many accounts
or events the ledgers hold. Participants that cannot journal may instead
implement snapshot()/restore() and are snapshotted at the start of every
transaction.

Usage:
    env = ExecutionEnvironment(Clock(start_time=1_700_000_000))
    pool = AccrualPool(env, owner="0xowner", staking_token=stake, reward_token=reward)
    env.clock.advance(100)
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class Snapshottable(Protocol):
    """State holder whose state can be captured and put back."""

    def snapshot(self) -> Any:
        ...

    def restore(self, snapshot: Any) -> None:
        ...


class Clock:
    """
    Non-decreasing source of integer timestamps.

    A clock built with ``start_time`` is manual and only moves through
    ``advance``/``set_time``. Otherwise it reads ``time_provider`` (wall
    clock by default) and rejects any reading earlier than the last one.
    """

    def __init__(
        self,
        start_time: int | None = None,
        time_provider: Callable[[], int] | None = None,
    ):
        if start_time is not None and time_provider is not None:
            raise ValueError("Provide either start_time or time_provider, not both.")
        if start_time is not None and (not isinstance(start_time, int) or start_time < 0):
            raise ValueError("start_time must be a non-negative integer timestamp.")

        self._manual_time = start_time
        self._time_provider = time_provider or (lambda: int(time.time()))
        self._last_observed: int | None = None

    @property
    def is_manual(self) -> bool:
        return self._manual_time is not None

    def now(self) -> int:
        if self._manual_time is not None:
            timestamp = self._manual_time
        else:
            try:
                timestamp = int(self._time_provider())
            except (TypeError, ValueError) as exc:
                raise ValueError("time_provider must return an integer timestamp") from exc

        if self._last_observed is not None and timestamp < self._last_observed:
            raise ValueError(
                f"Clock moved backwards ({timestamp} < {self._last_observed})"
            )
        self._last_observed = timestamp
        return timestamp

    def advance(self, seconds: int) -> int:
        """Move a manual clock forward and return the new time."""
        self._require_manual()
        if not isinstance(seconds, int) or seconds < 0:
            raise ValueError("seconds must be a non-negative integer.")
        self._manual_time += seconds
        return self.now()

    def set_time(self, timestamp: int) -> int:
        """Jump a manual clock to ``timestamp`` (never backwards)."""
        self._require_manual()
        if not isinstance(timestamp, int):
            raise ValueError("timestamp must be an integer.")
        if timestamp < self._manual_time:
            raise ValueError(
                f"Clock moved backwards ({timestamp} < {self._manual_time})"
            )
        self._manual_time = timestamp
        return self.now()

    def _require_manual(self) -> None:
        if self._manual_time is None:
            raise ValueError("Only a manual clock (start_time=...) can be moved.")


class Journal:
    """
    Undo log for in-place state writes.

    ``begin`` opens a frame; every write made while a frame is open records
    how to put back the value it replaced. ``commit`` folds the frame into
    the enclosing one (or drops it at the top level) and ``rollback``
    replays it in reverse. With no frame open, writes are applied directly.
    """

    def __init__(self) -> None:
        self._frames: list[list[Callable[[], None]]] = []

    @property
    def active(self) -> bool:
        return bool(self._frames)

    @property
    def depth(self) -> int:
        return len(self._frames)

    def set_item(self, mapping: dict, key: Any, value: Any) -> None:
        if self._frames:
            if key in mapping:
                previous = mapping[key]
                self._record(lambda: mapping.__setitem__(key, previous))
            else:
                self._record(lambda: mapping.pop(key, None))
        mapping[key] = value

    def set_attr(self, obj: Any, name: str, value: Any) -> None:
        if self._frames:
            previous = getattr(obj, name)
            self._record(lambda: setattr(obj, name, previous))
        setattr(obj, name, value)

    def append(self, items: list, item: Any) -> None:
        if self._frames:
            size = len(items)
            self._record(lambda: items.__delitem__(slice(size, None)))
        items.append(item)

    def begin(self) -> None:
        self._frames.append([])

    def commit(self) -> None:
        entries = self._frames.pop()
        if self._frames:
            self._frames[-1].extend(entries)

    def rollback(self) -> int:
        """Undo the innermost frame and return how many writes were undone."""
        entries = self._frames.pop()
        for undo in reversed(entries):
            undo()
        return len(entries)

    def _record(self, undo: Callable[[], None]) -> None:
        self._frames[-1].append(undo)


@runtime_checkable
class Journaled(Protocol):
    """State holder that writes through an environment's journal."""

    def attach_journal(self, journal: Journal) -> None:
        ...


class ExecutionEnvironment:
    """Clock plus all-or-nothing, serialized execution of operations."""

    def __init__(self, clock: Clock | None = None):
        self.clock = clock or Clock()
        self.journal = Journal()
        self._participants: list[Any] = []
        self._snapshotted: list[Snapshottable] = []
        self._lock = threading.RLock()

    def now(self) -> int:
        return self.clock.now()

    @property
    def in_transaction(self) -> bool:
        return self.journal.active

    @property
    def participants(self) -> tuple[Any, ...]:
        return tuple(self._participants)

    def register(self, participant: Journaled | Snapshottable) -> None:
        """
        Include ``participant`` in every future rollback.

        Journaled participants are bound to this environment's journal;
        others must implement snapshot()/restore().
        """
        with self._lock:
            if any(existing is participant for existing in self._participants):
                return
            if isinstance(participant, Journaled):
                participant.attach_journal(self.journal)
            elif isinstance(participant, Snapshottable):
                self._snapshotted.append(participant)
            else:
                raise TypeError(
                    f"{type(participant).__name__} implements neither attach_journal() "
                    "nor snapshot()/restore()"
                )
            self._participants.append(participant)
            logger.debug(
                "Registered %s with execution environment",
                type(participant).__name__,
                extra={"event": "environment.register", "participants": len(self._participants)},
            )

    def enlist(self, participant: Any) -> bool:
        """Register ``participant`` if it supports rollback; return whether it does."""
        if isinstance(participant, (Journaled, Snapshottable)):
            self.register(participant)
            return True
        logger.debug(
            "%s cannot be rolled back; its writes are final",
            type(participant).__name__,
            extra={"event": "environment.unrecoverable_participant"},
        )
        return False

    @contextmanager
    def transaction(self, label: str = "operation") -> Iterator["ExecutionEnvironment"]:
        """
        Run the enclosed block atomically.

        Nested transactions keep their own journal frame, so a failed inner
        operation is undone even if the outer one carries on. A committed
        inner frame is still undone if the outer transaction fails.
        """
        with self._lock:
            snapshots = [(participant, participant.snapshot()) for participant in self._snapshotted]
            self.journal.begin()
            try:
                yield self
            except BaseException as exc:
                undone = self.journal.rollback()
                for participant, snapshot in reversed(snapshots):
                    participant.restore(snapshot)
                logger.info(
                    "Rolled back %s: %s",
                    label,
                    exc,
                    extra={
                        "event": "environment.rollback",
                        "operation": label,
                        "error_type": type(exc).__name__,
                        "writes_undone": undone,
                    },
                )
                raise
            else:
                self.journal.commit()
