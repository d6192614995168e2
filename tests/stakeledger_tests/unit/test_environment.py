"""
Unit tests for the execution environment, clock and reentrancy guard.
"""

import pytest

from stakeledger.core.environment import (
    Clock,
    ExecutionEnvironment,
    Journal,
    Journaled,
    Snapshottable,
)
from stakeledger.core.exceptions import InvalidStateError, ReentrancyError
from stakeledger.core.guards import ReentrancyGuard
from stakeledger_tests.fixtures import GENESIS_TIME


class Counter:
    """Minimal snapshottable participant."""

    def __init__(self):
        self.value = 0

    def snapshot(self):
        return self.value

    def restore(self, snapshot):
        self.value = snapshot


class TestClock:
    def test_manual_clock_starts_at_start_time(self):
        clock = Clock(start_time=GENESIS_TIME)
        assert clock.is_manual
        assert clock.now() == GENESIS_TIME

    def test_advance_and_set_time(self):
        clock = Clock(start_time=100)
        assert clock.advance(50) == 150
        assert clock.advance(0) == 150
        assert clock.set_time(400) == 400
        assert clock.now() == 400

    def test_set_time_backwards_rejected(self):
        clock = Clock(start_time=100)
        with pytest.raises(ValueError, match="backwards"):
            clock.set_time(99)
        assert clock.now() == 100

    @pytest.mark.parametrize("seconds", [-1, 1.5, "10"])
    def test_advance_rejects_bad_values(self, seconds):
        with pytest.raises(ValueError):
            Clock(start_time=0).advance(seconds)

    def test_provider_clock_cannot_be_moved(self):
        clock = Clock(time_provider=lambda: 1000)
        assert not clock.is_manual
        with pytest.raises(ValueError):
            clock.advance(1)

    def test_provider_going_backwards_rejected(self):
        readings = iter([1000, 1005, 1001])
        clock = Clock(time_provider=lambda: next(readings))
        assert clock.now() == 1000
        assert clock.now() == 1005
        with pytest.raises(ValueError, match="backwards"):
            clock.now()

    def test_provider_must_return_integer_like(self):
        clock = Clock(time_provider=lambda: "soon")
        with pytest.raises(ValueError):
            clock.now()

    def test_start_time_and_provider_are_exclusive(self):
        with pytest.raises(ValueError):
            Clock(start_time=1, time_provider=lambda: 1)

    def test_negative_start_time_rejected(self):
        with pytest.raises(ValueError):
            Clock(start_time=-1)

    def test_wall_clock_default(self):
        assert Clock().now() > GENESIS_TIME


class Box:
    def __init__(self):
        self.value = 0


class JournaledCounter:
    """Participant that writes through the environment's journal."""

    def __init__(self):
        self.journal = Journal()
        self.counts = {}

    def attach_journal(self, journal):
        self.journal = journal

    def bump(self, key):
        self.journal.set_item(self.counts, key, self.counts.get(key, 0) + 1)


class TestJournal:
    def test_writes_apply_directly_without_frame(self):
        journal = Journal()
        mapping, items, box = {}, [], Box()

        journal.set_item(mapping, "a", 1)
        journal.append(items, "x")
        journal.set_attr(box, "value", 5)

        assert (mapping, items, box.value) == ({"a": 1}, ["x"], 5)
        assert not journal.active

    def test_rollback_restores_every_kind_of_write(self):
        journal = Journal()
        mapping, items, box = {"a": 1}, ["x"], Box()

        journal.begin()
        journal.set_item(mapping, "a", 2)
        journal.set_item(mapping, "b", 3)
        journal.append(items, "y")
        journal.append(items, "z")
        journal.set_attr(box, "value", 9)
        journal.set_attr(box, "value", 10)

        assert journal.rollback() == 6
        assert mapping == {"a": 1}
        assert items == ["x"]
        assert box.value == 0
        assert not journal.active

    def test_committed_inner_frame_undone_by_outer_rollback(self):
        journal = Journal()
        mapping = {}

        journal.begin()
        journal.set_item(mapping, "outer", 1)
        journal.begin()
        journal.set_item(mapping, "inner", 2)
        journal.commit()
        assert journal.depth == 1

        assert journal.rollback() == 2
        assert mapping == {}

    def test_inner_rollback_keeps_outer_writes(self):
        journal = Journal()
        mapping = {}

        journal.begin()
        journal.set_item(mapping, "outer", 1)
        journal.begin()
        journal.set_item(mapping, "inner", 2)
        journal.rollback()
        journal.commit()

        assert mapping == {"outer": 1}
        assert not journal.active

    def test_rollback_cost_tracks_writes_not_history(self):
        journal = Journal()
        items = []
        for index in range(1000):
            journal.append(items, index)

        journal.begin()
        journal.append(items, "late")

        assert journal.rollback() == 1
        assert len(items) == 1000


class TestExecutionEnvironment:
    def test_transaction_commits(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = Counter()
        env.register(counter)

        with env.transaction("increment"):
            counter.value += 1

        assert counter.value == 1
        assert not env.in_transaction

    def test_transaction_restores_every_participant(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        first, second = Counter(), Counter()
        env.register(first)
        env.register(second)

        with pytest.raises(RuntimeError):
            with env.transaction("fails"):
                first.value = 10
                second.value = 20
                raise RuntimeError("boom")

        assert (first.value, second.value) == (0, 0)
        assert not env.in_transaction

    def test_nested_failure_keeps_outer_changes(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = Counter()
        env.register(counter)

        with env.transaction("outer"):
            counter.value = 1
            with pytest.raises(ValueError):
                with env.transaction("inner"):
                    assert env.in_transaction
                    counter.value = 2
                    raise ValueError("inner")
            assert counter.value == 1

        assert counter.value == 1

    def test_register_is_idempotent(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = Counter()
        env.register(counter)
        env.register(counter)

        with pytest.raises(RuntimeError):
            with env.transaction():
                counter.value += 5
                raise RuntimeError

        assert counter.value == 0

    def test_register_rejects_participant_without_rollback(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        with pytest.raises(TypeError):
            env.register(object())
        assert env.participants == ()

    def test_enlist_skips_participant_without_rollback(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = JournaledCounter()

        assert not env.enlist(object())
        assert env.enlist(counter)
        assert env.enlist(counter)
        assert env.participants == (counter,)

    def test_journaled_participant_rolled_back(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = JournaledCounter()
        env.register(counter)
        counter.bump("kept")

        with pytest.raises(RuntimeError):
            with env.transaction("bump"):
                counter.bump("kept")
                counter.bump("dropped")
                raise RuntimeError("boom")

        assert counter.journal is env.journal
        assert counter.counts == {"kept": 1}

    def test_journaled_nested_failure_keeps_outer_writes(self):
        env = ExecutionEnvironment(Clock(start_time=0))
        counter = JournaledCounter()
        env.register(counter)
        outer_view = counter.counts

        with env.transaction("outer"):
            counter.bump("outer")
            with pytest.raises(ValueError):
                with env.transaction("inner"):
                    counter.bump("inner")
                    raise ValueError("inner")
            counter.bump("outer")

        assert counter.counts is outer_view
        assert counter.counts == {"outer": 2}

    def test_participants_satisfy_protocols(self):
        assert isinstance(Counter(), Snapshottable)
        assert isinstance(JournaledCounter(), Journaled)
        assert not isinstance(Counter(), Journaled)

    def test_now_reads_clock(self):
        env = ExecutionEnvironment(Clock(start_time=GENESIS_TIME))
        env.clock.advance(7)
        assert env.now() == GENESIS_TIME + 7


class TestReentrancyGuard:
    def test_second_entry_rejected(self):
        guard = ReentrancyGuard("Pool")
        with guard:
            assert guard.entered
            with pytest.raises(ReentrancyError):
                with guard:
                    pass
        assert not guard.entered

    def test_flag_cleared_on_error(self):
        guard = ReentrancyGuard("Pool")
        with pytest.raises(KeyError):
            with guard:
                raise KeyError("x")
        assert not guard.entered
        with guard:
            pass

    def test_reentrancy_is_a_state_error(self):
        assert issubclass(ReentrancyError, InvalidStateError)
