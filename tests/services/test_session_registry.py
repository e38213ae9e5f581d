from datetime import date, datetime

import pytest

from slotbook.core.exceptions import NotFoundException


def test_upcoming_is_soonest_first(scheduler, registry, give_credits):
    give_credits("alice", 3)
    wed = scheduler.book("alice", date(2025, 6, 4), "AM2").session
    tue_late = scheduler.book("alice", date(2025, 6, 3), "AM2").session
    tue_early = scheduler.book("alice", date(2025, 6, 3), "AM1").session

    upcoming = registry.list_upcoming("alice")

    assert [s.id for s in upcoming] == [tue_early.id, tue_late.id, wed.id]


def test_lists_are_per_member(scheduler, registry, give_credits):
    give_credits("alice", 1)
    scheduler.book("alice", date(2025, 6, 3), "AM1")

    assert registry.list_upcoming("bob") == []
    assert registry.list_past("bob") == []


def test_cancelled_future_session_leaves_upcoming(scheduler, registry, give_credits):
    give_credits("alice", 1)
    booked = scheduler.book("alice", date(2025, 6, 3), "AM1").session
    scheduler.cancel(booked.id)

    assert registry.list_upcoming("alice") == []
    assert registry.list_past("alice") == []
    # Once its day has gone by it is history
    assert [s.id for s in registry.list_past("alice", now=registry.clock.now().replace(day=4))] == [booked.id]


def test_past_is_most_recent_first(scheduler, registry, clock, give_credits):
    give_credits("alice", 2)
    first = scheduler.book("alice", date(2025, 6, 3), "AM1").session
    second = scheduler.book("alice", date(2025, 6, 4), "AM1").session

    clock.set(datetime(2025, 6, 5, 12, 0))
    scheduler.sweep_completions()

    assert [s.id for s in registry.list_past("alice")] == [second.id, first.id]


def test_commit_is_visible_to_next_read(scheduler, registry, give_credits):
    give_credits("alice", 1)
    booked = scheduler.book("alice", date(2025, 6, 3), "AM1").session

    assert registry.get(booked.id).id == booked.id
    assert [s.id for s in registry.list_for_day(date(2025, 6, 3))] == [booked.id]


def test_get_unknown_session(registry):
    with pytest.raises(NotFoundException) as exc_info:
        registry.get("01JXNOSUCHSESSION000000000")
    assert exc_info.value.code == "SESSION_NOT_FOUND"
