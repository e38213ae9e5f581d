from datetime import date, datetime, timedelta

import pytest

from slotbook.core.enums import SessionStatus
from slotbook.tasks import session_tasks
from slotbook.services.block_booking_service import BlockBookingService
from slotbook.tasks.beat_schedule import BLOCK_FILL_TASK_NAME, SWEEP_TASK_NAME, get_beat_schedule
from slotbook.tasks.celery_app import BaseTask, celery_app


@pytest.fixture
def task_env(monkeypatch, session_factory, clock):
    monkeypatch.setattr(session_tasks, "SessionLocal", session_factory)
    monkeypatch.setattr(session_tasks, "get_task_clock", lambda: clock)
    return clock


def test_sweep_task_completes_ended_sessions(task_env, scheduler, give_credits, db):
    give_credits("alice", 1)
    booked = scheduler.book("alice", date(2025, 6, 3), "AM1").session
    task_env.set(datetime(2025, 6, 3, 9, 45))

    results = session_tasks.sweep_completed_sessions()

    assert results["completed"] == 1
    assert results["completed_ids"] == [booked.id]
    db.refresh(booked)
    assert booked.status == SessionStatus.COMPLETED.value


def test_sweep_task_with_nothing_to_do(task_env):
    results = session_tasks.sweep_completed_sessions()
    assert results == {
        "examined": 0,
        "completed": 0,
        "completed_ids": [],
        "as_of": task_env.now().isoformat(),
    }


def test_sweep_task_failure_propagates_when_called_directly(task_env, monkeypatch):
    def _boom(*_args, **_kwargs):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(session_tasks, "run_completion_sweep", _boom)

    with pytest.raises(RuntimeError):
        session_tasks.sweep_completed_sessions()


def test_task_is_registered_with_base_task():
    task = celery_app.tasks[SWEEP_TASK_NAME]
    assert isinstance(task, BaseTask)
    assert task.max_retries == 3


def test_beat_schedule_runs_sweep():
    schedule = get_beat_schedule("production")
    entry = schedule["sweep-completed-sessions"]
    assert entry["task"] == SWEEP_TASK_NAME
    assert isinstance(entry["schedule"], timedelta)


def test_development_schedule_override():
    entry = get_beat_schedule("development")["sweep-completed-sessions"]
    assert entry["schedule"] == timedelta(minutes=5)
    assert entry["options"]["queue"] == "celery"


def test_block_fill_task_books_occurrences_now_in_range(task_env, db, scheduler, give_credits):
    give_credits("alice", 10)
    block = BlockBookingService(db, scheduler=scheduler).create(
        "alice", 2, "AM1", date(2025, 6, 1), date(2025, 7, 15)
    ).block
    task_env.set(datetime(2025, 6, 9, 8, 0))

    results = session_tasks.fill_block_bookings()

    assert results["blocks"] == 1
    assert results["booked"] == 1
    assert results["failed"] == 0
    db.expire_all()
    assert block.booked_through == date(2025, 7, 7)


def test_block_fill_task_with_no_blocks(task_env):
    assert session_tasks.fill_block_bookings() == {
        "blocks": 0,
        "booked": 0,
        "failed": 0,
        "booked_ids": [],
    }


def test_beat_schedule_runs_block_fill():
    entry = get_beat_schedule("production")["fill-block-bookings"]
    assert entry["task"] == BLOCK_FILL_TASK_NAME
    assert isinstance(entry["schedule"], timedelta)
    assert celery_app.tasks[BLOCK_FILL_TASK_NAME].max_retries == 3
