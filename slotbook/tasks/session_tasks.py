"""
Celery tasks for session lifecycle maintenance.

The completion sweep and the block booking fill are the only
background-triggered mutations of sessions.
"""

from datetime import datetime
import logging
from typing import Any, Callable, Optional, ParamSpec, Protocol, TypedDict, TypeVar, cast

from celery.result import AsyncResult
from sqlalchemy.orm import Session

from slotbook.core.clock import Clock, SystemClock
from slotbook.core.config import settings
from slotbook.database import SessionLocal
from slotbook.services.block_booking_service import BlockBookingService
from slotbook.services.reservation_scheduler import ReservationScheduler
from slotbook.tasks.celery_app import celery_app

P = ParamSpec("P")
R = TypeVar("R", covariant=True)


class TaskWrapper(Protocol[P, R]):
    def __call__(self, *args: P.args, **kwargs: P.kwargs) -> R:
        ...

    delay: Callable[..., AsyncResult]
    apply_async: Callable[..., AsyncResult]


def typed_task(
    *task_args: Any, **task_kwargs: Any
) -> Callable[[Callable[P, R]], TaskWrapper[P, R]]:
    """Return a typed Celery task decorator for mypy."""

    return cast(
        Callable[[Callable[P, R]], TaskWrapper[P, R]],
        celery_app.task(*task_args, **task_kwargs),
    )


logger = logging.getLogger(__name__)


class SweepResults(TypedDict):
    examined: int
    completed: int
    completed_ids: list[str]
    as_of: str


class BlockFillResults(TypedDict):
    blocks: int
    booked: int
    failed: int
    booked_ids: list[str]


def get_task_clock() -> Clock:
    return SystemClock(settings.timezone)


def run_completion_sweep(db: Session, clock: Clock, now: Optional[datetime] = None) -> SweepResults:
    scheduler = ReservationScheduler(db, clock=clock)
    result = scheduler.sweep_completions(now)
    return {
        "examined": result.examined,
        "completed": result.completed,
        "completed_ids": list(result.completed_ids),
        "as_of": result.as_of.isoformat(),
    }


@typed_task(bind=True, max_retries=3, name="slotbook.tasks.session_tasks.sweep_completed_sessions")
def sweep_completed_sessions(self: Any) -> SweepResults:
    """
    Mark confirmed sessions whose slot has ended as completed.

    Runs every few minutes from beat. Safe to run repeatedly or concurrently.
    """
    db: Session = SessionLocal()
    try:
        results = run_completion_sweep(db, get_task_clock())
        logger.info(
            f"Completion sweep finished: {results['completed']} of {results['examined']} sessions completed"
        )
        return results
    except Exception as exc:
        logger.error(f"Completion sweep failed: {exc}")
        raise self.retry(exc=exc, countdown=60)
    finally:
        db.close()


def run_block_fill(db: Session, clock: Clock) -> BlockFillResults:
    service = BlockBookingService(db, clock=clock)
    filled = service.fill_due()
    booked_ids = [session.id for result in filled.values() for session in result.booked]
    return {
        "blocks": len(filled),
        "booked": len(booked_ids),
        "failed": sum(len(result.failed) for result in filled.values()),
        "booked_ids": booked_ids,
    }


@typed_task(bind=True, max_retries=3, name="slotbook.tasks.session_tasks.fill_block_bookings")
def fill_block_bookings(self: Any) -> BlockFillResults:
    """Book block booking occurrences that have come inside the booking horizon."""
    db: Session = SessionLocal()
    try:
        results = run_block_fill(db, get_task_clock())
        logger.info(
            f"Block fill finished: {results['booked']} booked, {results['failed']} failed "
            f"across {results['blocks']} blocks"
        )
        return results
    except Exception as exc:
        logger.error(f"Block fill failed: {exc}")
        raise self.retry(exc=exc, countdown=300)
    finally:
        db.close()
