"""
Races between independent database sessions on a file-backed database.

Each thread builds its own services the way a request would, so only the
keyed locks and the database constraints stand between them.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date
import threading

import pytest
from sqlalchemy.orm import sessionmaker

from slotbook.core.config import Settings
from slotbook.core.enums import BookingErrorCode, SessionStatus
from slotbook.database import build_engine, init_db
from slotbook.models.training_session import TrainingSession
from slotbook.services.credit_ledger_service import CreditLedgerService
from slotbook.services.member_directory import StaticMemberDirectory
from slotbook.services.reservation_scheduler import ReservationScheduler

TUESDAY = date(2025, 6, 3)


@pytest.fixture
def file_sessions(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}", echo=False)
    init_db(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def race_settings():
    return Settings(_env_file=None, booking_timeout_seconds=20.0)


def _book(factory, clock, config, barrier, member_id, slot_code):
    db = factory()
    try:
        scheduler = ReservationScheduler(
            db,
            clock=clock,
            member_directory=StaticMemberDirectory(allow_any=True),
            config=config,
        )
        barrier.wait(timeout=10)
        result = scheduler.book(member_id, TUESDAY, slot_code)
        return member_id, result.error
    finally:
        db.close()


def _balances(factory, clock, config, member_ids):
    db = factory()
    try:
        ledger = CreditLedgerService(db, clock=clock, config=config)
        return {member_id: ledger.balance(member_id) for member_id in member_ids}
    finally:
        db.close()


def test_one_winner_per_slot(file_sessions, clock, race_settings):
    members = [f"member-{i}" for i in range(5)]
    setup = file_sessions()
    ledger = CreditLedgerService(setup, clock=clock, config=race_settings)
    for member_id in members:
        ledger.grant(member_id, 1, "race")
    setup.close()

    barrier = threading.Barrier(len(members))
    with ThreadPoolExecutor(max_workers=len(members)) as pool:
        outcomes = list(
            pool.map(
                lambda m: _book(file_sessions, clock, race_settings, barrier, m, "AM1"),
                members,
            )
        )

    winners = [member_id for member_id, error in outcomes if error is None]
    losers = [error for _, error in outcomes if error is not None]
    assert len(winners) == 1
    assert losers == [BookingErrorCode.SLOT_UNAVAILABLE] * (len(members) - 1)

    balances = _balances(file_sessions, clock, race_settings, members)
    assert balances[winners[0]] == 0
    assert all(balance == 1 for member_id, balance in balances.items() if member_id != winners[0])

    check = file_sessions()
    try:
        active = check.query(TrainingSession).filter(TrainingSession.status != SessionStatus.CANCELLED.value).all()
        assert [s.member_id for s in active] == winners
    finally:
        check.close()


def test_member_cannot_overspend_concurrently(file_sessions, clock, race_settings):
    setup = file_sessions()
    CreditLedgerService(setup, clock=clock, config=race_settings).grant("alice", 1, "race")
    setup.close()

    slots = ["AM1", "AM2"]
    barrier = threading.Barrier(len(slots))
    with ThreadPoolExecutor(max_workers=len(slots)) as pool:
        outcomes = list(
            pool.map(
                lambda s: _book(file_sessions, clock, race_settings, barrier, "alice", s),
                slots,
            )
        )

    errors = sorted((error.value if error else "OK") for _, error in outcomes)
    assert errors == ["INSUFFICIENT_CREDITS", "OK"]
    assert _balances(file_sessions, clock, race_settings, ["alice"]) == {"alice": 0}
