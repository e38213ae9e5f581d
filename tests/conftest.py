from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from slotbook.core.clock import FixedClock
from slotbook.core.config import Settings
from slotbook.database import Base
from slotbook.services.alert_service import AlertService
from slotbook.services.availability_service import AvailabilityEngine
from slotbook.services.credit_ledger_service import CreditLedgerService
from slotbook.services.member_directory import StaticMemberDirectory
from slotbook.services.payment_provider import FakePaymentProvider
from slotbook.services.reservation_scheduler import ReservationScheduler
from slotbook.services.session_registry import SessionRegistry

# Import models so Base.metadata is populated for create_all.
import slotbook.models  # noqa: F401

# Monday 2 June 2025, 08:00 in the gym's zone: AM1 (07:30) has started, AM2 (09:30) has not.
MONDAY_MORNING = datetime(2025, 6, 2, 8, 0)

MEMBERS = ("alice", "bob", "carol", "dave", "erin", "frank", "grace", "heidi")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        environment="testing",
        timezone="Europe/London",
        booking_horizon_days=28,
        booking_timeout_seconds=5.0,
    )


@pytest.fixture
def clock(test_settings) -> FixedClock:
    return FixedClock(MONDAY_MORNING, test_settings.timezone)


@pytest.fixture
def members() -> StaticMemberDirectory:
    return StaticMemberDirectory(MEMBERS)


@pytest.fixture
def payment_provider() -> FakePaymentProvider:
    return FakePaymentProvider()


@pytest.fixture
def ledger(db, clock, payment_provider, test_settings) -> CreditLedgerService:
    return CreditLedgerService(db, clock=clock, payment_provider=payment_provider, config=test_settings)


@pytest.fixture
def engine_for_settings(test_settings) -> AvailabilityEngine:
    return AvailabilityEngine.from_settings(test_settings)


@pytest.fixture
def scheduler(db, clock, members, ledger, engine_for_settings, test_settings) -> ReservationScheduler:
    return ReservationScheduler(
        db,
        clock=clock,
        member_directory=members,
        ledger=ledger,
        availability_engine=engine_for_settings,
        alert_service=AlertService(db),
        config=test_settings,
    )


@pytest.fixture
def registry(db, clock, test_settings) -> SessionRegistry:
    return SessionRegistry(db, clock=clock, config=test_settings)


@pytest.fixture
def give_credits(ledger):
    """Grant complimentary credits so a member can book."""

    def _give(member_id: str, amount: int) -> None:
        ledger.grant(member_id, amount, "test top-up")

    return _give
