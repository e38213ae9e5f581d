from dataclasses import dataclass
from datetime import date

from slotbook.core.config import Settings
from slotbook.core.enums import SlotAvailability
from slotbook.domain.value_objects import Month
from slotbook.services.availability_service import AvailabilityEngine

JUNE = Month(2025, 6)


@dataclass
class _Reservation:
    session_date: date
    slot_code: str
    status: str = "CONFIRMED"


def _engine(**overrides) -> AvailabilityEngine:
    return AvailabilityEngine.from_settings(Settings(_env_file=None, **overrides))


def test_every_day_and_slot_present():
    result = _engine().availability(JUNE, [])

    assert len(result) == 30
    assert all(set(slots) == {"AM1", "AM2"} for slots in result.values())


def test_weekdays_free_and_weekends_unavailable():
    result = _engine().availability(JUNE, [])

    assert result[date(2025, 6, 2)] == {"AM1": SlotAvailability.FREE, "AM2": SlotAvailability.FREE}
    assert result[date(2025, 6, 7)] == {
        "AM1": SlotAvailability.UNAVAILABLE,
        "AM2": SlotAvailability.UNAVAILABLE,
    }


def test_reserved_slot_is_booked():
    reservations = [_Reservation(date(2025, 6, 3), "AM1")]
    result = _engine().availability(JUNE, reservations)

    assert result[date(2025, 6, 3)]["AM1"] == SlotAvailability.BOOKED
    assert result[date(2025, 6, 3)]["AM2"] == SlotAvailability.FREE


def test_cancelled_reservation_does_not_occupy():
    reservations = [_Reservation(date(2025, 6, 3), "AM1", status="CANCELLED")]
    result = _engine().availability(JUNE, reservations)

    assert result[date(2025, 6, 3)]["AM1"] == SlotAvailability.FREE


def test_reservations_outside_month_ignored():
    reservations = [_Reservation(date(2025, 7, 1), "AM1")]
    result = _engine().availability(JUNE, reservations)

    assert SlotAvailability.BOOKED not in {v for slots in result.values() for v in slots.values()}


def test_months_outside_operating_range_are_unavailable():
    engine = _engine(operating_start="2025-07", operating_end="2025-12")
    result = engine.availability(JUNE, [_Reservation(date(2025, 6, 3), "AM1")])

    assert {v for slots in result.values() for v in slots.values()} == {SlotAvailability.UNAVAILABLE}
    assert engine.is_operating_month(Month(2025, 7))


def test_result_is_a_function_of_inputs():
    engine = _engine()
    reservations = [_Reservation(date(2025, 6, 3), "AM1")]

    assert engine.availability(JUNE, reservations) == engine.availability(JUNE, reservations)


def test_slot_status():
    engine = _engine()
    reservations = [_Reservation(date(2025, 6, 3), "AM1")]

    assert engine.slot_status(date(2025, 6, 3), "AM1", reservations) == SlotAvailability.BOOKED
    assert engine.slot_status(date(2025, 6, 3), "AM2", reservations) == SlotAvailability.FREE
    assert engine.slot_status(date(2025, 6, 7), "AM1", []) == SlotAvailability.UNAVAILABLE
    assert engine.slot_status(date(2025, 6, 3), "NOPE", []) == SlotAvailability.UNAVAILABLE


def test_summarize_counts_free_and_booked():
    engine = _engine()
    result = engine.availability(JUNE, [_Reservation(date(2025, 6, 3), "AM1")])
    summary = AvailabilityEngine.summarize(result)

    tuesday = summary[date(2025, 6, 3)]
    assert (tuesday.free, tuesday.booked, tuesday.total) == (1, 1, 2)
    assert tuesday.operating
    saturday = summary[date(2025, 6, 7)]
    assert saturday.total == 0
    assert not saturday.operating
