from datetime import date

from slotbook.core.enums import SlotAvailability
from slotbook.domain.value_objects import Month
from slotbook.services.availability_service import AvailabilityService

TUESDAY = date(2025, 6, 3)
JUNE = Month(2025, 6)


def test_booked_slot_is_reported_booked(db, scheduler, engine_for_settings, test_settings, give_credits):
    give_credits("alice", 1)
    scheduler.book("alice", TUESDAY, "AM1")

    month = AvailabilityService(db, engine_for_settings, test_settings).availability(JUNE)

    assert month[TUESDAY]["AM1"] == SlotAvailability.BOOKED
    assert month[TUESDAY]["AM2"] == SlotAvailability.FREE


def test_cancelled_booking_frees_the_slot_again(db, scheduler, engine_for_settings, test_settings, give_credits):
    give_credits("alice", 1)
    booked = scheduler.book("alice", TUESDAY, "AM1").session
    service = AvailabilityService(db, engine_for_settings, test_settings)
    assert service.availability(JUNE)[TUESDAY]["AM1"] == SlotAvailability.BOOKED

    scheduler.cancel(booked.id)

    assert service.availability(JUNE)[TUESDAY]["AM1"] == SlotAvailability.FREE
    assert service.slot_status(TUESDAY, "AM1") == SlotAvailability.FREE


def test_other_location_is_unaffected(db, scheduler, engine_for_settings, test_settings, give_credits):
    give_credits("alice", 1)
    scheduler.book("alice", TUESDAY, "AM1", location_id="annex")

    service = AvailabilityService(db, engine_for_settings, test_settings)

    assert service.availability(JUNE, "annex")[TUESDAY]["AM1"] == SlotAvailability.BOOKED
    assert service.availability(JUNE)[TUESDAY]["AM1"] == SlotAvailability.FREE
