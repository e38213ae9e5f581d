from datetime import date, time

import pytest

from slotbook.core.config import Settings, SlotConfig
from slotbook.core.exceptions import NotFoundException
from slotbook.domain.slots import Slot, SlotCatalog, credit_packs_from_settings
from slotbook.domain.value_objects import Month, MonthRange


class TestMonth:
    def test_days_cover_the_whole_month(self):
        days = list(Month(2024, 2).days())
        assert days[0] == date(2024, 2, 1)
        assert days[-1] == date(2024, 2, 29)
        assert len(days) == 29

    def test_from_string_and_str(self):
        month = Month.from_string("2025-06")
        assert month == Month(2025, 6)
        assert str(month) == "2025-06"

    @pytest.mark.parametrize("value", [0, 13])
    def test_invalid_month_rejected(self, value):
        with pytest.raises(ValueError):
            Month(2025, value)

    def test_ordering(self):
        assert Month(2024, 12) < Month(2025, 1)


class TestMonthRange:
    def test_open_range_contains_everything(self):
        assert Month(1999, 1) in MonthRange()

    def test_bounds_are_inclusive(self):
        window = MonthRange.from_strings("2025-03", "2025-10")
        assert Month(2025, 3) in window
        assert Month(2025, 10) in window
        assert Month(2025, 2) not in window
        assert Month(2025, 11) not in window

    def test_reversed_range_rejected(self):
        with pytest.raises(ValueError):
            MonthRange(Month(2025, 5), Month(2025, 4))

    def test_non_month_is_not_contained(self):
        assert "2025-05" not in MonthRange()


class TestSlotCatalog:
    def test_default_catalog_is_two_weekday_morning_slots(self):
        catalog = SlotCatalog.from_settings(Settings(_env_file=None))

        assert [slot.code for slot in catalog] == ["AM1", "AM2"]
        am1 = catalog.require("AM1")
        assert am1.window == "07:30-09:30"
        assert am1.weekdays == frozenset({1, 2, 3, 4, 5})
        assert am1.credits == 1

    def test_weekends_have_no_slots(self):
        catalog = SlotCatalog.from_settings(Settings(_env_file=None))
        saturday = date(2025, 6, 7)
        assert catalog.slots_for(saturday) == []
        assert not catalog.is_operating_day(saturday)
        assert catalog.is_operating_day(date(2025, 6, 6))

    def test_slots_sorted_by_start_time(self):
        catalog = SlotCatalog(
            [
                Slot("PM", time(18, 0), time(19, 0), frozenset({1})),
                Slot("AM", time(7, 0), time(8, 0), frozenset({1})),
            ]
        )
        assert [slot.code for slot in catalog] == ["AM", "PM"]

    def test_duplicate_codes_rejected(self):
        with pytest.raises(ValueError):
            SlotCatalog(
                [
                    Slot("AM", time(7, 0), time(8, 0), frozenset({1})),
                    Slot("AM", time(9, 0), time(10, 0), frozenset({1})),
                ]
            )

    def test_require_unknown_code_raises(self):
        catalog = SlotCatalog.from_settings(Settings(_env_file=None))
        with pytest.raises(NotFoundException) as exc_info:
            catalog.require("PM9")
        assert exc_info.value.code == "SLOT_NOT_FOUND"

    def test_generate_schedule_for_one_week(self):
        catalog = SlotCatalog.from_settings(Settings(_env_file=None))
        schedule = catalog.generate_schedule(date(2025, 6, 2), weeks=1)

        # Five weekdays, two slots each
        assert len(schedule) == 10
        assert schedule[0][0] == date(2025, 6, 2)
        assert schedule[0][1].code == "AM1"
        assert all(day.isoweekday() <= 5 for day, _ in schedule)

    def test_per_slot_credit_override(self):
        config = Settings(
            _env_file=None,
            credits_per_slot=2,
            slots=[
                SlotConfig(code="AM1", start=time(7, 30), end=time(9, 30)),
                SlotConfig(code="PT", start=time(12, 0), end=time(13, 0), credits=3),
            ],
        )
        catalog = SlotCatalog.from_settings(config)
        assert catalog.require("AM1").credits == 2
        assert catalog.require("PT").credits == 3

    def test_slot_must_start_before_it_ends(self):
        with pytest.raises(ValueError):
            Slot("BAD", time(10, 0), time(9, 0), frozenset({1}))


def test_credit_packs_expose_unit_price():
    packs = credit_packs_from_settings(Settings(_env_file=None))
    assert packs["single"].unit_price_minor == 2500
    assert packs["pack10"].credits == 10
    assert packs["pack10"].unit_price_minor == 2250
