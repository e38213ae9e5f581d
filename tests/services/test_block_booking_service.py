from datetime import date, datetime

import pytest

from slotbook.core.enums import BlockBookingStatus, BookingErrorCode, SessionStatus
from slotbook.core.exceptions import MemberNotFoundException, NotFoundException, ValidationException
from slotbook.models.training_session import TrainingSession
from slotbook.services.block_booking_service import BlockBookingService

TUESDAY = 2


@pytest.fixture
def blocks(db, scheduler) -> BlockBookingService:
    return BlockBookingService(db, scheduler=scheduler)


class TestPreview:
    def test_counts_occurrences_and_coverage(self, blocks, give_credits):
        give_credits("alice", 3)

        preview = blocks.preview("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 7, 31))

        assert preview.sessions == 9
        assert preview.days[0] == date(2025, 6, 3)
        assert preview.days[-1] == date(2025, 7, 29)
        assert preview.credits_required == 9
        assert preview.sessions_covered == 3
        assert preview.sessions_needing_payment == 6
        assert preview.credits_needed == 6

    def test_slot_not_offered_on_weekday(self, blocks):
        with pytest.raises(ValidationException) as exc_info:
            blocks.preview("alice", 6, "AM1", date(2025, 6, 1), date(2025, 6, 30))
        assert exc_info.value.code == "SLOT_NOT_OFFERED"

    def test_unknown_slot(self, blocks):
        with pytest.raises(NotFoundException):
            blocks.preview("alice", TUESDAY, "PM9", date(2025, 6, 1), date(2025, 6, 30))


class TestCreate:
    def test_books_only_inside_the_horizon(self, blocks, ledger, give_credits):
        give_credits("alice", 10)

        outcome = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 8, 26), notes="Tuesday PT")

        block = outcome.block
        assert block.status == BlockBookingStatus.ACTIVE.value
        assert block.notes == "Tuesday PT"
        # Horizon from Monday 2 June is 30 June
        assert [s.session_date for s in outcome.result.booked] == [
            date(2025, 6, 3),
            date(2025, 6, 10),
            date(2025, 6, 17),
            date(2025, 6, 24),
        ]
        assert block.booked_through == date(2025, 6, 30)
        assert ledger.balance("alice") == 6

    def test_unknown_member(self, blocks):
        with pytest.raises(MemberNotFoundException):
            blocks.create("mallory", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 30))

    def test_block_ending_in_the_past(self, blocks):
        with pytest.raises(ValidationException):
            blocks.create("alice", TUESDAY, "AM1", date(2025, 5, 1), date(2025, 5, 31))

    def test_shortfall_is_reported_per_day(self, blocks, give_credits):
        give_credits("alice", 1)

        outcome = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 30))

        assert len(outcome.result.booked) == 1
        assert {r.error for r in outcome.result.failed.values()} == {BookingErrorCode.INSUFFICIENT_CREDITS}


class TestLifecycle:
    def test_fill_books_occurrences_as_they_come_into_range(self, blocks, clock, give_credits):
        give_credits("alice", 10)
        block_id = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 7, 15)).block.id

        clock.set(datetime(2025, 6, 9, 8, 0))
        filled = blocks.fill_due()

        assert [s.session_date for s in filled[block_id].booked] == [date(2025, 7, 1)]
        assert blocks.get(block_id).booked_through == date(2025, 7, 7)

        clock.set(datetime(2025, 6, 9, 18, 0))
        assert blocks.fill_due()[block_id].results == {}

    def test_paused_block_is_not_filled(self, blocks, clock, give_credits):
        give_credits("alice", 10)
        block_id = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 7, 15)).block.id

        paused = blocks.pause(block_id)
        assert paused.status == BlockBookingStatus.PAUSED.value

        clock.set(datetime(2025, 6, 9, 8, 0))
        assert block_id not in blocks.fill_due()

        resumed = blocks.resume(block_id)
        assert resumed.block.status == BlockBookingStatus.ACTIVE.value
        assert [s.session_date for s in resumed.result.booked] == [date(2025, 7, 1)]

    def test_extend_books_new_occurrences_in_range(self, blocks, give_credits):
        give_credits("alice", 10)
        block_id = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 12)).block.id

        outcome = blocks.extend(block_id, date(2025, 6, 30))

        assert outcome.block.end_date == date(2025, 6, 30)
        assert [s.session_date for s in outcome.result.booked] == [
            date(2025, 6, 17),
            date(2025, 6, 24),
        ]

    def test_extend_must_move_the_end_out(self, blocks):
        block_id = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 30)).block.id
        with pytest.raises(ValidationException):
            blocks.extend(block_id, date(2025, 6, 30))

    def test_delete_keeps_created_sessions(self, blocks, db, give_credits):
        give_credits("alice", 10)
        block_id = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 30)).block.id

        assert blocks.delete(block_id) == 4

        with pytest.raises(NotFoundException):
            blocks.get(block_id)
        kept = db.query(TrainingSession).filter(TrainingSession.block_booking_id == block_id).all()
        assert len(kept) == 4
        assert {s.status for s in kept} == {SessionStatus.CONFIRMED.value}

    def test_list_for_member(self, blocks):
        first = blocks.create("alice", TUESDAY, "AM1", date(2025, 6, 1), date(2025, 6, 30)).block.id
        second = blocks.create("alice", 4, "AM2", date(2025, 6, 5), date(2025, 6, 30)).block.id

        assert [b.id for b in blocks.list_for_member("alice")] == [first, second]
        assert blocks.list_for_member("bob") == []
