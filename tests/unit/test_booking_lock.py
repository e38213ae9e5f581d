from datetime import date
import threading

from slotbook.core.booking_lock import _LOCAL_LOCKS, member_lock, slot_lock, slot_lock_key


def test_slot_lock_key_is_scoped_to_location_day_and_slot():
    assert slot_lock_key("elevate", date(2025, 6, 3), "AM1") == "slot:elevate:2025-06-03:AM1"


def test_lock_acquired_and_released():
    with slot_lock("elevate", date(2025, 6, 3), "AM1", timeout=1.0) as acquired:
        assert acquired
    with slot_lock("elevate", date(2025, 6, 3), "AM1", timeout=1.0) as acquired:
        assert acquired


def test_contended_lock_times_out():
    held = threading.Event()
    release = threading.Event()

    def holder():
        with member_lock("alice", timeout=1.0):
            held.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    try:
        assert held.wait(5)
        with member_lock("alice", timeout=0.05) as acquired:
            assert acquired is False
    finally:
        release.set()
        thread.join()


def test_different_keys_do_not_contend():
    with member_lock("alice", timeout=1.0) as first:
        with member_lock("bob", timeout=0.05) as second:
            assert first and second


def test_unused_locks_are_dropped():
    before = _LOCAL_LOCKS.active_keys()
    with slot_lock("elevate", date(2025, 6, 4), "AM2", timeout=1.0):
        assert _LOCAL_LOCKS.active_keys() == before + 1
    assert _LOCAL_LOCKS.active_keys() == before
