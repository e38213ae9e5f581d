# slotbook/core/enums.py
"""
Core enums for slotbook.

String-valued so they compare equal to the values stored in the database
and serialize directly in API responses.
"""

from enum import Enum


class SessionStatus(str, Enum):
    """Lifecycle of a booked training session."""

    PENDING = "PENDING"  # Awaiting manual approval
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"  # Slot end time has passed
    CANCELLED = "CANCELLED"  # Terminal; frees the slot

    @property
    def is_active(self) -> bool:
        return self in (SessionStatus.PENDING, SessionStatus.CONFIRMED)

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


ACTIVE_SESSION_STATUSES = (SessionStatus.PENDING, SessionStatus.CONFIRMED)


class LedgerEntryType(str, Enum):
    """Kinds of credit ledger transactions."""

    PURCHASE = "purchase"
    CONSUME = "consume"
    REFUND = "refund"
    COMP = "comp"  # Complimentary or referral credit granted by staff


class SlotAvailability(str, Enum):
    """Availability of one slot on one day."""

    FREE = "free"
    BOOKED = "booked"
    UNAVAILABLE = "unavailable"


class StatusBand(str, Enum):
    """Credit balance banding shown to members."""

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class PurchaseStatus(str, Enum):
    """State of a credit pack purchase."""

    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    NEEDS_RECONCILIATION = "NEEDS_RECONCILIATION"  # Charged, credits not added


class BookingErrorCode(str, Enum):
    """Typed outcomes a caller branches on when booking or cancelling."""

    INVALID_DATE = "INVALID_DATE"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"
    INSUFFICIENT_CREDITS = "INSUFFICIENT_CREDITS"
    MEMBER_NOT_FOUND = "MEMBER_NOT_FOUND"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    ALREADY_TERMINAL = "ALREADY_TERMINAL"
    BOOKING_FAILED = "BOOKING_FAILED"


class BlockBookingStatus(str, Enum):
    """Whether a recurring pattern keeps booking new occurrences."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"
