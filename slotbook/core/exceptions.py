# slotbook/core/exceptions.py
"""
Domain-specific exceptions for slotbook.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from datetime import date
from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class PaymentRequiredException(DomainException):
    """Raised when an operation needs credits or money the member lacks."""

    status_code = status.HTTP_402_PAYMENT_REQUIRED


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InvalidDateException(ValidationException):
    """Raised when a day is outside the bookable horizon."""

    def __init__(self, day: date, reason: str):
        super().__init__(
            message=f"{day.isoformat()} cannot be booked: {reason}",
            code="INVALID_DATE",
            details={"day": day.isoformat(), "reason": reason},
        )


class SlotUnavailableException(ConflictException):
    """Raised when a (day, slot) already holds an active reservation."""

    def __init__(self, day: date, slot_code: str, location_id: str):
        super().__init__(
            message=f"Slot {slot_code} on {day.isoformat()} is not available",
            code="SLOT_UNAVAILABLE",
            details={"day": day.isoformat(), "slot_code": slot_code, "location_id": location_id},
        )


class InsufficientCreditsException(PaymentRequiredException):
    """Raised when a debit would take the balance below zero."""

    def __init__(self, member_id: str, balance: int, required: int):
        super().__init__(
            message=f"Insufficient credits: balance {balance}, required {required}",
            code="INSUFFICIENT_CREDITS",
            details={"member_id": member_id, "balance": balance, "required": required},
        )


class AlreadyRefundedException(ConflictException):
    """Raised when a booking's credit has already been returned."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Credit for this booking has already been refunded",
            code="ALREADY_REFUNDED",
            details={"booking_id": booking_id},
        )


class AlreadyTerminalException(ConflictException):
    """Raised when a completed or cancelled session is transitioned again."""

    def __init__(self, session_id: str, current_status: str):
        super().__init__(
            message=f"Session is already {current_status.lower()}",
            code="ALREADY_TERMINAL",
            details={"session_id": session_id, "status": current_status},
        )


class MemberNotFoundException(NotFoundException):
    def __init__(self, member_id: str):
        super().__init__(
            message="Member not found",
            code="MEMBER_NOT_FOUND",
            details={"member_id": member_id},
        )


class PaymentException(PaymentRequiredException):
    """Provider-specific charge failure; callers retry with a fresh charge."""

    def __init__(self, message: str, *, provider_code: Optional[str] = None, retryable: bool = True):
        super().__init__(
            message=message,
            code="PAYMENT_ERROR",
            details={"provider_code": provider_code, "retryable": retryable},
        )
        self.provider_code = provider_code
        self.retryable = retryable


class CompensationFailedException(ServiceException):
    """
    Raised when the refund that undoes a failed booking itself fails.

    The ledger is left debited without a session; an operator alert has been
    recorded and manual reconciliation is required.
    """

    def __init__(self, booking_id: str, correlation_id: str, alert_id: Optional[str] = None):
        super().__init__(
            message="Booking compensation failed; manual reconciliation required",
            code="COMPENSATION_FAILED",
            details={
                "booking_id": booking_id,
                "correlation_id": correlation_id,
                "alert_id": alert_id,
            },
        )
        self.booking_id = booking_id
        self.correlation_id = correlation_id
        self.alert_id = alert_id


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class BookingTimeoutException(ServiceException):
    """Raised internally when a booking attempt misses its deadline before commit."""

    def __init__(self, stage: str, timeout_seconds: float):
        super().__init__(
            message=f"Booking timed out during {stage}",
            code="BOOKING_TIMEOUT",
            details={"stage": stage, "timeout_seconds": timeout_seconds},
        )


class PurchaseSettlementException(ServiceException):
    """
    Raised when a captured charge could not be turned into credits.

    The purchase is flagged for reconciliation and an operator alert has been
    recorded.
    """

    def __init__(self, purchase_id: str, charge_id: str, correlation_id: str, alert_id: Optional[str] = None):
        super().__init__(
            message="Payment was taken but the credits could not be added; support has been notified",
            code="PURCHASE_SETTLEMENT_FAILED",
            details={
                "purchase_id": purchase_id,
                "charge_id": charge_id,
                "correlation_id": correlation_id,
                "alert_id": alert_id,
            },
        )
        self.purchase_id = purchase_id
        self.charge_id = charge_id
        self.correlation_id = correlation_id
        self.alert_id = alert_id
