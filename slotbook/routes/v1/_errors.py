"""Shared error translation for v1 routes."""

from typing import NoReturn, Optional

from fastapi import HTTPException, status

from ...core.enums import BookingErrorCode
from ...core.exceptions import DomainException
from ...schemas.booking import BookingErrorDetail

BOOKING_ERROR_STATUS = {
    BookingErrorCode.INVALID_DATE: status.HTTP_400_BAD_REQUEST,
    BookingErrorCode.MEMBER_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.SESSION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookingErrorCode.SLOT_UNAVAILABLE: status.HTTP_409_CONFLICT,
    BookingErrorCode.ALREADY_TERMINAL: status.HTTP_409_CONFLICT,
    BookingErrorCode.INSUFFICIENT_CREDITS: status.HTTP_402_PAYMENT_REQUIRED,
    BookingErrorCode.BOOKING_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()


def raise_booking_error(
    code: BookingErrorCode,
    message: Optional[str],
    *,
    correlation_id: Optional[str] = None,
    details: Optional[dict] = None,
) -> NoReturn:
    body = BookingErrorDetail(
        message=message or code.value,
        code=code,
        correlation_id=correlation_id,
        details=details or {},
    )
    raise HTTPException(status_code=BOOKING_ERROR_STATUS[code], detail=body.model_dump())
