# slotbook/routes/v1/block_bookings.py
"""
Block booking routes - API v1

Endpoints:
    POST /preview - Occurrences and how many the member's credits cover
    POST / - Store a weekly pattern and book what is inside the horizon
    GET / - A member's patterns
    GET /{block_id} - Pattern details
    POST /{block_id}/pause - Stop booking further occurrences
    POST /{block_id}/resume - Reactivate and book what has come into range
    POST /{block_id}/extend - Move the end date out
    DELETE /{block_id} - Remove the pattern; its sessions are kept
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_block_booking_service
from ...core.exceptions import DomainException
from ...schemas.block_booking import (
    BlockBookingCreate,
    BlockBookingDeleteResponse,
    BlockBookingExtend,
    BlockBookingListResponse,
    BlockBookingOutcomeResponse,
    BlockBookingPattern,
    BlockBookingResponse,
    BlockOccurrenceResponse,
    BlockPreviewResponse,
)
from ...services.block_booking_service import BlockBookingOutcome, BlockBookingService
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["block-bookings-v1"])

BlockId = Annotated[str, Path(pattern=r"^[0-9A-HJKMNP-TV-Z]{26}$")]


def _outcome_response(outcome: BlockBookingOutcome) -> BlockBookingOutcomeResponse:
    occurrences = [
        BlockOccurrenceResponse(
            day=day,
            session_id=result.session.id if result.session is not None else None,
            error=result.error,
            message=result.message,
        )
        for day, result in outcome.result.results.items()
    ]
    return BlockBookingOutcomeResponse(
        block=BlockBookingResponse.model_validate(outcome.block),
        occurrences=occurrences,
        booked=len(outcome.result.booked),
        failed=len(outcome.result.failed),
    )


@router.post("/preview", response_model=BlockPreviewResponse)
async def preview_block_booking(
    pattern: BlockBookingPattern,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockPreviewResponse:
    try:
        preview = await asyncio.to_thread(
            service.preview,
            pattern.member_id,
            pattern.weekday,
            pattern.slot_code,
            pattern.start_date,
            pattern.end_date,
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return BlockPreviewResponse(
        days=preview.days,
        sessions=preview.sessions,
        credits_required=preview.credits_required,
        balance=preview.balance,
        sessions_covered=preview.sessions_covered,
        sessions_needing_payment=preview.sessions_needing_payment,
        credits_needed=preview.credits_needed,
    )


@router.post("", response_model=BlockBookingOutcomeResponse, status_code=status.HTTP_201_CREATED)
async def create_block_booking(
    block_data: BlockBookingCreate,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingOutcomeResponse:
    """Occurrences that could not be booked are reported per day, not as an error."""
    try:
        outcome = await asyncio.to_thread(
            lambda: service.create(
                block_data.member_id,
                block_data.weekday,
                block_data.slot_code,
                block_data.start_date,
                block_data.end_date,
                location_id=block_data.location_id,
                notes=block_data.notes,
            )
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return _outcome_response(outcome)


@router.get("", response_model=BlockBookingListResponse)
async def list_block_bookings(
    member_id: str = Query(..., min_length=1, max_length=64),
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingListResponse:
    blocks = await asyncio.to_thread(service.list_for_member, member_id)
    return BlockBookingListResponse(
        member_id=member_id,
        blocks=[BlockBookingResponse.model_validate(block) for block in blocks],
    )


@router.get("/{block_id}", response_model=BlockBookingResponse)
async def get_block_booking(
    block_id: BlockId,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingResponse:
    try:
        block = await asyncio.to_thread(service.get, block_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BlockBookingResponse.model_validate(block)


@router.post("/{block_id}/pause", response_model=BlockBookingResponse)
async def pause_block_booking(
    block_id: BlockId,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingResponse:
    try:
        block = await asyncio.to_thread(service.pause, block_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BlockBookingResponse.model_validate(block)


@router.post("/{block_id}/resume", response_model=BlockBookingOutcomeResponse)
async def resume_block_booking(
    block_id: BlockId,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingOutcomeResponse:
    try:
        outcome = await asyncio.to_thread(service.resume, block_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _outcome_response(outcome)


@router.post("/{block_id}/extend", response_model=BlockBookingOutcomeResponse)
async def extend_block_booking(
    extend_data: BlockBookingExtend,
    block_id: BlockId,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingOutcomeResponse:
    try:
        outcome = await asyncio.to_thread(service.extend, block_id, extend_data.end_date)
    except DomainException as exc:
        handle_domain_exception(exc)
    return _outcome_response(outcome)


@router.delete("/{block_id}", response_model=BlockBookingDeleteResponse)
async def delete_block_booking(
    block_id: BlockId,
    service: BlockBookingService = Depends(get_block_booking_service),
) -> BlockBookingDeleteResponse:
    try:
        kept = await asyncio.to_thread(service.delete, block_id)
    except DomainException as exc:
        handle_domain_exception(exc)
    return BlockBookingDeleteResponse(id=block_id, sessions_kept=kept)
