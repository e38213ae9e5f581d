# slotbook/routes/v1/members.py
"""
Member routes - API v1

Endpoints:
    GET /{member_id}/sessions/upcoming - Pending/confirmed sessions, soonest first
    GET /{member_id}/sessions/past - Completed and cancelled sessions, latest first
    GET /{member_id}/credits - Balance and status band
    GET /{member_id}/credits/history - Ledger entries, newest first
    GET /{member_id}/credits/purchases - Pack purchases, newest first
    POST /{member_id}/credits/purchase - Buy a credit pack
"""

import asyncio
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from ...api.dependencies import get_credit_ledger_service, get_member_directory, get_session_registry
from ...core.exceptions import DomainException, MemberNotFoundException
from ...schemas.booking import SessionListResponse, SessionResponse
from ...schemas.credits import (
    CreditBalanceResponse,
    CreditHistoryResponse,
    CreditPurchaseListResponse,
    CreditPurchaseRecord,
    CreditPurchaseRequest,
    CreditPurchaseResponse,
    LedgerEntryResponse,
)
from ...services.credit_ledger_service import CreditLedgerService, status_band_for
from ...services.member_directory import MemberDirectory
from ...services.session_registry import SessionRegistry
from ._errors import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["members-v1"])

MemberId = Annotated[str, Path(min_length=1, max_length=64)]


@router.get("/{member_id}/sessions/upcoming", response_model=SessionListResponse)
async def list_upcoming_sessions(
    member_id: MemberId,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionListResponse:
    sessions = await asyncio.to_thread(registry.list_upcoming, member_id)
    return SessionListResponse(
        member_id=member_id,
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/{member_id}/sessions/past", response_model=SessionListResponse)
async def list_past_sessions(
    member_id: MemberId,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionListResponse:
    sessions = await asyncio.to_thread(registry.list_past, member_id)
    return SessionListResponse(
        member_id=member_id,
        sessions=[SessionResponse.model_validate(s) for s in sessions],
        total=len(sessions),
    )


@router.get("/{member_id}/credits", response_model=CreditBalanceResponse)
async def get_credit_balance(
    member_id: MemberId,
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
) -> CreditBalanceResponse:
    balance = await asyncio.to_thread(ledger.balance, member_id)
    return CreditBalanceResponse(
        member_id=member_id,
        balance=balance,
        status_band=status_band_for(balance, ledger.config.status_warning_threshold),
    )


@router.get("/{member_id}/credits/history", response_model=CreditHistoryResponse)
async def get_credit_history(
    member_id: MemberId,
    limit: int = Query(50, ge=1, le=500),
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
) -> CreditHistoryResponse:
    entries = await asyncio.to_thread(ledger.history, member_id, limit)
    balance = await asyncio.to_thread(ledger.balance, member_id)
    return CreditHistoryResponse(
        member_id=member_id,
        balance=balance,
        entries=[LedgerEntryResponse.model_validate(entry) for entry in entries],
    )


@router.get("/{member_id}/credits/purchases", response_model=CreditPurchaseListResponse)
async def list_credit_purchases(
    member_id: MemberId,
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
) -> CreditPurchaseListResponse:
    purchases = await asyncio.to_thread(ledger.purchases, member_id)
    return CreditPurchaseListResponse(
        member_id=member_id,
        purchases=[CreditPurchaseRecord.model_validate(p) for p in purchases],
    )


@router.post(
    "/{member_id}/credits/purchase",
    response_model=CreditPurchaseResponse,
    status_code=status.HTTP_201_CREATED,
)
async def purchase_credits(
    purchase_data: CreditPurchaseRequest,
    member_id: MemberId,
    ledger: CreditLedgerService = Depends(get_credit_ledger_service),
    members: MemberDirectory = Depends(get_member_directory),
) -> CreditPurchaseResponse:
    """Charge the payment provider for a pack; a failed charge adds nothing."""
    if not members.exists(member_id):
        handle_domain_exception(MemberNotFoundException(member_id))
    try:
        result = await asyncio.to_thread(
            lambda: ledger.purchase_pack(
                member_id,
                purchase_data.pack_code,
                payment_method=purchase_data.payment_method,
                payer_ref=purchase_data.payer_ref,
            )
        )
    except DomainException as exc:
        handle_domain_exception(exc)
    return CreditPurchaseResponse(
        purchase_id=result.purchase_id,
        transaction_id=result.transaction_id,
        charge_id=result.charge_id,
        credits=result.credits,
        amount_minor=result.amount_minor,
        balance=result.balance,
        status_band=status_band_for(result.balance, ledger.config.status_warning_threshold),
    )
