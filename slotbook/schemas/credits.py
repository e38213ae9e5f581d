"""Credit ledger schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import ConfigDict, Field

from ..core.enums import LedgerEntryType, PurchaseStatus, StatusBand
from .base import StandardizedModel, StrictRequestModel


class CreditBalanceResponse(StandardizedModel):
    member_id: str
    balance: int
    status_band: StatusBand


class LedgerEntryResponse(StandardizedModel):
    id: str
    entry_type: LedgerEntryType
    amount: int
    unit_price_minor: Optional[int] = None
    booking_id: Optional[str] = None
    charge_id: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class CreditHistoryResponse(StandardizedModel):
    member_id: str
    balance: int
    entries: List[LedgerEntryResponse]


class CreditPurchaseRequest(StrictRequestModel):
    pack_code: str = Field(..., min_length=1, max_length=32, description="Configured credit pack code")
    payment_method: str = Field(..., min_length=1, max_length=64, description="Provider payment method id")
    payer_ref: str = Field(..., min_length=1, max_length=255, description="Provider customer reference")


class CreditPurchaseResponse(StandardizedModel):
    purchase_id: str
    transaction_id: str
    charge_id: str
    credits: int
    amount_minor: int
    balance: int
    status_band: StatusBand


class CreditPurchaseRecord(StandardizedModel):
    id: str
    pack_code: str
    credits: int
    amount_minor: int
    currency: str
    status: PurchaseStatus
    charge_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    settled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class CreditPurchaseListResponse(StandardizedModel):
    member_id: str
    purchases: List[CreditPurchaseRecord]
