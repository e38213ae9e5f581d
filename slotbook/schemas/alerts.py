"""Operator alert schemas."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict

from .base import StandardizedModel


class OperatorAlertResponse(StandardizedModel):
    id: str
    alert_type: str
    severity: str
    title: str
    message: str
    member_id: Optional[str] = None
    correlation_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class OperatorAlertListResponse(StandardizedModel):
    alerts: List[OperatorAlertResponse]
    total: int
