# slotbook/routes/v1/alerts.py
"""
Operator alert routes - API v1

Endpoints:
    GET / - Unresolved alerts, newest first, optionally filtered by type
    GET /correlation/{correlation_id} - Alerts for a failure reported to a client
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from ...api.dependencies import get_alert_service
from ...schemas.alerts import OperatorAlertListResponse, OperatorAlertResponse
from ...services.alert_service import AlertService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["alerts-v1"])


@router.get("", response_model=OperatorAlertListResponse)
async def list_open_alerts(
    alert_type: Optional[str] = Query(None, max_length=50),
    alert_service: AlertService = Depends(get_alert_service),
) -> OperatorAlertListResponse:
    alerts = await asyncio.to_thread(alert_service.list_open_alerts, alert_type)
    return OperatorAlertListResponse(
        alerts=[OperatorAlertResponse.model_validate(alert) for alert in alerts],
        total=len(alerts),
    )


@router.get("/correlation/{correlation_id}", response_model=OperatorAlertListResponse)
async def list_alerts_for_correlation(
    correlation_id: str = Path(..., pattern=r"^[0-9A-HJKMNP-TV-Z]{26}$"),
    alert_service: AlertService = Depends(get_alert_service),
) -> OperatorAlertListResponse:
    alerts = await asyncio.to_thread(alert_service.alerts_for_correlation, correlation_id)
    return OperatorAlertListResponse(
        alerts=[OperatorAlertResponse.model_validate(alert) for alert in alerts],
        total=len(alerts),
    )
