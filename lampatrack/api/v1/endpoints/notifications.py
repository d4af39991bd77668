"""Push notification API endpoints."""
from __future__ import annotations

import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from lampatrack.api import deps
from lampatrack.config import settings
from lampatrack.schemas import SubscriptionCreate, UnsubscribeRequest
from lampatrack.services.notification_service import NotificationService
from lampatrack.utils.exceptions import InternalServiceError, LampaTrackException, ValidationError

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/vapid-public-key")
def get_vapid_public_key():
    return {"publicKey": settings.VAPID_PUBLIC_KEY or ""}


@router.post("/subscribe")
def subscribe(
    subscription: SubscriptionCreate,
    user_id: str = Depends(deps.get_current_user_id),
    service: NotificationService = Depends(deps.get_notification_service),
):
    service.subscribe(user_id, subscription)
    return {"status": "success"}


@router.post("/unsubscribe")
def unsubscribe(
    body: UnsubscribeRequest,
    user_id: str = Depends(deps.get_current_user_id),
    service: NotificationService = Depends(deps.get_notification_service),
):
    removed = service.unsubscribe(user_id, body.endpoint)
    return {"status": "success", "removed": removed}


@router.post("/send-push-notification", dependencies=[Depends(deps.require_dispatch_role)])
async def send_push_notification(
    request: Request,
    service: NotificationService = Depends(deps.get_notification_service),
) -> JSONResponse:
    """Push a report status change to every browser of the report owner."""

    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError("Missing fields") from exc

    try:
        result = await service.notify_status_change(data)
    except LampaTrackException:
        raise
    except Exception as exc:
        logger.opt(exception=exc).error("Push dispatch failed", path=request.url.path)
        raise InternalServiceError("Internal server error") from exc

    if result.attempted == 0:
        return JSONResponse({"sent": 0, "message": "No subscriptions found"})
    return JSONResponse({"sent": result.sent_count, "failed": result.pruned_count})
