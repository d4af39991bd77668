"""Celery tasks for report status notifications."""
from __future__ import annotations

import asyncio

from loguru import logger

from lampatrack.celery_app import celery_app
from lampatrack.db.session import SessionLocal
from lampatrack.services.delivery import WebPushTransport
from lampatrack.services.notification_service import build_notification_service
from lampatrack.services.subscription_store import SqlAlchemySubscriptionStore
from lampatrack.utils.exceptions import LampaTrackException


@celery_app.task(name="lampatrack.tasks.notifications.send_status_notification")
def send_status_notification(signalement_id: str, user_id: str, new_status: str) -> dict[str, int]:
    """Push a report status change from the approval workflow's queue."""

    db = SessionLocal()
    try:
        service = build_notification_service(
            SqlAlchemySubscriptionStore(db),
            WebPushTransport.from_settings(),
        )
        try:
            result = asyncio.run(
                service.notify_status_change(
                    {"signalement_id": signalement_id, "user_id": user_id, "new_status": new_status}
                )
            )
        except LampaTrackException as exc:
            logger.error(
                "Status notification rejected",
                signalement_id=signalement_id,
                user_id=user_id,
                error=exc.message,
            )
            raise

        return {
            "attempted": result.attempted,
            "sent": result.sent_count,
            "failed": result.pruned_count,
        }
    finally:
        db.close()
