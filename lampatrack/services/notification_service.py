"""Service for handling Web Push notifications."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from loguru import logger

from lampatrack.config import Settings, settings as default_settings
from lampatrack.schemas.notification import NotificationRequest, SubscriptionCreate
from lampatrack.services.delivery import DeliveryClient, PushTransport
from lampatrack.services.dispatch import DispatchResult, NotificationContent, NotificationDispatcher
from lampatrack.services.subscription_store import Subscription, SubscriptionStore
from lampatrack.utils.exceptions import UnknownStatusError, ValidationError

REQUIRED_FIELDS = ("signalement_id", "user_id", "new_status")

# Add a row here before the approval workflow starts emitting a new status.
STATUS_CONTENT: Dict[str, NotificationContent] = {
    "approved": NotificationContent(
        title="✅ Signalement approuvé",
        body="Votre signalement a été approuvé par l'administrateur.",
    ),
    "rejected": NotificationContent(
        title="❌ Signalement rejeté",
        body="Votre signalement a été rejeté par l'administrateur.",
    ),
}


def _field_value(data: Mapping[str, Any], name: str) -> Optional[str]:
    # Falsy values (None, "", 0) count as missing.
    value = data.get(name)
    if not value or isinstance(value, bool) or not isinstance(value, (str, int)):
        return None
    text = str(value).strip()
    return text or None


def parse_notification_request(data: Any) -> NotificationRequest:
    """Validate an inbound trigger, rejecting it as a whole if any field is missing."""

    if isinstance(data, NotificationRequest):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError("Missing fields", {"missing": list(REQUIRED_FIELDS)})

    values = {name: _field_value(data, name) for name in REQUIRED_FIELDS}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise ValidationError("Missing fields", {"missing": missing})
    return NotificationRequest(**values)


def resolve_status_content(new_status: str) -> NotificationContent:
    """Return the title/body for ``new_status`` or refuse to notify."""

    try:
        return STATUS_CONTENT[new_status]
    except KeyError:
        raise UnknownStatusError(f"Unknown status: {new_status}") from None


class NotificationService:
    def __init__(self, store: SubscriptionStore, dispatcher: NotificationDispatcher):
        self.store = store
        self.dispatcher = dispatcher

    async def notify_status_change(self, data: Any) -> DispatchResult:
        """Notify the owner of a report that its status changed.

        Validation, status lookup and the delivery configuration check all
        happen before the subscription store is read.
        """
        request = parse_notification_request(data)
        content = resolve_status_content(request.new_status)
        self.dispatcher.delivery.check_configured()
        return await self.dispatcher.dispatch(request, content)

    def subscribe(self, user_id: str, subscription_info: SubscriptionCreate) -> Subscription:
        """Register (or refresh the keys of) a browser subscription."""
        subscription = self.store.upsert(
            Subscription(
                user_id=user_id,
                endpoint=subscription_info.endpoint,
                auth_key=subscription_info.keys.auth,
                p256dh_key=subscription_info.keys.p256dh,
            )
        )
        logger.info("Push subscription registered", user_id=user_id)
        return subscription

    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        removed = self.store.delete_for_user(user_id, endpoint)
        logger.info("Push subscription removed", user_id=user_id, removed=removed)
        return removed


def build_notification_service(
    store: SubscriptionStore,
    transport: PushTransport,
    config: Settings | None = None,
) -> NotificationService:
    """Assemble the notification pipeline from configuration."""

    config = config or default_settings
    delivery = DeliveryClient(transport, timeout=config.PUSH_DELIVERY_TIMEOUT_SECONDS)
    dispatcher = NotificationDispatcher(store, delivery, max_concurrency=config.PUSH_MAX_CONCURRENCY)
    return NotificationService(store, dispatcher)
