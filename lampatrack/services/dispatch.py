"""Fan a status-change notification out to every subscription of a user."""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Dict, Iterable, List

from loguru import logger

from lampatrack.config import settings
from lampatrack.schemas.notification import NotificationRequest
from lampatrack.services.delivery import DeliveryClient, DeliveryOutcome, DeliveryStatus
from lampatrack.services.subscription_store import Subscription, SubscriptionStore


@dataclass(frozen=True)
class NotificationContent:
    title: str
    body: str


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate returned to callers; per-endpoint detail stays in the logs."""

    sent_count: int
    pruned_count: int
    attempted: int = 0


def notification_tag(signalement_id: str) -> str:
    """Tag used by the service worker to collapse notifications about one report."""

    return f"signalement-{signalement_id}"


def build_notification_payload(
    request: NotificationRequest,
    content: NotificationContent,
    icon: str | None = None,
    badge: str | None = None,
) -> bytes:
    """Serialize the message shown by the receiving service worker."""

    payload = {
        "title": content.title,
        "body": content.body,
        "icon": icon or settings.NOTIFICATION_ICON,
        "badge": badge or settings.NOTIFICATION_BADGE,
        "tag": notification_tag(request.signalement_id),
        "data": {"signalement_id": request.signalement_id, "status": request.new_status},
    }
    return json.dumps(payload, ensure_ascii=False).encode("utf-8")


def unique_by_endpoint(subscriptions: Iterable[Subscription]) -> List[Subscription]:
    """Keep one subscription per endpoint, in a stable order."""

    unique: Dict[str, Subscription] = {}
    for subscription in sorted(subscriptions, key=lambda sub: (sub.endpoint, sub.user_id)):
        unique.setdefault(subscription.endpoint, subscription)
    return list(unique.values())


class NotificationDispatcher:
    """Deliver one payload to a user's subscriptions and prune the dead ones."""

    def __init__(
        self,
        store: SubscriptionStore,
        delivery: DeliveryClient,
        max_concurrency: int = 10,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.store = store
        self.delivery = delivery
        self.max_concurrency = max_concurrency

    async def _deliver_all(self, subscriptions: List[Subscription], payload: bytes) -> List[DeliveryOutcome]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def attempt(subscription: Subscription) -> DeliveryOutcome:
            async with semaphore:
                return await self.delivery.deliver(subscription, payload)

        # Cancelling the caller cancels every pending attempt through gather.
        return list(await asyncio.gather(*(attempt(sub) for sub in subscriptions)))

    async def dispatch(self, request: NotificationRequest, content: NotificationContent) -> DispatchResult:
        # Blocking store calls run in a worker thread.
        listed = await asyncio.to_thread(self.store.list_by_user, request.user_id)
        subscriptions = unique_by_endpoint(listed)
        if not subscriptions:
            logger.info("No push subscriptions for user", user_id=request.user_id)
            return DispatchResult(sent_count=0, pruned_count=0, attempted=0)

        payload = build_notification_payload(request, content)
        outcomes = await self._deliver_all(subscriptions, payload)

        sent_count = sum(1 for outcome in outcomes if outcome.status is DeliveryStatus.DELIVERED)
        pruned = {outcome.endpoint for outcome in outcomes if outcome.status is DeliveryStatus.PERMANENT_FAILURE}
        transient = sum(1 for outcome in outcomes if outcome.status is DeliveryStatus.TRANSIENT_FAILURE)

        if pruned:
            await asyncio.to_thread(self.store.delete_many, pruned)

        logger.info(
            "Push dispatch finished",
            signalement_id=request.signalement_id,
            user_id=request.user_id,
            attempted=len(subscriptions),
            sent=sent_count,
            pruned=len(pruned),
            transient=transient,
        )
        return DispatchResult(sent_count=sent_count, pruned_count=len(pruned), attempted=len(subscriptions))
