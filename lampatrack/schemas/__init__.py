"""Pydantic schemas package."""
from lampatrack.schemas.notification import (
    NotificationRequest,
    SubscriptionCreate,
    SubscriptionKeys,
    UnsubscribeRequest,
)

__all__ = [
    "NotificationRequest",
    "SubscriptionCreate",
    "SubscriptionKeys",
    "UnsubscribeRequest",
]
