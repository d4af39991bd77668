"""Database models package."""
from lampatrack.db.models.push_subscription import PushSubscription

__all__ = ["PushSubscription"]
