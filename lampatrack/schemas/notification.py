"""Pydantic models for push notification API interactions."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NotificationRequest(BaseModel):
    """Status change that should reach the owner of a report."""

    signalement_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    new_status: str = Field(min_length=1)

    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(min_length=1)
    auth: str = Field(min_length=1)


class SubscriptionCreate(BaseModel):
    """Browser ``PushSubscription.toJSON()`` body."""

    endpoint: str = Field(min_length=1)
    keys: SubscriptionKeys


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(min_length=1)
