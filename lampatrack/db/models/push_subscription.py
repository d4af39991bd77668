"""Push Notification Subscription model."""
import uuid

from sqlalchemy import Column, DateTime, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.sql import func

from lampatrack.db.base import Base


class PushSubscription(Base):
    """Stores Web Push API subscription details for a user."""

    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscriptions_user_endpoint"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Issued by the external identity provider, no local users table.
    user_id = Column(String(255), nullable=False, index=True)

    endpoint = Column(Text, nullable=False, index=True)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<PushSubscription {self.user_id} {self.endpoint[:40]}>"
