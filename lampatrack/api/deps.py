"""Shared API dependencies."""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from lampatrack.config import settings
from lampatrack.core.security import InvalidTokenError, decode_token
from lampatrack.db.session import SessionLocal
from lampatrack.services.delivery import PushTransport, WebPushTransport
from lampatrack.services.notification_service import NotificationService, build_notification_service
from lampatrack.services.subscription_store import SqlAlchemySubscriptionStore, SubscriptionStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Session:
    """Yield a database session for request lifetime."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_subscription_store(db: Session = Depends(get_db)) -> SubscriptionStore:
    return SqlAlchemySubscriptionStore(db)


def get_push_transport() -> PushTransport:
    return WebPushTransport.from_settings(settings)


def get_notification_service(
    store: SubscriptionStore = Depends(get_subscription_store),
    transport: PushTransport = Depends(get_push_transport),
) -> NotificationService:
    """Assemble the notification service with request-scoped dependencies."""

    return build_notification_service(store, transport, settings)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """Verify the bearer token issued by the identity provider."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exception
    try:
        payload = decode_token(credentials.credentials)
    except InvalidTokenError as exc:
        raise credentials_exception from exc
    if not payload.get("sub"):
        raise credentials_exception
    return payload


def get_current_user_id(payload: Dict[str, Any] = Depends(get_token_payload)) -> str:
    return str(payload["sub"])


def require_dispatch_role(payload: Dict[str, Any] = Depends(get_token_payload)) -> Dict[str, Any]:
    """Only the approval workflow (admins or the service role) may trigger pushes."""

    if payload.get("role") not in settings.DISPATCH_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to send notifications",
        )
    return payload
