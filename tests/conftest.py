"""Pytest fixtures for dispatch and API tests."""

import asyncio
import os
from collections.abc import Generator
from typing import Any, Dict, List, Tuple

os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient
from pywebpush import WebPushException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from lampatrack.api.deps import get_db, get_push_transport
from lampatrack.core.security import create_access_token
from lampatrack.db.base import Base
from lampatrack.db.models import PushSubscription
from lampatrack.main import create_app
from lampatrack.services.subscription_store import Subscription
from lampatrack.utils.exceptions import ConfigurationError


class FakeResponse:
    def __init__(self, status_code: int, text: str = ""):
        self.status_code = status_code
        self.text = text or f"status {status_code}"


class FakeTransport:
    """Push transport whose behaviour is scripted per endpoint.

    A behaviour is ``"ok"``, an HTTP status code, ``"hang"`` or an exception instance.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.behaviours: Dict[str, Any] = {}
        self.configured = True
        self.delay = delay
        self.calls: List[Tuple[str, bytes]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.cancelled: List[str] = []

    def check_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("VAPID keys not configured")

    async def send(self, subscription: Subscription, payload: bytes) -> None:
        self.calls.append((subscription.endpoint, payload))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            behaviour = self.behaviours.get(subscription.endpoint, "ok")
            if behaviour == "hang":
                await asyncio.Event().wait()
            elif isinstance(behaviour, int):
                raise WebPushException(f"Push failed: {behaviour}", response=FakeResponse(behaviour))
            elif isinstance(behaviour, BaseException):
                raise behaviour
        except asyncio.CancelledError:
            self.cancelled.append(subscription.endpoint)
            raise
        finally:
            self.in_flight -= 1

    @property
    def endpoints(self) -> List[str]:
        return [endpoint for endpoint, _ in self.calls]


def make_subscription(user_id: str, endpoint: str, auth: str = "auth-key", p256dh: str = "p256dh-key") -> Subscription:
    return Subscription(user_id=user_id, endpoint=endpoint, auth_key=auth, p256dh_key=p256dh)


@pytest.fixture()
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[PushSubscription.__table__])
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=[PushSubscription.__table__])
        engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Generator[Session, None, None]:
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def subscription_factory():
    return make_subscription


@pytest.fixture()
def client(db_session: Session, fake_transport: FakeTransport) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_transport] = lambda: fake_transport
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def service_headers() -> Dict[str, str]:
    token = create_access_token("approval-workflow", role="service_role")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def user_headers() -> Dict[str, str]:
    token = create_access_token("user-1")
    return {"Authorization": f"Bearer {token}"}
