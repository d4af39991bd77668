"""Persistence of browser push subscriptions."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Protocol, Set, Tuple

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lampatrack.db.models.push_subscription import PushSubscription


@dataclass(frozen=True)
class Subscription:
    """One browser channel registered by a user."""

    user_id: str
    endpoint: str
    auth_key: str
    p256dh_key: str
    created_at: datetime | None = field(default=None, compare=False)

    def as_subscription_info(self) -> Dict[str, object]:
        """Return the ``PushSubscription.toJSON()`` shape expected by ``pywebpush``."""

        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh_key, "auth": self.auth_key},
        }

    @classmethod
    def from_row(cls, row: PushSubscription) -> "Subscription":
        return cls(
            user_id=row.user_id,
            endpoint=row.endpoint,
            auth_key=row.auth,
            p256dh_key=row.p256dh,
            created_at=row.created_at,
        )


class SubscriptionStore(Protocol):
    """Storage contract consumed by the dispatch pipeline."""

    def list_by_user(self, user_id: str) -> Set[Subscription]:  # pragma: no cover - interface definition
        """Return every active subscription of ``user_id``."""

    def upsert(self, subscription: Subscription) -> Subscription:  # pragma: no cover - interface definition
        """Insert or replace the row matching ``(user_id, endpoint)``."""

    def delete_many(self, endpoints: Iterable[str]) -> int:  # pragma: no cover - interface definition
        """Delete all subscriptions whose endpoint is listed, whatever their owner."""

    def delete_for_user(self, user_id: str, endpoint: str) -> bool:  # pragma: no cover - interface definition
        """Remove one subscription on explicit user request."""


class SqlAlchemySubscriptionStore:
    """Subscription store backed by the ``push_subscriptions`` table."""

    def __init__(self, db: Session):
        self.db = db

    def list_by_user(self, user_id: str) -> Set[Subscription]:
        stmt = select(PushSubscription).where(PushSubscription.user_id == user_id)
        return {Subscription.from_row(row) for row in self.db.scalars(stmt).all()}

    def _find(self, user_id: str, endpoint: str) -> PushSubscription | None:
        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        return self.db.scalars(stmt).first()

    def upsert(self, subscription: Subscription) -> Subscription:
        existing = self._find(subscription.user_id, subscription.endpoint)
        if existing:
            existing.p256dh = subscription.p256dh_key
            existing.auth = subscription.auth_key
            self.db.commit()
            return Subscription.from_row(existing)

        row = PushSubscription(
            user_id=subscription.user_id,
            endpoint=subscription.endpoint,
            p256dh=subscription.p256dh_key,
            auth=subscription.auth_key,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost an insert race for the same (user_id, endpoint); update the winner.
            self.db.rollback()
            existing = self._find(subscription.user_id, subscription.endpoint)
            if existing is None:
                raise
            existing.p256dh = subscription.p256dh_key
            existing.auth = subscription.auth_key
            self.db.commit()
            return Subscription.from_row(existing)
        self.db.refresh(row)
        return Subscription.from_row(row)

    def delete_many(self, endpoints: Iterable[str]) -> int:
        targets = sorted(set(endpoints))
        if not targets:
            return 0
        result = self.db.execute(
            delete(PushSubscription).where(PushSubscription.endpoint.in_(targets))
        )
        self.db.commit()
        logger.info("Deleted push subscriptions", requested=len(targets), deleted=result.rowcount)
        return result.rowcount or 0

    def delete_for_user(self, user_id: str, endpoint: str) -> bool:
        result = self.db.execute(
            delete(PushSubscription).where(
                PushSubscription.user_id == user_id,
                PushSubscription.endpoint == endpoint,
            )
        )
        self.db.commit()
        return bool(result.rowcount)


class InMemorySubscriptionStore:
    """Process-local store for tests and offline tooling."""

    def __init__(self, subscriptions: Iterable[Subscription] = ()) -> None:
        self._lock = threading.Lock()
        self._rows: Dict[Tuple[str, str], Subscription] = {}
        self.list_calls = 0
        self.delete_calls: list[Set[str]] = []
        for subscription in subscriptions:
            self.upsert(subscription)

    def list_by_user(self, user_id: str) -> Set[Subscription]:
        with self._lock:
            self.list_calls += 1
            return {sub for (owner, _), sub in self._rows.items() if owner == user_id}

    def upsert(self, subscription: Subscription) -> Subscription:
        key = (subscription.user_id, subscription.endpoint)
        with self._lock:
            existing = self._rows.get(key)
            created_at = existing.created_at if existing else datetime.now(timezone.utc)
            stored = replace(subscription, created_at=created_at)
            self._rows[key] = stored
            return stored

    def delete_many(self, endpoints: Iterable[str]) -> int:
        targets = set(endpoints)
        with self._lock:
            self.delete_calls.append(targets)
            doomed = [key for key in self._rows if key[1] in targets]
            for key in doomed:
                del self._rows[key]
            return len(doomed)

    def delete_for_user(self, user_id: str, endpoint: str) -> bool:
        with self._lock:
            return self._rows.pop((user_id, endpoint), None) is not None
