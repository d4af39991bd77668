"""Web Push delivery with per-attempt outcome classification."""
from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import FrozenSet, Optional, Protocol

from loguru import logger
from pywebpush import WebPushException, webpush

from lampatrack.config import Settings, settings as default_settings
from lampatrack.services.subscription_store import Subscription
from lampatrack.utils.exceptions import ConfigurationError

# Push services answer 404/410 once a channel has been unsubscribed or expired.
GONE_STATUS_CODES: FrozenSet[int] = frozenset({404, 410})


class DeliveryStatus(str, enum.Enum):
    DELIVERED = "delivered"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt against one subscription."""

    subscription: Subscription
    status: DeliveryStatus
    detail: str = ""
    status_code: Optional[int] = None

    @property
    def endpoint(self) -> str:
        return self.subscription.endpoint


class PushTransport(Protocol):
    """Primitive that encrypts and posts one payload to one push endpoint."""

    def check_configured(self) -> None:  # pragma: no cover - interface definition
        """Raise :class:`ConfigurationError` when the transport cannot send."""

    async def send(self, subscription: Subscription, payload: bytes) -> None:  # pragma: no cover - interface definition
        """Deliver ``payload``; raise ``WebPushException`` on a push-service error."""


def _short(endpoint: str) -> str:
    return endpoint[:60]


class WebPushTransport:
    """Send VAPID-signed, aes128gcm-encrypted messages through ``pywebpush``."""

    def __init__(
        self,
        vapid_private_key: str | None,
        vapid_public_key: str | None,
        vapid_subject: str,
        ttl: int = 86400,
        request_timeout: float = 10.0,
    ) -> None:
        self.vapid_private_key = (vapid_private_key or "").strip().strip('"').strip("'")
        self.vapid_public_key = (vapid_public_key or "").strip().strip('"').strip("'")
        self.vapid_subject = vapid_subject
        self.ttl = ttl
        self.request_timeout = request_timeout

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "WebPushTransport":
        config = config or default_settings
        return cls(
            vapid_private_key=config.VAPID_PRIVATE_KEY,
            vapid_public_key=config.VAPID_PUBLIC_KEY,
            vapid_subject=config.VAPID_SUBJECT,
            ttl=config.PUSH_TTL_SECONDS,
            request_timeout=config.PUSH_DELIVERY_TIMEOUT_SECONDS,
        )

    def check_configured(self) -> None:
        if not self.vapid_private_key or not self.vapid_public_key:
            raise ConfigurationError("VAPID keys not configured")

    def _send_blocking(self, subscription: Subscription, payload: bytes) -> None:
        webpush(
            subscription_info=subscription.as_subscription_info(),
            data=payload,
            vapid_private_key=self.vapid_private_key,
            # pywebpush adds aud/exp to the claims dict, so it must not be shared.
            vapid_claims={"sub": self.vapid_subject},
            ttl=self.ttl,
            timeout=self.request_timeout,
        )

    async def send(self, subscription: Subscription, payload: bytes) -> None:
        self.check_configured()
        await asyncio.to_thread(self._send_blocking, subscription, payload)


def _response_status(exc: WebPushException) -> Optional[int]:
    response = getattr(exc, "response", None)
    if response is None:
        return None
    return getattr(response, "status_code", None)


class DeliveryClient:
    """Run single delivery attempts and turn every result into a :class:`DeliveryOutcome`.

    ``deliver`` never raises for transport problems, so one dead endpoint cannot
    abort a batch. Cancellation is the only exception allowed through.
    """

    def __init__(self, transport: PushTransport, timeout: float = 10.0) -> None:
        self.transport = transport
        self.timeout = timeout

    def check_configured(self) -> None:
        self.transport.check_configured()

    async def deliver(self, subscription: Subscription, payload: bytes) -> DeliveryOutcome:
        try:
            await asyncio.wait_for(self.transport.send(subscription, payload), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Push delivery timed out", endpoint=_short(subscription.endpoint), timeout=self.timeout)
            return DeliveryOutcome(
                subscription,
                DeliveryStatus.TRANSIENT_FAILURE,
                detail=f"timed out after {self.timeout}s",
            )
        except WebPushException as exc:
            status_code = _response_status(exc)
            if status_code in GONE_STATUS_CODES:
                logger.info("Push subscription gone", endpoint=_short(subscription.endpoint), status=status_code)
                return DeliveryOutcome(
                    subscription,
                    DeliveryStatus.PERMANENT_FAILURE,
                    detail=str(exc),
                    status_code=status_code,
                )
            logger.warning("Push delivery failed", endpoint=_short(subscription.endpoint), status=status_code, error=str(exc))
            return DeliveryOutcome(
                subscription,
                DeliveryStatus.TRANSIENT_FAILURE,
                detail=str(exc),
                status_code=status_code,
            )
        except Exception as exc:
            logger.warning("Push delivery error", endpoint=_short(subscription.endpoint), error=repr(exc))
            return DeliveryOutcome(subscription, DeliveryStatus.TRANSIENT_FAILURE, detail=repr(exc))

        logger.debug("Push delivered", endpoint=_short(subscription.endpoint))
        return DeliveryOutcome(subscription, DeliveryStatus.DELIVERED)
