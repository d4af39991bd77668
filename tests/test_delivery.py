"""Tests for delivery outcome classification."""
from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from lampatrack.services.delivery import DeliveryClient, DeliveryStatus, WebPushTransport
from lampatrack.utils.exceptions import ConfigurationError

ENDPOINT = "https://push.example/endpoint"


@pytest.fixture()
def subscription(subscription_factory):
    return subscription_factory("alice", ENDPOINT)


@pytest.mark.asyncio
async def test_successful_send_is_delivered(fake_transport, subscription):
    client = DeliveryClient(fake_transport, timeout=1.0)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.DELIVERED
    assert outcome.endpoint == ENDPOINT
    assert fake_transport.calls == [(ENDPOINT, b"{}")]


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [404, 410])
async def test_gone_endpoints_are_permanent_failures(fake_transport, subscription, status_code):
    fake_transport.behaviours[ENDPOINT] = status_code
    client = DeliveryClient(fake_transport, timeout=1.0)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.PERMANENT_FAILURE
    assert outcome.status_code == status_code


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 413, 429, 500, 503])
async def test_other_push_service_errors_are_transient(fake_transport, subscription, status_code):
    fake_transport.behaviours[ENDPOINT] = status_code
    client = DeliveryClient(fake_transport, timeout=1.0)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.TRANSIENT_FAILURE
    assert outcome.status_code == status_code


@pytest.mark.asyncio
async def test_network_errors_are_transient(fake_transport, subscription):
    fake_transport.behaviours[ENDPOINT] = ConnectionError("connection refused")
    client = DeliveryClient(fake_transport, timeout=1.0)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.TRANSIENT_FAILURE
    assert "connection refused" in outcome.detail


@pytest.mark.asyncio
async def test_unexpected_library_errors_do_not_escape(fake_transport, subscription):
    fake_transport.behaviours[ENDPOINT] = ValueError("bad key material")
    client = DeliveryClient(fake_transport, timeout=1.0)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.TRANSIENT_FAILURE


@pytest.mark.asyncio
async def test_timeout_is_transient_and_abandons_the_attempt(fake_transport, subscription):
    fake_transport.behaviours[ENDPOINT] = "hang"
    client = DeliveryClient(fake_transport, timeout=0.05)

    outcome = await client.deliver(subscription, b"{}")

    assert outcome.status is DeliveryStatus.TRANSIENT_FAILURE
    assert "timed out" in outcome.detail
    assert fake_transport.cancelled == [ENDPOINT]


@pytest.mark.asyncio
async def test_cancellation_propagates(fake_transport, subscription):
    fake_transport.behaviours[ENDPOINT] = "hang"
    client = DeliveryClient(fake_transport, timeout=10.0)

    task = asyncio.create_task(client.deliver(subscription, b"{}"))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task


def test_webpush_transport_requires_private_key():
    transport = WebPushTransport(
        vapid_private_key="",
        vapid_public_key="public-key",
        vapid_subject="mailto:ops@example.com",
    )

    with pytest.raises(ConfigurationError):
        transport.check_configured()


def test_webpush_transport_requires_public_key():
    transport = WebPushTransport(
        vapid_private_key="private-key",
        vapid_public_key=None,
        vapid_subject="mailto:ops@example.com",
    )

    with pytest.raises(ConfigurationError):
        transport.check_configured()


@pytest.mark.asyncio
async def test_webpush_transport_passes_vapid_details(subscription):
    transport = WebPushTransport(
        vapid_private_key="'private-key'",
        vapid_public_key="public-key",
        vapid_subject="mailto:ops@example.com",
        ttl=60,
        request_timeout=5.0,
    )

    with patch("lampatrack.services.delivery.webpush") as webpush_mock:
        await transport.send(subscription, b'{"title": "t"}')

    kwargs = webpush_mock.call_args.kwargs
    assert kwargs["subscription_info"] == subscription.as_subscription_info()
    assert kwargs["data"] == b'{"title": "t"}'
    assert kwargs["vapid_private_key"] == "private-key"
    assert kwargs["vapid_claims"] == {"sub": "mailto:ops@example.com"}
    assert kwargs["ttl"] == 60
    assert kwargs["timeout"] == 5.0
