"""Unit tests for the notification webhook client"""

import httpx
import pytest
from unittest.mock import AsyncMock, patch
from billing_ledger.domain.exceptions import NotificationDeliveryError
from billing_ledger.infrastructure.clients.notifications import NotificationClient, notify

WEBHOOK_URL = "http://notifications.test/events"
PAYLOAD = {"event": "PAYMENT_REGISTERED", "financing_id": 1}


def make_client(max_retries: int = 3) -> NotificationClient:
    client = NotificationClient(webhook_url=WEBHOOK_URL, timeout=1.0)
    client.max_retries = max_retries
    client.backoff_base = 0
    return client


def ok_response() -> httpx.Response:
    return httpx.Response(200, request=httpx.Request("POST", WEBHOOK_URL))


def error_response() -> httpx.Response:
    return httpx.Response(503, request=httpx.Request("POST", WEBHOOK_URL))


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_send_event_posts_payload(mock_post: AsyncMock):
    mock_post.return_value = ok_response()

    await make_client().send_event(PAYLOAD)

    mock_post.assert_awaited_once_with(WEBHOOK_URL, json=PAYLOAD)


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_send_event_retries_transient_failures(mock_post: AsyncMock):
    mock_post.side_effect = [httpx.ConnectError("connection refused"), error_response(), ok_response()]

    await make_client().send_event(PAYLOAD)

    assert mock_post.await_count == 3


@patch("httpx.AsyncClient.post", new_callable=AsyncMock)
async def test_send_event_gives_up_after_max_retries(mock_post: AsyncMock):
    mock_post.return_value = error_response()

    with pytest.raises(NotificationDeliveryError):
        await make_client(max_retries=2).send_event(PAYLOAD)

    assert mock_post.await_count == 2


async def test_notify_logs_instead_of_raising(caplog):
    client = AsyncMock(spec=NotificationClient)
    client.send_event.side_effect = NotificationDeliveryError("down")

    await notify(client, PAYLOAD)

    client.send_event.assert_awaited_once_with(PAYLOAD)
    assert "Notification delivery failed" in caplog.text
