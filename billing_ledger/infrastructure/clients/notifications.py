"""Notification webhook client with exponential backoff retry logic"""

import logging
import httpx
import asyncio
from typing import Dict, Any
from billing_ledger.config import settings
from billing_ledger.domain.exceptions import NotificationDeliveryError
from billing_ledger.infrastructure.observability.metrics import webhook_latency_histogram, webhook_failure_counter


class NotificationClient:
    """Client for pushing billing events (payments, overdue quotas) to the notification service"""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver one billing event with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on HTTP errors and network failures
        - Tracks latency histogram and failure counter

        Raises:
            NotificationDeliveryError: After the last attempt fails
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    webhook_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise NotificationDeliveryError(
                            f"Event {payload.get('event')} not delivered after {attempt} attempts"
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)


async def notify(client: NotificationClient, payload: Dict[str, Any]) -> None:
    """Background-task wrapper: a lost notification is logged, never raised into the request"""
    try:
        await client.send_event(payload)
    except NotificationDeliveryError as e:
        logging.error(f"Notification delivery failed: {e}", extra={"event": payload.get("event")})
