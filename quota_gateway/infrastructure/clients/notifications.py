"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict, Protocol
from fastapi import BackgroundTasks
from quota_gateway.config import settings
from quota_gateway.domain.models import Notification
from quota_gateway.infrastructure.observability.metrics import (
    notification_latency_histogram,
    notification_failure_counter,
)

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    """Anything that accepts a structured alert; delivery is fire-and-forget"""

    def send(self, notification: Notification) -> None: ...


class NotificationClient:
    """Client for posting alerts to the notification service"""

    def __init__(self, webhook_url: str | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.notification_max_retries
        self.backoff_base = settings.notification_backoff_base
        self.timeout = settings.http_timeout_seconds

    async def send_notification(self, payload: Dict[str, Any]) -> bool:
        """
        Deliver one alert with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ...
        - Retries on 5xx errors and network failures; a 4xx means the alert
          itself was refused, so it is logged and dropped without retrying
        - Gives up after max_retries; the failure is logged, never raised,
          because the quota debit that produced the alert is already committed

        Returns:
            True when the notification service accepted the alert
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                        logger.error(
                            f"Notification rejected by service: {e}",
                            extra={"user_id": payload.get("user_id"), "title": payload.get("title")},
                        )
                        return False

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed after {attempt} attempts: {e}",
                            extra={"user_id": payload.get("user_id"), "title": payload.get("title")},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)

        return False


class BackgroundNotificationDispatcher:
    """Queues alerts as FastAPI background tasks, sent after the response"""

    def __init__(self, background_tasks: BackgroundTasks, client: NotificationClient | None = None):
        self.background_tasks = background_tasks
        self.client = client or NotificationClient()

    def send(self, notification: Notification) -> None:
        self.background_tasks.add_task(self.client.send_notification, notification.to_payload())
