"""Push notification and email provider clients with exponential backoff retry logic"""

import httpx
import asyncio
from typing import Any, Dict
from fintara_gateway.config import settings
from fintara_gateway.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)


class _RetryingClient:
    """Shared POST-with-retry behaviour for outbound notification providers"""

    channel = "generic"

    def __init__(
        self,
        base_url: str,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.notification_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.notification_backoff_base
        self.transport = transport

    async def _post(self, path: str, payload: Dict[str, Any]) -> None:
        """
        POST payload to the provider with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures
        - Tracks latency histogram and failure counter per channel

        Raises:
            httpx.HTTPError: after the final failed attempt
        """
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    with notification_latency_histogram.labels(channel=self.channel).time():
                        response = await client.post(f"{self.base_url}{path}", json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.labels(channel=self.channel).inc()

                    # 4xx means the provider rejected the message itself; retrying won't help
                    if isinstance(e, httpx.HTTPStatusError) and e.response.status_code < 500:
                        raise
                    if attempt >= self.max_retries:
                        raise

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)


class PushClient(_RetryingClient):
    """Client for the mobile push notification gateway"""

    channel = "push"

    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or settings.push_api_base, **kwargs)

    async def send(self, user_id: str, title: str, body: str) -> None:
        """Send a push notification to every registered device of a user"""
        await self._post(
            "/notifications",
            {"user_id": user_id, "title": title, "body": body},
        )


class EmailClient(_RetryingClient):
    """Client for the transactional email service"""

    channel = "email"

    def __init__(self, base_url: str | None = None, **kwargs):
        super().__init__(base_url or settings.email_api_base, **kwargs)

    async def send(self, address: str, template: str, params: Dict[str, Any]) -> None:
        """Render `template` with `params` and deliver it to `address`"""
        await self._post(
            "/emails",
            {"to": address, "template": template, "params": params},
        )
