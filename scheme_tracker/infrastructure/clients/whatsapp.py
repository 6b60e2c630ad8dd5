"""WhatsApp messaging API client with exponential backoff retry logic"""

import asyncio
import logging

import httpx

from scheme_tracker.config import settings
from scheme_tracker.domain.exceptions import DispatchError


class WhatsAppClient:
    """Delivers notification text to a holder's mobile number"""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.whatsapp_api_base
        self.token = token if token is not None else settings.whatsapp_api_token
        self.sender = sender or settings.whatsapp_sender
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = max_retries or settings.channel_max_retries
        self.backoff_base = settings.channel_backoff_base if backoff_base is None else backoff_base
        self.transport = transport

    async def send(self, target: str, text: str) -> bool:
        """
        Send a WhatsApp message with retry logic.

        Retry strategy:
        - Exponential backoff: base, 2*base, 4*base ... (base * 2^(attempt-1))
        - Retries on 5xx errors and network failures
        - 4xx errors are not retried (bad number, bad payload)

        Raises:
            DispatchError: After the final failed attempt or on a client error
        """
        payload = {"from": self.sender, "to": f"whatsapp:+{target.lstrip('+')}", "body": text}
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}

        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while True:
                try:
                    response = await client.post(f"{self.base_url}/messages", json=payload, headers=headers)
                    response.raise_for_status()
                    return True

                except httpx.HTTPStatusError as e:
                    if e.response.status_code < 500:
                        raise DispatchError(f"WhatsApp API rejected message: {e.response.status_code}") from e
                    error: Exception = e
                except httpx.RequestError as e:
                    error = e

                attempt += 1
                if attempt >= self.max_retries:
                    raise DispatchError(f"WhatsApp API unavailable after {attempt} attempts: {error}") from error

                backoff = self.backoff_base * (2 ** (attempt - 1))
                logging.warning(
                    f"WhatsApp send failed, retrying in {backoff}s",
                    extra={"attempt": attempt, "target": target},
                )
                await asyncio.sleep(backoff)
