"""Outbound email.

``ResendMailer`` talks to the Resend REST API over httpx.  Anything that
is not a 2xx answer, and any transport error, becomes ``MailerError``.

Usage:
    mailer = ResendMailer(api_key="re_...")
    await mailer.send("owner@example.org", "Subject", "<p>Hi</p>", "Clinic <noreply@example.org>")
"""

import logging
from typing import Protocol

import httpx

from bibleos_ops.errors import MailerError

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com"


class Mailer(Protocol):
    """Sends one HTML email."""

    async def send(self, to: str, subject: str, html: str, sender: str) -> None:
        ...


class ResendMailer:
    """Mailer backed by the Resend email API.

    Args:
        api_key: Resend API key.
        base_url: API root (override for tests).
        timeout: Request timeout in seconds.
        client: Optional shared ``httpx.AsyncClient``; one is created per
            send when omitted.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = RESEND_API_URL,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            f"{self.base_url}/emails",
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
        )

    async def send(self, to: str, subject: str, html: str, sender: str) -> None:
        payload = {"from": sender, "to": [to], "subject": subject, "html": html}
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
        except httpx.HTTPError as e:
            raise MailerError(f"Email request failed: {e}") from e

        if response.status_code >= 300:
            raise MailerError(
                f"Email provider returned {response.status_code}: {response.text}",
                status=response.status_code,
            )
        logger.info("Sent email %r to %s", subject, to)
