"""
E-mail alert sink backed by the Resend HTTP API.
"""

import logging
from typing import Optional

import aiohttp

from ..errors import AlertDeliveryError
from ..infra.http import HttpClient
from .base import CooldownAlertSink


logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailAlertSink(CooldownAlertSink):
    """Sends health alerts by e-mail. No-op without an API key."""

    name = "EmailAlertSink"

    def __init__(
        self,
        http: HttpClient,
        api_key: Optional[str],
        to: Optional[str],
        sender: str = "Tonight Alerts <onboarding@resend.dev>",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.http = http
        self.api_key = api_key
        self.to = to
        self.sender = sender

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.to)

    async def send(self, subject: str, body: str) -> None:
        try:
            await self.http.post_json(
                RESEND_URL,
                {"from": self.sender, "to": self.to, "subject": subject, "text": body},
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
        except aiohttp.ClientError as e:
            raise AlertDeliveryError(f"Resend API error: {e}") from e
