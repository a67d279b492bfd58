"""
Telegram alert sink for source health notifications.
"""

import logging
from typing import Optional

from telegram import Bot
from telegram.error import TelegramError

from ..errors import AlertDeliveryError
from .base import CooldownAlertSink


logger = logging.getLogger(__name__)


class TelegramAlertSink(CooldownAlertSink):
    """Sends health alerts to a Telegram chat."""

    name = "TelegramAlertSink"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        bot: Optional[Bot] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.bot = bot or (Bot(token=bot_token) if bot_token else None)
        self.chat_id = chat_id

    @property
    def configured(self) -> bool:
        return bool(self.bot and self.chat_id)

    async def send(self, subject: str, body: str) -> None:
        message = f"🔴 *{subject}*\n\n{body}"
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=message, parse_mode="Markdown")
        except TelegramError as e:
            raise AlertDeliveryError(f"Telegram send failed: {e}") from e
