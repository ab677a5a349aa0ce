import logging
from decimal import Decimal
from typing import Optional

from aiogram import Bot
from aiogram.client.session.aiohttp import AiohttpSession

from ..core.config import settings

logger = logging.getLogger(__name__)


class TelegramBotService:
    def __init__(self, token: Optional[str] = None):
        self.token = token
        self._bot: Optional[Bot] = None

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    @property
    def bot(self) -> Bot:
        if self._bot is None:
            self._bot = Bot(token=self.token, session=AiohttpSession())
        return self._bot

    async def send_notification(self, chat_id: str, message: str, parse_mode: Optional[str] = "HTML") -> bool:
        """Send a workstation notice to a user"""
        if not self.enabled:
            logger.debug("Telegram token is not configured, notice to %s skipped", chat_id)
            return False
        try:
            await self.bot.send_message(
                chat_id=chat_id,
                text=f"🏢 <b>Workstation</b>\n\n{message}",
                parse_mode=parse_mode,
                disable_web_page_preview=True,
            )
            return True
        except Exception as e:
            logger.warning("Failed to send Telegram notice to %s: %s", chat_id, e)
            return False

    async def close(self):
        if self._bot is not None:
            await self._bot.session.close()
            self._bot = None


telegram_bot = TelegramBotService(settings.telegram_bot_token)


def format_money(amount: Decimal) -> str:
    return f"{settings.currency} {Decimal(amount):,.2f}"


async def send_telegram_notification(message: str, chat_id: Optional[str] = None, parse_mode: Optional[str] = "HTML") -> bool:
    """Best-effort notice; never raises"""
    if not chat_id:
        return False

    return await telegram_bot.send_notification(chat_id, message, parse_mode=parse_mode)
