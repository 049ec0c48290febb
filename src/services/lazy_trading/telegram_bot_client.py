"""
Telegram bot control-plane client used by the link broker.

The broker depends on the MessagingBotClient protocol only, so tests can
inject a fake bot.
"""

import secrets
from dataclasses import dataclass
from typing import Optional, Protocol

from aiogram import Bot
from loguru import logger

from config.config import TELEGRAM_BOT_TOKEN

# 6 random bytes → 12 hex chars (48 bits)
OPAQUE_CODE_BYTES = 6


@dataclass(frozen=True)
class BotIdentity:
    """Public identity of the bot (getMe)."""
    id: int
    username: Optional[str]


class MessagingBotClient(Protocol):
    async def get_self_identity(self) -> BotIdentity: ...

    def generate_opaque_code(self) -> str: ...


def generate_opaque_code() -> str:
    """Random upper-case hex code, safe for a Telegram /start payload."""
    return secrets.token_hex(OPAQUE_CODE_BYTES).upper()


class TelegramBotClient:
    """
    aiogram-backed bot client

    The Bot (and its aiohttp session) is created lazily on first use and
    reused until close().
    """

    def __init__(self, token: str = TELEGRAM_BOT_TOKEN):
        self._token = token
        self._bot: Optional[Bot] = None

    def _get_bot(self) -> Bot:
        if self._bot is None:
            if not self._token:
                raise RuntimeError("TELEGRAM_BOT_TOKEN is not configured")
            self._bot = Bot(token=self._token)
        return self._bot

    async def get_self_identity(self) -> BotIdentity:
        """
        Call getMe on the Bot API

        Raises:
            TelegramAPIError / aiohttp errors: propagated, the broker falls back
        """
        me = await self._get_bot().get_me()
        return BotIdentity(id=me.id, username=me.username)

    def generate_opaque_code(self) -> str:
        return generate_opaque_code()

    async def close(self) -> None:
        if self._bot is not None:
            await self._bot.session.close()
            self._bot = None
            logger.debug("Telegram bot session closed")
