"""
Link Broker - Telegram link codes for the lazy trading flow.

Flow of generate_code():
1. Wallet already has an active lazy trading Telegram link → alreadyLinked
2. Wallet's lazy trading agent already has a Telegram account → alreadyLinked
3. Mint "LT" + opaque code
4. Store code → wallet with an absolute expiry (degraded, not fatal, on failure)
5. Resolve the bot username (getMe with timeout, configured fallback)
   and build https://t.me/<username>?start=<code>

Concurrent calls for one wallet may mint several codes; each stays valid
until it is exchanged or expires.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import (
    LINK_CODE_PREFIX,
    LINK_CODE_STORE,
    LINK_CODE_TTL_SECONDS,
    TELEGRAM_BOT_USERNAME,
    TELEGRAM_DEEP_LINK_BASE,
    TELEGRAM_GET_ME_TIMEOUT,
)
from src.cache.link_code_store import (
    Clock,
    InMemoryLinkCodeStore,
    LinkCodeEntry,
    LinkCodeStore,
    RedisLinkCodeStore,
    utc_now,
)
from src.cache.redis_manager import get_redis_manager
from src.core.errors import LinkGenerationError
from src.services.lazy_trading.idempotency_guard import check_existing_link
from src.services.lazy_trading.snapshots import TelegramLinkSnapshot
from src.services.lazy_trading.telegram_bot_client import MessagingBotClient, TelegramBotClient

LINK_INSTRUCTIONS = "Click the link to connect your Telegram as a signal source for Lazy Trading."


@dataclass(frozen=True)
class LinkCodeResult:
    """Outcome of a generate_code() call."""
    already_linked: bool
    telegram_user: Optional[TelegramLinkSnapshot] = None
    agent_id: Optional[int] = None
    code: Optional[str] = None
    bot_username: Optional[str] = None
    deep_link: Optional[str] = None
    expires_in: Optional[int] = None

    def to_response(self) -> dict:
        if self.already_linked:
            user = self.telegram_user
            return {
                "success": True,
                "alreadyLinked": True,
                "telegramUser": {
                    "id": user.id,
                    "telegram_user_id": user.telegram_user_id,
                    "telegram_username": user.telegram_username,
                    "first_name": user.first_name,
                },
                "agentId": self.agent_id,
            }

        return {
            "success": True,
            "alreadyLinked": False,
            "linkCode": self.code,
            "botUsername": self.bot_username,
            "deepLink": self.deep_link,
            "instructions": LINK_INSTRUCTIONS,
            "expiresIn": self.expires_in,
        }


def build_deep_link(bot_username: str, code: str, base_url: str = TELEGRAM_DEEP_LINK_BASE) -> str:
    return f"{base_url.rstrip('/')}/{bot_username}?start={code}"


class LinkBroker:
    """
    Issues and resolves lazy trading link codes

    Args:
        store: Ephemeral code → wallet store
        bot_client: Telegram bot (getMe + opaque code primitive)
        ttl_seconds: Code lifetime
        default_bot_username: Used when getMe fails
        handle_timeout: Seconds to wait for getMe
        clock: Current UTC time (injectable for tests)
    """

    def __init__(
        self,
        store: LinkCodeStore,
        bot_client: MessagingBotClient,
        ttl_seconds: int = LINK_CODE_TTL_SECONDS,
        default_bot_username: str = TELEGRAM_BOT_USERNAME,
        handle_timeout: float = TELEGRAM_GET_ME_TIMEOUT,
        code_prefix: str = LINK_CODE_PREFIX,
        clock: Clock = utc_now,
    ):
        self.store = store
        self.bot_client = bot_client
        self.ttl_seconds = ttl_seconds
        self.default_bot_username = default_bot_username
        self.handle_timeout = handle_timeout
        self.code_prefix = code_prefix
        self._clock = clock

    async def generate_code(self, session: AsyncSession, wallet: str) -> LinkCodeResult:
        """
        Issue a link code for a canonical wallet, unless it is already linked

        Raises:
            LinkGenerationError: idempotency lookup or code minting failed
        """
        try:
            existing = await check_existing_link(session, wallet)
        except SQLAlchemyError as e:
            logger.error(f"[LazyTrading] Idempotency lookup failed for {wallet}: {e}")
            raise LinkGenerationError("Failed to generate link") from e

        if existing is not None:
            logger.info(
                f"[LazyTrading] {wallet} already has Telegram connected: "
                f"{existing.telegram_user.id} (agent={existing.agent_id})"
            )
            return LinkCodeResult(
                already_linked=True,
                telegram_user=existing.telegram_user,
                agent_id=existing.agent_id,
            )

        code = self._mint_code()
        expires_at = self._clock() + timedelta(seconds=self.ttl_seconds)
        await self._store_code(LinkCodeEntry(code=code, wallet=wallet, expires_at=expires_at))

        bot_username = await self.resolve_bot_username()

        return LinkCodeResult(
            already_linked=False,
            code=code,
            bot_username=bot_username,
            deep_link=build_deep_link(bot_username, code),
            expires_in=self.ttl_seconds,
        )

    async def resolve_code(self, code: str) -> Optional[str]:
        """
        Wallet that issued an unexpired code, None otherwise

        Read-only lookup for the bot's /start exchange.
        """
        if not code or not code.startswith(self.code_prefix):
            return None

        entry = await self.store.get(code)
        if entry is None or entry.is_expired(self._clock()):
            return None

        return entry.wallet

    async def resolve_bot_username(self) -> str:
        """
        Public username of the bot, or the configured default

        Never raises: a slow or failing getMe only triggers the fallback.
        """
        try:
            identity = await asyncio.wait_for(
                self.bot_client.get_self_identity(), timeout=self.handle_timeout
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"[LazyTrading] Bot getMe() timed out after {self.handle_timeout}s, "
                f"using default username @{self.default_bot_username}"
            )
            return self.default_bot_username
        except Exception as e:
            logger.warning(
                f"[LazyTrading] Bot getMe() failed: {e}. "
                f"Using default username @{self.default_bot_username}"
            )
            return self.default_bot_username

        if not identity.username:
            logger.warning(
                "[LazyTrading] Bot getMe() returned no username. Bot token might be incorrect. "
                f"Using default username @{self.default_bot_username}"
            )
            return self.default_bot_username

        return identity.username

    def _mint_code(self) -> str:
        try:
            return f"{self.code_prefix}{self.bot_client.generate_opaque_code()}"
        except Exception as e:
            logger.error(f"[LazyTrading] Link code generation failed: {e}")
            raise LinkGenerationError("Failed to generate link") from e

    async def _store_code(self, entry: LinkCodeEntry) -> bool:
        """Persist the code; a failed write is logged and the code still issued."""
        try:
            stored = await self.store.put(entry, self.ttl_seconds)
        except Exception as e:
            logger.warning(
                f"[LazyTrading] Could not store link code {entry.code} for {entry.wallet}: {e}. "
                "The exchange will not be able to resolve this code."
            )
            return False

        if not stored:
            logger.warning(
                f"[LazyTrading] Link code store unavailable, {entry.code} for {entry.wallet} "
                "was not persisted. The exchange will not be able to resolve this code."
            )
            return False

        logger.info(f"[LazyTrading] Stored link code mapping: {entry.code} -> {entry.wallet}")
        return True


# Global broker instance
_link_broker: Optional[LinkBroker] = None


def get_link_broker() -> LinkBroker:
    """
    Get global LinkBroker (singleton), wired from configuration

    LINK_CODE_STORE=redis uses the shared RedisManager (initialized by the
    API lifespan); LINK_CODE_STORE=memory keeps codes in this process.
    """
    global _link_broker
    if _link_broker is None:
        if LINK_CODE_STORE == "memory":
            store = InMemoryLinkCodeStore()
        else:
            store = RedisLinkCodeStore(get_redis_manager())

        _link_broker = LinkBroker(store=store, bot_client=TelegramBotClient())
        logger.info(f"[LazyTrading] Link broker ready ({LINK_CODE_STORE} store, TTL={LINK_CODE_TTL_SECONDS}s)")
    return _link_broker
