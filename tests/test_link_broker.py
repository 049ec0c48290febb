"""
Unit tests for the lazy trading link broker
"""

import pytest

from sqlalchemy.exc import OperationalError

from src.core.errors import LinkGenerationError
from src.services.lazy_trading.idempotency_guard import link_telegram_account
from src.services.lazy_trading.link_broker import (
    LINK_INSTRUCTIONS,
    LinkBroker,
    build_deep_link,
)
from src.services.lazy_trading.telegram_bot_client import generate_opaque_code
from tests.conftest import WALLET, FakeBotClient


class BrokenStore:
    """Store whose writes fail (Redis down)"""

    def __init__(self, error=None):
        self.error = error

    async def put(self, entry, ttl_seconds):
        if self.error:
            raise self.error
        return False

    async def get(self, code):
        return None


def make_broker(link_store, clock, **kwargs) -> LinkBroker:
    kwargs.setdefault("bot_client", FakeBotClient())
    return LinkBroker(
        store=link_store,
        ttl_seconds=600,
        default_bot_username="Prime_Alpha_bot",
        handle_timeout=0.05,
        clock=clock,
        **kwargs,
    )


def test_build_deep_link():
    assert build_deep_link("Prime_Alpha_bot", "LTABC") == "https://t.me/Prime_Alpha_bot?start=LTABC"
    assert build_deep_link("bot", "LT1", base_url="https://t.me/") == "https://t.me/bot?start=LT1"


def test_opaque_codes_are_unique():
    codes = {generate_opaque_code() for _ in range(10_000)}

    assert len(codes) == 10_000
    assert all(len(code) == 12 and code == code.upper() for code in codes)


@pytest.mark.asyncio
async def test_generate_code(db_session, broker, link_store):
    result = await broker.generate_code(db_session, WALLET)

    assert result.already_linked is False
    assert result.code.startswith("LT")
    assert result.bot_username == "TestAlphaBot"
    assert result.deep_link == f"https://t.me/TestAlphaBot?start={result.code}"
    assert result.expires_in == 600

    entry = await link_store.get(result.code)
    assert entry.wallet == WALLET


@pytest.mark.asyncio
async def test_generate_code_response_shape(db_session, broker):
    result = await broker.generate_code(db_session, WALLET)

    assert result.to_response() == {
        "success": True,
        "alreadyLinked": False,
        "linkCode": result.code,
        "botUsername": "TestAlphaBot",
        "deepLink": result.deep_link,
        "instructions": LINK_INSTRUCTIONS,
        "expiresIn": 600,
    }


@pytest.mark.asyncio
async def test_two_calls_give_two_valid_codes(db_session, broker):
    """Retries mint new codes; earlier ones stay valid until expiry"""
    first = await broker.generate_code(db_session, WALLET)
    second = await broker.generate_code(db_session, WALLET)

    assert first.code != second.code
    assert await broker.resolve_code(first.code) == WALLET
    assert await broker.resolve_code(second.code) == WALLET


@pytest.mark.asyncio
async def test_codes_unique_across_many_wallets(db_session, broker, link_store):
    codes = set()
    for i in range(10_000):
        result = await broker.generate_code(db_session, f"0xwallet{i}")
        codes.add(result.code)

    assert len(codes) == 10_000
    assert len(link_store) == 10_000


@pytest.mark.asyncio
async def test_code_expires_after_ttl(db_session, broker, clock):
    result = await broker.generate_code(db_session, WALLET)

    clock.advance(minutes=9)
    assert await broker.resolve_code(result.code) == WALLET

    clock.advance(minutes=2)
    assert await broker.resolve_code(result.code) is None


@pytest.mark.asyncio
async def test_resolve_code_rejects_foreign_codes(db_session, broker):
    result = await broker.generate_code(db_session, WALLET)

    assert await broker.resolve_code(result.code[2:]) is None
    assert await broker.resolve_code("") is None
    assert await broker.resolve_code("LTNOTISSUED") is None


@pytest.mark.asyncio
async def test_already_linked_after_exchange(db_session, broker, link_store):
    """After the bot exchanges a code, new requests report the existing link"""
    result = await broker.generate_code(db_session, WALLET)
    wallet = await broker.resolve_code(result.code)
    link = await link_telegram_account(
        db_session, wallet, telegram_user_id=777, telegram_username="bob", first_name="Bob"
    )
    stored_codes = len(link_store)

    again = await broker.generate_code(db_session, WALLET)

    assert again.already_linked is True
    assert again.code is None
    assert len(link_store) == stored_codes
    assert again.to_response() == {
        "success": True,
        "alreadyLinked": True,
        "telegramUser": {
            "id": link.id,
            "telegram_user_id": 777,
            "telegram_username": "bob",
            "first_name": "Bob",
        },
        "agentId": None,
    }


@pytest.mark.asyncio
async def test_already_linked_through_agent(db_session, broker, seed):
    agent = await seed.agent()
    user = await seed.telegram_user(wallet=None, telegram_user_id=555, lazy_trader=False)
    await seed.attach(agent, user)

    result = await broker.generate_code(db_session, WALLET)

    assert result.already_linked is True
    assert result.agent_id == agent.id
    assert result.telegram_user.telegram_user_id == 555


@pytest.mark.asyncio
async def test_store_write_failure_is_degraded(db_session, clock):
    """Code is still issued when the store rejects the write"""
    broker = make_broker(BrokenStore(), clock)

    result = await broker.generate_code(db_session, WALLET)

    assert result.already_linked is False
    assert result.code.startswith("LT")
    assert await broker.resolve_code(result.code) is None


@pytest.mark.asyncio
async def test_store_write_exception_is_degraded(db_session, clock):
    broker = make_broker(BrokenStore(error=ConnectionError("redis down")), clock)

    result = await broker.generate_code(db_session, WALLET)

    assert result.code.startswith("LT")


@pytest.mark.asyncio
async def test_get_me_timeout_falls_back(db_session, link_store, clock):
    broker = make_broker(link_store, clock, bot_client=FakeBotClient(delay=1.0))

    result = await broker.generate_code(db_session, WALLET)

    assert result.bot_username == "Prime_Alpha_bot"
    assert result.deep_link == f"https://t.me/Prime_Alpha_bot?start={result.code}"


@pytest.mark.asyncio
async def test_get_me_error_falls_back(db_session, link_store, clock):
    bot = FakeBotClient(error=RuntimeError("Unauthorized"))
    broker = make_broker(link_store, clock, bot_client=bot)

    result = await broker.generate_code(db_session, WALLET)

    assert result.bot_username == "Prime_Alpha_bot"
    assert bot.get_me_calls == 1


@pytest.mark.asyncio
async def test_get_me_without_username_falls_back(db_session, link_store, clock):
    broker = make_broker(link_store, clock, bot_client=FakeBotClient(username=None))

    assert await broker.resolve_bot_username() == "Prime_Alpha_bot"


@pytest.mark.asyncio
async def test_minting_failure_raises(db_session, link_store, clock):
    bot = FakeBotClient(code_error=OSError("no entropy"))
    broker = make_broker(link_store, clock, bot_client=bot)

    with pytest.raises(LinkGenerationError):
        await broker.generate_code(db_session, WALLET)

    assert len(link_store) == 0


class FailingSession:
    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.asyncio
async def test_lookup_failure_raises(broker, link_store):
    with pytest.raises(LinkGenerationError, match="Failed to generate link"):
        await broker.generate_code(FailingSession(), WALLET)

    assert len(link_store) == 0


def test_get_link_broker_uses_configured_store(monkeypatch):
    """LINK_CODE_STORE=memory (test environment) wires the in-memory store"""
    from src.cache.link_code_store import InMemoryLinkCodeStore
    from src.services.lazy_trading import link_broker as link_broker_module
    from src.services.lazy_trading.telegram_bot_client import TelegramBotClient

    monkeypatch.setattr(link_broker_module, "_link_broker", None)

    broker = link_broker_module.get_link_broker()

    assert isinstance(broker.store, InMemoryLinkCodeStore)
    assert isinstance(broker.bot_client, TelegramBotClient)
    assert broker.ttl_seconds == 600
    assert link_broker_module.get_link_broker() is broker
