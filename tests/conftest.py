"""
Pytest configuration and fixtures for Lazy Trading onboarding tests
"""

import os

# Must be set before config.config is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["LINK_CODE_STORE"] = "memory"
os.environ["SENTRY_DSN"] = ""

import asyncio
import pytest
from datetime import datetime, timedelta, UTC
from typing import AsyncGenerator, Optional

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from src.cache.link_code_store import InMemoryLinkCodeStore
from src.database.models import (
    Base,
    Agent,
    AgentDeployment,
    AgentTelegramUser,
    TelegramAlphaUser,
    UserAgentAddress,
)
from src.services.lazy_trading.link_broker import LinkBroker
from src.services.lazy_trading.telegram_bot_client import BotIdentity, generate_opaque_code


# Test database URL (in-memory SQLite for testing)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

WALLET = "0xabc0000000000000000000000000000000000001"


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FakeBotClient:
    """
    Bot client without network access

    Args:
        username: Returned by getMe (None simulates a bot without username)
        delay: Seconds getMe takes
        error: Raised by getMe
        code_error: Raised when minting a code
    """

    def __init__(
        self,
        username: Optional[str] = "TestAlphaBot",
        delay: float = 0,
        error: Optional[Exception] = None,
        code_error: Optional[Exception] = None,
    ):
        self.username = username
        self.delay = delay
        self.error = error
        self.code_error = code_error
        self.get_me_calls = 0
        self.closed = False

    async def get_self_identity(self) -> BotIdentity:
        self.get_me_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return BotIdentity(id=42, username=self.username)

    def generate_opaque_code(self) -> str:
        if self.code_error:
            raise self.code_error
        return generate_opaque_code()

    async def close(self) -> None:
        self.closed = True


class Seeder:
    """Writes rows the provisioning flows and the bot exchange would create"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _save(self, row):
        self.session.add(row)
        await self.session.commit()
        await self.session.refresh(row)
        return row

    async def agent(self, wallet: str = WALLET, name: Optional[str] = None, **kwargs) -> Agent:
        return await self._save(
            Agent(creator_wallet=wallet, name=name or f"Lazy Trader - {wallet[:8]}", **kwargs)
        )

    async def telegram_user(
        self,
        wallet: Optional[str] = WALLET,
        telegram_user_id: int = 1001,
        lazy_trader: bool = True,
        is_active: bool = True,
        **kwargs,
    ) -> TelegramAlphaUser:
        kwargs.setdefault("telegram_username", f"trader{telegram_user_id}")
        kwargs.setdefault("first_name", "Alice")
        return await self._save(
            TelegramAlphaUser(
                telegram_user_id=telegram_user_id,
                user_wallet=wallet,
                lazy_trader=lazy_trader,
                is_active=is_active,
                **kwargs,
            )
        )

    async def attach(self, agent: Agent, user: TelegramAlphaUser) -> AgentTelegramUser:
        return await self._save(
            AgentTelegramUser(agent_id=agent.id, telegram_alpha_user_id=user.id)
        )

    async def deployment(self, agent: Agent, wallet: str = WALLET, **kwargs) -> AgentDeployment:
        kwargs.setdefault("enabled_venues", ["OSTIUM"])
        return await self._save(AgentDeployment(agent_id=agent.id, user_wallet=wallet, **kwargs))

    async def agent_address(self, wallet: str = WALLET, address: str = "0xdelegate") -> UserAgentAddress:
        return await self._save(UserAgentAddress(user_wallet=wallet, ostium_agent_address=address))


@pytest.fixture(scope="function")
async def test_db_engine():
    """
    Create test database engine
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(test_db_engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create test database session
    """
    async_session_maker = async_sessionmaker(
        test_db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def seed(db_session) -> Seeder:
    return Seeder(db_session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def bot_client() -> FakeBotClient:
    return FakeBotClient()


@pytest.fixture
def link_store(clock) -> InMemoryLinkCodeStore:
    return InMemoryLinkCodeStore(clock=clock)


@pytest.fixture
def broker(link_store, bot_client, clock) -> LinkBroker:
    return LinkBroker(
        store=link_store,
        bot_client=bot_client,
        ttl_seconds=600,
        default_bot_username="Prime_Alpha_bot",
        handle_timeout=0.5,
        clock=clock,
    )


@pytest.fixture
async def api_client(db_session, broker) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTP client against the FastAPI app, wired to the test session and broker
    """
    from api_server import app
    from src.database.engine import get_session
    from src.services.lazy_trading import get_link_broker

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_link_broker] = lambda: broker
    app.state.limiter.enabled = False

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
    app.state.limiter.enabled = True
