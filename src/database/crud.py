"""
CRUD operations for the Lazy Trading onboarding API

Async database operations using SQLAlchemy 2.0.
All wallet arguments are expected in canonical (lowercase) form.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config.config import LAZY_TRADING_AGENT_PREFIX
from src.database.models import (
    Agent,
    AgentDeployment,
    AgentTelegramUser,
    TelegramAlphaUser,
    UserAgentAddress,
)

logger = logging.getLogger(__name__)


# ===========================
# AGENT OPERATIONS
# ===========================


async def get_lazy_agent_by_wallet(session: AsyncSession, wallet: str) -> Optional[Agent]:
    """
    Get the lazy trading agent created by a wallet

    Args:
        session: Database session
        wallet: Canonical wallet address

    Returns:
        Agent or None (most recent one if legacy duplicates exist)
    """
    stmt = (
        select(Agent)
        .where(
            Agent.creator_wallet == wallet,
            Agent.name.startswith(LAZY_TRADING_AGENT_PREFIX, autoescape=True),
        )
        .order_by(Agent.created_at.desc(), Agent.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


# ===========================
# TELEGRAM LINK OPERATIONS
# ===========================


async def get_attached_telegram_user(
    session: AsyncSession, agent_id: int
) -> Optional[TelegramAlphaUser]:
    """
    Get the Telegram account attached to an agent

    The attachment itself counts; is_active of the account is not checked.

    Args:
        session: Database session
        agent_id: Agent ID

    Returns:
        TelegramAlphaUser or None
    """
    stmt = (
        select(TelegramAlphaUser)
        .join(AgentTelegramUser, AgentTelegramUser.telegram_alpha_user_id == TelegramAlphaUser.id)
        .where(AgentTelegramUser.agent_id == agent_id)
        .order_by(TelegramAlphaUser.created_at.desc(), TelegramAlphaUser.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_active_lazy_telegram_user(
    session: AsyncSession, wallet: str
) -> Optional[TelegramAlphaUser]:
    """
    Get the active lazy trading Telegram account keyed by wallet

    Attached or not, this is the row the bot exchange creates for the wallet.
    """
    stmt = (
        select(TelegramAlphaUser)
        .where(
            TelegramAlphaUser.user_wallet == wallet,
            TelegramAlphaUser.lazy_trader.is_(True),
            TelegramAlphaUser.is_active.is_(True),
        )
        .order_by(TelegramAlphaUser.created_at.desc(), TelegramAlphaUser.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_standalone_lazy_telegram_user(
    session: AsyncSession, wallet: str
) -> Optional[TelegramAlphaUser]:
    """
    Get the active lazy trading Telegram account that is not attached to any agent

    Args:
        session: Database session
        wallet: Canonical wallet address

    Returns:
        Most recently created matching TelegramAlphaUser or None
    """
    attached = select(AgentTelegramUser.id).where(
        AgentTelegramUser.telegram_alpha_user_id == TelegramAlphaUser.id
    )
    stmt = (
        select(TelegramAlphaUser)
        .where(
            TelegramAlphaUser.user_wallet == wallet,
            TelegramAlphaUser.lazy_trader.is_(True),
            TelegramAlphaUser.is_active.is_(True),
            ~attached.exists(),
        )
        .order_by(TelegramAlphaUser.created_at.desc(), TelegramAlphaUser.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_lazy_telegram_user(
    session: AsyncSession,
    wallet: str,
    telegram_user_id: int,
    telegram_username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> TelegramAlphaUser:
    """
    Create an active lazy trading Telegram account for a wallet

    Raises:
        IntegrityError: the wallet already has an active lazy link, or the
            Telegram account is already registered
    """
    telegram_user = TelegramAlphaUser(
        telegram_user_id=telegram_user_id,
        telegram_username=telegram_username,
        first_name=first_name,
        last_name=last_name,
        user_wallet=wallet,
        is_active=True,
        lazy_trader=True,
    )
    session.add(telegram_user)
    await session.commit()
    await session.refresh(telegram_user)

    logger.info(f"Created lazy trading Telegram link {telegram_user.id} for {wallet}")
    return telegram_user


async def attach_telegram_user(
    session: AsyncSession, agent_id: int, telegram_alpha_user_id: int
) -> AgentTelegramUser:
    """
    Attach a Telegram account to an agent

    Raises:
        IntegrityError: the Telegram account is already attached to an agent
    """
    link = AgentTelegramUser(agent_id=agent_id, telegram_alpha_user_id=telegram_alpha_user_id)
    session.add(link)
    await session.commit()
    await session.refresh(link)

    logger.info(f"Attached Telegram link {telegram_alpha_user_id} to agent {agent_id}")
    return link


# ===========================
# DEPLOYMENT OPERATIONS
# ===========================


async def get_latest_deployment(
    session: AsyncSession, agent_id: int, wallet: str
) -> Optional[AgentDeployment]:
    """
    Get the current deployment of an agent for a wallet

    Latest by sub_started_at; rows with the same start time resolve to the
    one inserted last.
    """
    stmt = (
        select(AgentDeployment)
        .where(
            AgentDeployment.agent_id == agent_id,
            AgentDeployment.user_wallet == wallet,
        )
        .order_by(AgentDeployment.sub_started_at.desc(), AgentDeployment.id.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


# ===========================
# AGENT ADDRESS OPERATIONS
# ===========================


async def get_user_agent_address(
    session: AsyncSession, wallet: str
) -> Optional[UserAgentAddress]:
    """
    Get the delegated agent address row of a wallet
    """
    stmt = select(UserAgentAddress).where(UserAgentAddress.user_wallet == wallet)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()
