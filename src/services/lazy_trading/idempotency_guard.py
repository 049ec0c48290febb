"""
Idempotency Guard - one active Telegram link per wallet, one agent per Telegram account.

Enforcement is lookup-before-act. The partial unique indexes on
telegram_alpha_users and the unique constraint on agent_telegram_users are
the second line of defense: a writer that races past the lookup gets a
DuplicateLinkError instead of a silent duplicate.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import DuplicateLinkError
from src.database import crud
from src.services.lazy_trading.snapshots import AgentSnapshot, TelegramLinkSnapshot


@dataclass(frozen=True)
class ExistingLink:
    """A Telegram account already linked for the wallet.

    agent_id is None when the link was found directly by wallet (the agent
    may or may not exist yet).
    """
    telegram_user: TelegramLinkSnapshot
    agent_id: Optional[int] = None


async def find_active_lazy_link(
    session: AsyncSession, wallet: str
) -> Optional[TelegramLinkSnapshot]:
    user = await crud.get_active_lazy_telegram_user(session, wallet)
    return TelegramLinkSnapshot.from_model(user) if user else None


async def find_linked_agent(
    session: AsyncSession, wallet: str
) -> Optional[tuple[AgentSnapshot, TelegramLinkSnapshot]]:
    """Lazy trading agent of the wallet together with its attached link."""
    agent = await crud.get_lazy_agent_by_wallet(session, wallet)
    if agent is None:
        return None

    user = await crud.get_attached_telegram_user(session, agent.id)
    if user is None:
        return None

    return AgentSnapshot.from_model(agent), TelegramLinkSnapshot.from_model(user)


async def check_existing_link(session: AsyncSession, wallet: str) -> Optional[ExistingLink]:
    """
    Existing Telegram link for the wallet, if any

    Checks the direct wallet-keyed link first, then the agent attachment.

    Raises:
        SQLAlchemyError: propagated from the store
    """
    direct = await find_active_lazy_link(session, wallet)
    if direct is not None:
        return ExistingLink(telegram_user=direct)

    linked = await find_linked_agent(session, wallet)
    if linked is not None:
        agent, user = linked
        return ExistingLink(telegram_user=user, agent_id=agent.id)

    return None


@asynccontextmanager
async def guard_conflicts(session: AsyncSession, wallet: Optional[str] = None) -> AsyncIterator[None]:
    """
    Translate uniqueness violations into DuplicateLinkError

    Usage:
        async with guard_conflicts(session, wallet):
            await crud.create_lazy_telegram_user(session, wallet, ...)
    """
    try:
        yield
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"[LazyTrading] Duplicate link rejected by the store for {wallet}: {e.orig}")
        raise DuplicateLinkError("Telegram account is already linked", wallet=wallet) from e


async def link_telegram_account(
    session: AsyncSession,
    wallet: str,
    telegram_user_id: int,
    telegram_username: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> TelegramLinkSnapshot:
    """
    Record a Telegram account for a wallet (exchange path)

    Returns the existing link unchanged when the wallet is already linked to
    the same Telegram account.

    Raises:
        DuplicateLinkError: the wallet is linked to another Telegram account,
            or the Telegram account belongs to another wallet
    """
    existing = await find_active_lazy_link(session, wallet)
    if existing is not None:
        if existing.telegram_user_id == telegram_user_id:
            return existing
        raise DuplicateLinkError("Wallet already has an active Telegram link", wallet=wallet)

    async with guard_conflicts(session, wallet):
        user = await crud.create_lazy_telegram_user(
            session,
            wallet=wallet,
            telegram_user_id=telegram_user_id,
            telegram_username=telegram_username,
            first_name=first_name,
            last_name=last_name,
        )

    return TelegramLinkSnapshot.from_model(user)


async def attach_to_agent(
    session: AsyncSession, agent_id: int, telegram_link_id: int
) -> None:
    """
    Attach a Telegram link to an agent

    Raises:
        DuplicateLinkError: the Telegram account already feeds an agent
    """
    async with guard_conflicts(session):
        await crud.attach_telegram_user(session, agent_id, telegram_link_id)
