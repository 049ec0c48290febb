"""
Identity Resolver - canonical wallet form and entity lookups.

Every lookup is keyed on the lowercase wallet and returns frozen snapshots.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import InvalidWalletError
from src.database import crud
from src.services.lazy_trading.snapshots import (
    AgentSnapshot,
    DeploymentSnapshot,
    SetupSnapshot,
    TelegramLinkSnapshot,
)

MAX_WALLET_LENGTH = 255


def normalize_wallet(wallet: Any) -> str:
    """
    Canonical (lowercase) wallet identifier

    Args:
        wallet: Raw value from the query string or request body

    Returns:
        Lowercase wallet string

    Raises:
        InvalidWalletError: value is not a non-empty single-token string
    """
    if not isinstance(wallet, str):
        raise InvalidWalletError("userWallet is required")

    normalized = wallet.strip().lower()
    if not normalized:
        raise InvalidWalletError("userWallet is required")
    if any(ch.isspace() for ch in normalized) or len(normalized) > MAX_WALLET_LENGTH:
        raise InvalidWalletError("userWallet is malformed")

    return normalized


async def resolve_agent(session: AsyncSession, wallet: str) -> Optional[AgentSnapshot]:
    agent = await crud.get_lazy_agent_by_wallet(session, wallet)
    return AgentSnapshot.from_model(agent) if agent else None


async def resolve_telegram_link(
    session: AsyncSession, agent: Optional[AgentSnapshot], wallet: str
) -> Optional[TelegramLinkSnapshot]:
    """
    Telegram link of the wallet

    With an agent: the link attached to that agent, or the active lazy
    trading link keyed by the wallet while the provisioning flow has not
    attached it yet. Without one: the newest active lazy trading link keyed
    by the wallet that no agent owns yet.
    """
    if agent is None:
        user = await crud.get_standalone_lazy_telegram_user(session, wallet)
    else:
        user = await crud.get_attached_telegram_user(session, agent.id)
        if user is None:
            user = await crud.get_active_lazy_telegram_user(session, wallet)
    return TelegramLinkSnapshot.from_model(user) if user else None


async def resolve_deployment(
    session: AsyncSession, agent_id: int, wallet: str
) -> Optional[DeploymentSnapshot]:
    deployment = await crud.get_latest_deployment(session, agent_id, wallet)
    return DeploymentSnapshot.from_model(deployment) if deployment else None


async def resolve_delegated_address(session: AsyncSession, wallet: str) -> Optional[str]:
    address = await crud.get_user_agent_address(session, wallet)
    return address.ostium_agent_address if address else None


async def load_snapshot(session: AsyncSession, wallet: str) -> SetupSnapshot:
    """
    Gather the entities of a wallet for the step resolver

    Lookups run in funnel order. Without an agent only the standalone link
    matters, so deployment and delegated address are not queried.

    Raises:
        SQLAlchemyError: propagated from the store; callers wrap it
    """
    agent = await resolve_agent(session, wallet)
    telegram_user = await resolve_telegram_link(session, agent, wallet)

    if agent is None:
        return SetupSnapshot(wallet=wallet, telegram_user=telegram_user)

    deployment = await resolve_deployment(session, agent.id, wallet)
    delegated_address = await resolve_delegated_address(session, wallet)

    return SetupSnapshot(
        wallet=wallet,
        agent=agent,
        telegram_user=telegram_user,
        deployment=deployment,
        delegated_address=delegated_address,
    )
