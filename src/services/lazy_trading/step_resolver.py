"""
Step Resolver - lazy trading onboarding state machine.

The step is recomputed from raw entities on every call; nothing stores a
"current step", so out-of-band writes by the provisioning flows can never
leave it stale.

Rules:
1. no agent, no standalone Telegram link → WALLET (hasSetup=false)
2. no agent, standalone Telegram link    → PREFERENCES, reduced payload
3. agent: no link (attached, or wallet-keyed before attaching) → TELEGRAM;
   no deployment → PREFERENCES; else → OSTIUM
"""

from dataclasses import dataclass
from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.enums import OnboardingStep
from src.core.errors import ResolutionError
from src.services.lazy_trading.identity_resolver import load_snapshot
from src.services.lazy_trading.snapshots import (
    AgentSnapshot,
    DeploymentSnapshot,
    SetupSnapshot,
    TelegramLinkSnapshot,
    TradingPreferences,
)


@dataclass(frozen=True)
class SetupStatus:
    """Resolved onboarding state of a wallet."""
    has_setup: bool
    step: OnboardingStep
    agent: Optional[AgentSnapshot] = None
    telegram_user: Optional[TelegramLinkSnapshot] = None
    deployment: Optional[DeploymentSnapshot] = None
    trading_preferences: Optional[TradingPreferences] = None
    delegated_address: Optional[str] = None

    def to_response(self) -> dict:
        """
        API payload

        A WALLET status only carries hasSetup and step; every other status
        carries the full set of keys, null where absent.
        """
        payload = {
            "success": True,
            "hasSetup": self.has_setup,
            "step": self.step.value,
        }
        if self.step is OnboardingStep.WALLET:
            return payload

        payload.update(
            {
                "agent": self.agent.to_dict() if self.agent else None,
                "telegramUser": self.telegram_user.to_dict() if self.telegram_user else None,
                "deployment": self.deployment.to_dict() if self.deployment else None,
                "tradingPreferences": (
                    self.trading_preferences.to_dict() if self.trading_preferences else None
                ),
                "ostiumAgentAddress": self.delegated_address,
            }
        )
        return payload


def resolve_step(snapshot: SetupSnapshot) -> SetupStatus:
    """
    Apply the onboarding state machine to a snapshot

    Pure function: no I/O, same snapshot → same status.
    """
    if snapshot.agent is None:
        if snapshot.telegram_user is None:
            return SetupStatus(has_setup=False, step=OnboardingStep.WALLET)

        # A standalone active link already satisfies the Telegram step
        return SetupStatus(
            has_setup=True,
            step=OnboardingStep.PREFERENCES,
            telegram_user=snapshot.telegram_user,
        )

    if snapshot.telegram_user is None:
        step = OnboardingStep.TELEGRAM
    elif snapshot.deployment is None:
        step = OnboardingStep.PREFERENCES
    else:
        step = OnboardingStep.OSTIUM

    return SetupStatus(
        has_setup=True,
        step=step,
        agent=snapshot.agent,
        telegram_user=snapshot.telegram_user,
        deployment=snapshot.deployment,
        trading_preferences=snapshot.deployment.preferences if snapshot.deployment else None,
        delegated_address=snapshot.delegated_address,
    )


async def get_setup_status(session: AsyncSession, wallet: str) -> SetupStatus:
    """
    Resolve the onboarding step of a canonical wallet

    Raises:
        ResolutionError: any store failure during the lookups
    """
    try:
        snapshot = await load_snapshot(session, wallet)
    except SQLAlchemyError as e:
        logger.error(f"[LazyTrading] Setup status lookup failed for {wallet}: {e}")
        raise ResolutionError("Failed to get setup status") from e

    status = resolve_step(snapshot)
    logger.debug(f"[LazyTrading] {wallet} → step={status.step.value} (hasSetup={status.has_setup})")
    return status
