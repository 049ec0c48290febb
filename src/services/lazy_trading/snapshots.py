"""
Immutable snapshots of the entities the onboarding flow reads.

ORM rows never leave the identity resolver; the step resolver and the link
broker only see these frozen values, so the state machine can be tested
without a database.
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from src.database.models import (
    Agent,
    AgentDeployment,
    TelegramAlphaUser,
)


@dataclass(frozen=True)
class AgentSnapshot:
    """Lazy trading agent."""
    id: int
    name: str
    venue: str
    status: str

    @classmethod
    def from_model(cls, agent: Agent) -> "AgentSnapshot":
        return cls(id=agent.id, name=agent.name, venue=agent.venue, status=agent.status)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TelegramLinkSnapshot:
    """Linked Telegram account."""
    id: int
    telegram_user_id: int
    telegram_username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    @classmethod
    def from_model(cls, user: TelegramAlphaUser) -> "TelegramLinkSnapshot":
        return cls(
            id=user.id,
            telegram_user_id=user.telegram_user_id,
            telegram_username=user.telegram_username,
            first_name=user.first_name,
            last_name=user.last_name,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TradingPreferences:
    """Preference sliders copied verbatim from a deployment."""
    risk_tolerance: Optional[int]
    trade_frequency: Optional[int]
    social_sentiment_weight: Optional[int]
    price_momentum_focus: Optional[int]
    market_rank_priority: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DeploymentSnapshot:
    """Current deployment of the agent for the wallet."""
    id: int
    status: str
    enabled_venues: tuple[str, ...]
    preferences: TradingPreferences
    sub_started_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, deployment: AgentDeployment) -> "DeploymentSnapshot":
        return cls(
            id=deployment.id,
            status=deployment.status,
            enabled_venues=tuple(deployment.enabled_venues or ()),
            preferences=TradingPreferences(
                risk_tolerance=deployment.risk_tolerance,
                trade_frequency=deployment.trade_frequency,
                social_sentiment_weight=deployment.social_sentiment_weight,
                price_momentum_focus=deployment.price_momentum_focus,
                market_rank_priority=deployment.market_rank_priority,
            ),
            sub_started_at=deployment.sub_started_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status,
            "enabled_venues": list(self.enabled_venues),
        }


@dataclass(frozen=True)
class SetupSnapshot:
    """Everything the step resolver needs to know about one wallet.

    Attributes:
        wallet: Canonical wallet address
        agent: Lazy trading agent, if provisioned
        telegram_user: Attached link when an agent exists, otherwise the
            standalone (unattached) lazy trading link
        deployment: Current deployment (only looked up when an agent exists)
        delegated_address: Ostium agent address of the wallet
    """
    wallet: str
    agent: Optional[AgentSnapshot] = None
    telegram_user: Optional[TelegramLinkSnapshot] = None
    deployment: Optional[DeploymentSnapshot] = None
    delegated_address: Optional[str] = None
