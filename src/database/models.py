"""
Database models for the Lazy Trading onboarding API

SQLAlchemy 2.0 models with full type hints.

The onboarding core only reads these tables. Agents, deployments and agent
addresses are written by the provisioning flows; Telegram links are written
by the bot's /start exchange.
"""

from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import (
    String,
    BigInteger,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
    JSON,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import JSONB

from config.config import LAZY_TRADING_AGENT_PREFIX


class Base(DeclarativeBase):
    """Base class for all models"""

    pass


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONVariant = JSON().with_variant(JSONB(), "postgresql")

# Partial index predicates. Booleans are spelled per dialect.
_LAZY_AGENT_WHERE = text(f"name LIKE '{LAZY_TRADING_AGENT_PREFIX}%'")
_ACTIVE_LAZY_LINK_WHERE_PG = text("lazy_trader AND is_active")
_ACTIVE_LAZY_LINK_WHERE_SQLITE = text("lazy_trader = 1 AND is_active = 1")


# ===========================
# MODELS
# ===========================


class Agent(Base):
    """
    Provisioned trading agent

    Lazy trading agents are recognised by the name prefix
    (LAZY_TRADING_AGENT_PREFIX). A wallet owns at most one of them.
    """

    __tablename__ = "agents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_wallet: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True, comment="Lowercase wallet that created the agent"
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Agent display name")
    venue: Mapped[str] = mapped_column(
        String(50), nullable=False, default="OSTIUM", comment="Trading venue (OSTIUM, HYPERLIQUID, MULTI)"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="DRAFT", comment="Agent status (DRAFT, ACTIVE, PAUSED)"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    telegram_users: Mapped[list["AgentTelegramUser"]] = relationship(
        "AgentTelegramUser", back_populates="agent", cascade="all, delete-orphan"
    )
    deployments: Mapped[list["AgentDeployment"]] = relationship(
        "AgentDeployment", back_populates="agent", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index(
            "uq_agents_lazy_trader_wallet",
            "creator_wallet",
            unique=True,
            postgresql_where=_LAZY_AGENT_WHERE,
            sqlite_where=_LAZY_AGENT_WHERE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name={self.name}, wallet={self.creator_wallet})>"


class TelegramAlphaUser(Base):
    """
    Telegram account linked as a signal source

    Rows created by the lazy trading exchange carry lazy_trader=True and the
    issuing wallet in user_wallet. They are later attached to the wallet's
    agent through agent_telegram_users.
    """

    __tablename__ = "telegram_alpha_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    telegram_user_id: Mapped[int] = mapped_column(
        BigInteger, unique=True, nullable=False, index=True, comment="Telegram user ID"
    )
    telegram_username: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_wallet: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True, comment="Lowercase wallet that issued the link code"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    lazy_trader: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False, comment="Linked through the lazy trading flow"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    agent_links: Mapped[list["AgentTelegramUser"]] = relationship(
        "AgentTelegramUser", back_populates="telegram_user", cascade="all, delete-orphan"
    )

    __table_args__ = (
        # One active lazy trading link per wallet
        Index(
            "uq_telegram_alpha_users_active_lazy_wallet",
            "user_wallet",
            unique=True,
            postgresql_where=_ACTIVE_LAZY_LINK_WHERE_PG,
            sqlite_where=_ACTIVE_LAZY_LINK_WHERE_SQLITE,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<TelegramAlphaUser(id={self.id}, telegram_user_id={self.telegram_user_id}, "
            f"wallet={self.user_wallet}, active={self.is_active})>"
        )


class AgentTelegramUser(Base):
    """
    Agent ↔ Telegram account attachment
    """

    __tablename__ = "agent_telegram_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True
    )
    telegram_alpha_user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("telegram_alpha_users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    agent: Mapped["Agent"] = relationship("Agent", back_populates="telegram_users")
    telegram_user: Mapped["TelegramAlphaUser"] = relationship(
        "TelegramAlphaUser", back_populates="agent_links"
    )

    # A Telegram account feeds at most one agent
    __table_args__ = (
        UniqueConstraint("telegram_alpha_user_id", name="uq_agent_telegram_users_telegram_user"),
    )


class AgentDeployment(Base):
    """
    Configuration snapshot of an agent for a wallet

    Several rows may exist per agent+wallet; the current one is the latest by
    sub_started_at, ties broken by insertion order (id).
    """

    __tablename__ = "agent_deployments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False
    )
    user_wallet: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="ACTIVE", comment="ACTIVE, PAUSED, CANCELLED"
    )
    enabled_venues: Mapped[list] = mapped_column(
        JSONVariant, nullable=False, default=list, comment="Venues the deployment trades on"
    )

    # Trading preferences (0-100 sliders)
    risk_tolerance: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    trade_frequency: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    social_sentiment_weight: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    price_momentum_focus: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    market_rank_priority: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    sub_started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="Subscription start; the latest row is the current deployment",
    )

    agent: Mapped["Agent"] = relationship("Agent", back_populates="deployments")

    __table_args__ = (
        Index("ix_agent_deployments_agent_wallet_started", "agent_id", "user_wallet", "sub_started_at"),
    )

    def __repr__(self) -> str:
        return f"<AgentDeployment(id={self.id}, agent_id={self.agent_id}, status={self.status})>"


class UserAgentAddress(Base):
    """
    Wallet → delegated trading address (one row per wallet)
    """

    __tablename__ = "user_agent_addresses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_wallet: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    ostium_agent_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
