"""add_lazy_trading_tables

Revision ID: 4c7e2a91d0b3
Revises:
Create Date: 2026-10-18 10:12:44.381207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4c7e2a91d0b3'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create agents, Telegram links, deployments and agent addresses."""
    op.create_table(
        'agents',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('creator_wallet', sa.String(255), nullable=False, comment='Lowercase wallet that created the agent'),
        sa.Column('name', sa.String(255), nullable=False, comment='Agent display name'),
        sa.Column('venue', sa.String(50), nullable=False, server_default='OSTIUM', comment='Trading venue (OSTIUM, HYPERLIQUID, MULTI)'),
        sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT', comment='Agent status (DRAFT, ACTIVE, PAUSED)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_agents_creator_wallet', 'agents', ['creator_wallet'])
    # A wallet owns at most one lazy trading agent.
    # The predicate matches config.LAZY_TRADING_AGENT_PREFIX; change both together.
    op.create_index(
        'uq_agents_lazy_trader_wallet',
        'agents',
        ['creator_wallet'],
        unique=True,
        postgresql_where=sa.text("name LIKE 'Lazy Trader -%'"),
    )

    op.create_table(
        'telegram_alpha_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('telegram_user_id', sa.BigInteger(), nullable=False, comment='Telegram user ID'),
        sa.Column('telegram_username', sa.String(255), nullable=True),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('user_wallet', sa.String(255), nullable=True, comment='Lowercase wallet that issued the link code'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('lazy_trader', sa.Boolean(), nullable=False, server_default='false', comment='Linked through the lazy trading flow'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_telegram_alpha_users_telegram_user_id', 'telegram_alpha_users', ['telegram_user_id'], unique=True)
    op.create_index('ix_telegram_alpha_users_user_wallet', 'telegram_alpha_users', ['user_wallet'])
    # One active lazy trading link per wallet
    op.create_index(
        'uq_telegram_alpha_users_active_lazy_wallet',
        'telegram_alpha_users',
        ['user_wallet'],
        unique=True,
        postgresql_where=sa.text('lazy_trader AND is_active'),
    )

    op.create_table(
        'agent_telegram_users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False),
        sa.Column('telegram_alpha_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['telegram_alpha_user_id'], ['telegram_alpha_users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('telegram_alpha_user_id', name='uq_agent_telegram_users_telegram_user')
    )
    op.create_index('ix_agent_telegram_users_agent_id', 'agent_telegram_users', ['agent_id'])

    op.create_table(
        'agent_deployments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('agent_id', sa.Integer(), nullable=False),
        sa.Column('user_wallet', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='ACTIVE', comment='ACTIVE, PAUSED, CANCELLED'),
        sa.Column('enabled_venues', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]', comment='Venues the deployment trades on'),
        sa.Column('risk_tolerance', sa.Integer(), nullable=True),
        sa.Column('trade_frequency', sa.Integer(), nullable=True),
        sa.Column('social_sentiment_weight', sa.Integer(), nullable=True),
        sa.Column('price_momentum_focus', sa.Integer(), nullable=True),
        sa.Column('market_rank_priority', sa.Integer(), nullable=True),
        sa.Column('sub_started_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()'), comment='Subscription start; the latest row is the current deployment'),
        sa.ForeignKeyConstraint(['agent_id'], ['agents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_agent_deployments_agent_wallet_started',
        'agent_deployments',
        ['agent_id', 'user_wallet', 'sub_started_at'],
    )

    op.create_table(
        'user_agent_addresses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_wallet', sa.String(255), nullable=False),
        sa.Column('ostium_agent_address', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_user_agent_addresses_user_wallet', 'user_agent_addresses', ['user_wallet'], unique=True)


def downgrade() -> None:
    """Drop the lazy trading tables."""
    op.drop_index('ix_user_agent_addresses_user_wallet', table_name='user_agent_addresses')
    op.drop_table('user_agent_addresses')

    op.drop_index('ix_agent_deployments_agent_wallet_started', table_name='agent_deployments')
    op.drop_table('agent_deployments')

    op.drop_index('ix_agent_telegram_users_agent_id', table_name='agent_telegram_users')
    op.drop_table('agent_telegram_users')

    op.drop_index('uq_telegram_alpha_users_active_lazy_wallet', table_name='telegram_alpha_users')
    op.drop_index('ix_telegram_alpha_users_user_wallet', table_name='telegram_alpha_users')
    op.drop_index('ix_telegram_alpha_users_telegram_user_id', table_name='telegram_alpha_users')
    op.drop_table('telegram_alpha_users')

    op.drop_index('uq_agents_lazy_trader_wallet', table_name='agents')
    op.drop_index('ix_agents_creator_wallet', table_name='agents')
    op.drop_table('agents')
