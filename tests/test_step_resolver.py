"""
Unit tests for the onboarding step state machine
"""

import pytest
from datetime import datetime, UTC

from sqlalchemy.exc import OperationalError

from src.core.enums import OnboardingStep
from src.core.errors import ResolutionError
from src.services.lazy_trading.snapshots import (
    AgentSnapshot,
    DeploymentSnapshot,
    SetupSnapshot,
    TelegramLinkSnapshot,
    TradingPreferences,
)
from src.services.lazy_trading.step_resolver import get_setup_status, resolve_step
from tests.conftest import WALLET


FUNNEL = list(OnboardingStep)


AGENT = AgentSnapshot(id=7, name="Lazy Trader - 0xabc", venue="OSTIUM", status="ACTIVE")
LINK = TelegramLinkSnapshot(id=3, telegram_user_id=1001, telegram_username="trader", first_name="Alice")
PREFERENCES = TradingPreferences(
    risk_tolerance=50,
    trade_frequency=40,
    social_sentiment_weight=60,
    price_momentum_focus=70,
    market_rank_priority=30,
)
DEPLOYMENT = DeploymentSnapshot(
    id=11,
    status="ACTIVE",
    enabled_venues=("OSTIUM",),
    preferences=PREFERENCES,
    sub_started_at=datetime(2026, 1, 1, tzinfo=UTC),
)


def test_nothing_set_up_is_wallet_step():
    status = resolve_step(SetupSnapshot(wallet=WALLET))

    assert status.has_setup is False
    assert status.step is OnboardingStep.WALLET
    assert status.to_response() == {"success": True, "hasSetup": False, "step": "wallet"}


def test_standalone_link_short_circuits_to_preferences():
    """An unattached active link skips the Telegram step even without an agent"""
    status = resolve_step(SetupSnapshot(wallet=WALLET, telegram_user=LINK))

    assert status.has_setup is True
    assert status.step is OnboardingStep.PREFERENCES

    response = status.to_response()
    assert response["agent"] is None
    assert response["deployment"] is None
    assert response["tradingPreferences"] is None
    assert response["telegramUser"]["telegram_user_id"] == 1001


def test_standalone_link_ignores_delegated_address():
    """Reduced payload: nothing but the link is reported without an agent"""
    status = resolve_step(
        SetupSnapshot(wallet=WALLET, telegram_user=LINK, delegated_address="0xdelegate")
    )

    assert status.step is OnboardingStep.PREFERENCES
    assert status.to_response()["ostiumAgentAddress"] is None


def test_agent_without_link_is_telegram_step():
    status = resolve_step(SetupSnapshot(wallet=WALLET, agent=AGENT))

    assert status.has_setup is True
    assert status.step is OnboardingStep.TELEGRAM
    assert status.to_response()["agent"] == {
        "id": 7,
        "name": "Lazy Trader - 0xabc",
        "venue": "OSTIUM",
        "status": "ACTIVE",
    }


def test_agent_with_deployment_but_no_link_is_still_telegram_step():
    status = resolve_step(SetupSnapshot(wallet=WALLET, agent=AGENT, deployment=DEPLOYMENT))

    assert status.step is OnboardingStep.TELEGRAM


def test_agent_with_link_without_deployment_is_preferences_step():
    status = resolve_step(SetupSnapshot(wallet=WALLET, agent=AGENT, telegram_user=LINK))

    assert status.step is OnboardingStep.PREFERENCES
    assert status.trading_preferences is None


def test_full_setup_is_ostium_step():
    status = resolve_step(
        SetupSnapshot(
            wallet=WALLET,
            agent=AGENT,
            telegram_user=LINK,
            deployment=DEPLOYMENT,
            delegated_address="0xdelegate",
        )
    )

    assert status.step is OnboardingStep.OSTIUM
    assert status.trading_preferences == PREFERENCES

    response = status.to_response()
    assert response == {
        "success": True,
        "hasSetup": True,
        "step": "ostium",
        "agent": AGENT.to_dict(),
        "telegramUser": LINK.to_dict(),
        "deployment": {"id": 11, "status": "ACTIVE", "enabled_venues": ["OSTIUM"]},
        "tradingPreferences": {
            "risk_tolerance": 50,
            "trade_frequency": 40,
            "social_sentiment_weight": 60,
            "price_momentum_focus": 70,
            "market_rank_priority": 30,
        },
        "ostiumAgentAddress": "0xdelegate",
    }


def test_ostium_step_without_delegated_address():
    """Delegation is checked on the Ostium step itself, not before it"""
    status = resolve_step(
        SetupSnapshot(wallet=WALLET, agent=AGENT, telegram_user=LINK, deployment=DEPLOYMENT)
    )

    assert status.step is OnboardingStep.OSTIUM
    assert status.to_response()["ostiumAgentAddress"] is None


def test_steps_only_move_forward():
    """Each fact added along the funnel never lowers the resolved step"""
    funnel = [
        SetupSnapshot(wallet=WALLET),
        SetupSnapshot(wallet=WALLET, agent=AGENT),
        SetupSnapshot(wallet=WALLET, agent=AGENT, telegram_user=LINK),
        SetupSnapshot(wallet=WALLET, agent=AGENT, telegram_user=LINK, deployment=DEPLOYMENT),
    ]

    ranks = [FUNNEL.index(resolve_step(snapshot).step) for snapshot in funnel]

    assert ranks == sorted(ranks)
    assert ranks == [0, 1, 2, 3]


def test_step_order():
    assert [step.value for step in FUNNEL] == [
        "wallet",
        "telegram",
        "preferences",
        "ostium",
    ]


@pytest.mark.asyncio
async def test_get_setup_status_reads_the_store(db_session, seed):
    agent = await seed.agent()
    user = await seed.telegram_user()
    await seed.attach(agent, user)

    status = await get_setup_status(db_session, WALLET)

    assert status.step is OnboardingStep.PREFERENCES
    assert status.agent.id == agent.id


@pytest.mark.asyncio
async def test_get_setup_status_is_recomputed_each_call(db_session, seed):
    """Out-of-band writes show up on the next call"""
    assert (await get_setup_status(db_session, WALLET)).step is OnboardingStep.WALLET

    agent = await seed.agent()
    assert (await get_setup_status(db_session, WALLET)).step is OnboardingStep.TELEGRAM

    user = await seed.telegram_user()
    await seed.attach(agent, user)
    await seed.deployment(agent)
    assert (await get_setup_status(db_session, WALLET)).step is OnboardingStep.OSTIUM


@pytest.mark.asyncio
async def test_linking_before_the_agent_never_goes_back_to_telegram(db_session, seed, broker):
    """Link first, agent provisioned later: the step holds and no new code is offered"""
    user = await seed.telegram_user()
    before = await get_setup_status(db_session, WALLET)
    assert before.step is OnboardingStep.PREFERENCES

    agent = await seed.agent()
    after = await get_setup_status(db_session, WALLET)
    assert FUNNEL.index(after.step) >= FUNNEL.index(before.step)
    assert after.step is OnboardingStep.PREFERENCES
    assert after.agent.id == agent.id
    assert after.telegram_user.id == user.id
    assert (await broker.generate_code(db_session, WALLET)).already_linked is True

    await seed.attach(agent, user)
    await seed.deployment(agent)
    assert (await get_setup_status(db_session, WALLET)).step is OnboardingStep.OSTIUM


@pytest.mark.asyncio
async def test_inactive_attached_link_still_completes_telegram_step(db_session, seed, broker):
    agent = await seed.agent()
    user = await seed.telegram_user(is_active=False)
    await seed.attach(agent, user)
    await seed.deployment(agent)

    status = await get_setup_status(db_session, WALLET)
    result = await broker.generate_code(db_session, WALLET)

    assert status.step is OnboardingStep.OSTIUM
    assert result.already_linked is True
    assert result.agent_id == agent.id


class FailingSession:
    """Session whose every query fails"""

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))


@pytest.mark.asyncio
async def test_store_failure_raises_resolution_error():
    with pytest.raises(ResolutionError, match="Failed to get setup status"):
        await get_setup_status(FailingSession(), WALLET)
