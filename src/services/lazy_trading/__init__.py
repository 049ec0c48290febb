"""
Lazy Trading onboarding - step resolution and Telegram link codes.

Provides:
- normalize_wallet / load_snapshot: identity resolution
- resolve_step / get_setup_status: onboarding state machine
- LinkBroker: link code issuance and lookup
- check_existing_link / link_telegram_account: idempotency guard

Usage:
    from src.services.lazy_trading import get_setup_status, normalize_wallet

    status = await get_setup_status(session, normalize_wallet(raw_wallet))
    payload = status.to_response()
"""

from src.services.lazy_trading.identity_resolver import normalize_wallet, load_snapshot
from src.services.lazy_trading.step_resolver import SetupStatus, resolve_step, get_setup_status
from src.services.lazy_trading.link_broker import LinkBroker, LinkCodeResult, get_link_broker
from src.services.lazy_trading.idempotency_guard import (
    ExistingLink,
    check_existing_link,
    link_telegram_account,
    attach_to_agent,
)
from src.services.lazy_trading.telegram_bot_client import (
    BotIdentity,
    MessagingBotClient,
    TelegramBotClient,
)

__all__ = [
    # Identity
    "normalize_wallet",
    "load_snapshot",
    # Step resolution
    "SetupStatus",
    "resolve_step",
    "get_setup_status",
    # Link codes
    "LinkBroker",
    "LinkCodeResult",
    "get_link_broker",
    # Idempotency
    "ExistingLink",
    "check_existing_link",
    "link_telegram_account",
    "attach_to_agent",
    # Bot
    "BotIdentity",
    "MessagingBotClient",
    "TelegramBotClient",
]
