# coding: utf-8
"""
Sentry configuration for error monitoring
"""
import sentry_sdk
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from loguru import logger

from config.config import SENTRY_DSN, ENVIRONMENT

# Query/body keys that carry the wallet identifier
_WALLET_KEYS = ("userWallet", "user_wallet")


def init_sentry() -> bool:
    """
    Initialize Sentry SDK for error monitoring

    Returns:
        True if Sentry was initialized, False if disabled or failed
    """
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN not configured - error monitoring disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            integrations=[
                AsyncioIntegration(),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=0.1 if ENVIRONMENT == "production" else 1.0,
            sample_rate=1.0,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
            before_send=before_send_hook,
        )
        logger.info(f"Sentry initialized successfully (Environment: {ENVIRONMENT})")
        return True

    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False


def before_send_hook(event, hint):
    """
    Strip wallet identifiers and bot credentials before events leave the process
    """
    request = event.get("request")
    if request:
        headers = request.get("headers", {})
        if "Authorization" in headers:
            headers["Authorization"] = "[Filtered]"

        query = request.get("query_string")
        if isinstance(query, str) and any(key in query for key in _WALLET_KEYS):
            request["query_string"] = "[Filtered]"

        data = request.get("data")
        if isinstance(data, dict):
            for key in _WALLET_KEYS:
                if key in data:
                    data[key] = "[Filtered]"

    return event
