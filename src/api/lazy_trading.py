"""
Lazy Trading API

Onboarding status and Telegram link codes for the lazy trading page.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.errors import InvalidWalletError, LinkGenerationError, ResolutionError
from src.database.engine import get_session
from src.services.lazy_trading import (
    LinkBroker,
    get_link_broker,
    get_setup_status,
    normalize_wallet,
)


router = APIRouter(prefix="/lazy-trading", tags=["lazy-trading"])


# ===========================
# REQUEST MODELS
# ===========================


class GenerateTelegramLinkRequest(BaseModel):
    """Request body for link code generation"""
    # Any: a non-string wallet is a 400, not a schema error
    userWallet: Any = None


# ===========================
# API ENDPOINTS
# ===========================


@router.get("/get-setup-status")
async def get_lazy_trading_setup_status(
    userWallet: Optional[str] = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> Dict[str, Any]:
    """
    Current lazy trading setup status of a wallet

    Used to restore the onboarding page when the user comes back.

    Query params:
        userWallet: Wallet address (any case)

    Returns:
        {
            "success": true,
            "hasSetup": true,
            "step": "preferences",
            "agent": null,
            "telegramUser": {...},
            "deployment": null,
            "tradingPreferences": null,
            "ostiumAgentAddress": null
        }

    Errors:
        400: userWallet missing or malformed
        500: Store failure
    """
    try:
        wallet = normalize_wallet(userWallet)
    except InvalidWalletError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        status = await get_setup_status(session, wallet)
    except ResolutionError as e:
        logger.error(f"[API] Get lazy trading setup status error: {e.__cause__ or e}")
        raise HTTPException(status_code=500, detail="Failed to get setup status")

    return status.to_response()


@router.post("/generate-telegram-link")
async def generate_lazy_trading_telegram_link(
    data: Optional[GenerateTelegramLinkRequest] = None,
    session: AsyncSession = Depends(get_session),
    broker: LinkBroker = Depends(get_link_broker),
) -> Dict[str, Any]:
    """
    Generate a Telegram link code for lazy trading

    Body:
        {"userWallet": "0x..."}

    Returns:
        {
            "success": true,
            "alreadyLinked": false,
            "linkCode": "LT3F9A0C12BB7E",
            "botUsername": "Prime_Alpha_bot",
            "deepLink": "https://t.me/Prime_Alpha_bot?start=LT3F9A0C12BB7E",
            "instructions": "...",
            "expiresIn": 600
        }

        or, when the wallet already has Telegram connected:

        {"success": true, "alreadyLinked": true, "telegramUser": {...}, "agentId": null}

    Errors:
        400: userWallet missing or not a string
        500: Link generation failed
    """
    try:
        wallet = normalize_wallet(data.userWallet if data else None)
    except InvalidWalletError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        result = await broker.generate_code(session, wallet)
    except LinkGenerationError as e:
        logger.error(f"[API] Generate lazy trading telegram link error: {e.__cause__ or e}")
        raise HTTPException(status_code=500, detail="Failed to generate link")

    return result.to_response()
