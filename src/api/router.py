"""
FastAPI Router for the Lazy Trading onboarding API
"""

from fastapi import APIRouter

# Import sub-routers
from src.api.lazy_trading import router as lazy_trading_router


# Main router
router = APIRouter()

# Include sub-routers (they already carry their prefixes)
router.include_router(lazy_trading_router)  # Lazy trading onboarding (setup status, Telegram link)
