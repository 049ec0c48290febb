"""
FastAPI Server for the Lazy Trading onboarding API
Serves the setup status and Telegram link endpoints for the frontend
"""

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.exceptions import HTTPException as StarletteHTTPException

from config.config import API_RATE_LIMIT, ENVIRONMENT, WEBAPP_URL, validate_config
from config.logging import setup_logging
from config.sentry import init_sentry
from src.api.router import router as api_router
from src.cache.redis_manager import get_redis_manager
from src.database.engine import check_connection, dispose_engine
from src.services.lazy_trading import get_link_broker

# Setup logging at module level (must run before app creation)
# This ensures logging works when uvicorn imports the module
setup_logging(file_sinks=ENVIRONMENT != "test")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup/shutdown events
    """
    # Startup
    logger.info("Starting Lazy Trading API Server...")

    init_sentry()

    # NOTE: Database tables managed by Alembic migrations
    # Run: alembic upgrade head

    # Link codes live in Redis; without it codes are still issued but cannot be exchanged
    redis_manager = get_redis_manager()
    await redis_manager.initialize()

    yield

    # Shutdown
    logger.info("Shutting down Lazy Trading API Server...")

    await get_link_broker().bot_client.close()
    logger.info("Telegram bot session closed")

    await redis_manager.close()

    await dispose_engine()
    logger.info("Database connections closed")


# Rate limiter
# Per IP, not per wallet: many users may sit behind one router
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[API_RATE_LIMIT],  # Global limit on all endpoints
    storage_uri="memory://",
)

# Create FastAPI app
app = FastAPI(
    title="Lazy Trading Onboarding API",
    description="Setup status and Telegram link codes for lazy trading",
    version="1.0.0",
    lifespan=lifespan,
)

# Add limiter state to app
app.state.limiter = limiter

# Register rate limit error handler
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# CORS for the frontend
# SECURITY: exact origins only, no wildcards
allowed_origins = [
    "http://localhost:3000",  # Local development
    "http://127.0.0.1:3000",  # Alternative localhost
]

# Add WEBAPP_URL from config if different
if WEBAPP_URL and WEBAPP_URL not in allowed_origins:
    allowed_origins.append(WEBAPP_URL)

# In development an ngrok tunnel may be added (only if set explicitly in .env)
if ENVIRONMENT == "development":
    ngrok_url = os.getenv("NGROK_URL")
    if ngrok_url and ngrok_url not in allowed_origins:
        allowed_origins.append(ngrok_url)
        logger.warning(f"⚠️ Development mode: Added ngrok URL to CORS: {ngrok_url}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# 🔒 SECURITY: Security Headers Middleware
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """
    Adds security headers to all responses

    Headers:
    - X-Content-Type-Options: MIME sniffing protection
    - X-Frame-Options: Clickjacking protection
    - Referrer-Policy: Referrer control
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "SAMEORIGIN"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    # Strict-Transport-Security (HSTS): production over HTTPS only
    if ENVIRONMENT == "production" and request.url.scheme == "https":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response


# Include API router with the /api prefix
app.include_router(api_router, prefix="/api")


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint
    """
    return {
        "service": "Lazy Trading Onboarding API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


# Health check endpoint
@app.get("/health")
async def health():
    """
    Health check endpoint

    Reports degraded (still 200) when the database or Redis is unreachable.
    """
    database_ok = await check_connection()
    redis_ok = get_redis_manager().is_available()

    return {
        "status": "healthy" if database_ok else "degraded",
        "database": database_ok,
        "redis": redis_ok,
    }


# Error handler for HTTP errors, including routing 404/405 (must be before generic Exception handler)
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Return the API error shape {"success": false, "error": ...} with the original status code
    """
    # Log 4xx as warning, 5xx as error
    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code} {request.method} {request.url.path}: {exc.detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code} {request.method} {request.url.path}: {exc.detail}")

    error = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": error},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Malformed query or body is a client error (400), not 422
    """
    logger.warning(f"Invalid request {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Invalid request"},
    )


# Error handler for unexpected exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors
    """
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Validate configuration
    try:
        validate_config()
    except ValueError as e:
        logger.error(f"{e}")
        exit(1)

    logger.info("Configuration validated successfully")

    # SECURITY: host="127.0.0.1" - localhost only
    # External access goes through the nginx reverse proxy
    uvicorn.run(
        "api_server:app",
        host="127.0.0.1",
        port=8003,
        reload=ENVIRONMENT == "development",
        log_level="info",
    )
