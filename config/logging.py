# coding: utf-8
"""
Logging configuration with loguru for the Lazy Trading onboarding API
"""
import logging
import sys
from pathlib import Path

from loguru import logger
import sentry_sdk

from config.config import LOG_LEVEL, ENVIRONMENT, SENTRY_DSN

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(file_sinks: bool = True) -> None:
    """
    Setup loguru logging: colored console, daily rotated files, Sentry sink

    Args:
        file_sinks: Write logs/api_*.log and logs/error_*.log (off for tests)
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=LOG_LEVEL,
        colorize=True,
    )

    if file_sinks:
        logs_dir = Path(__file__).parent.parent / "logs"
        logs_dir.mkdir(exist_ok=True)

        # All API logs, including degraded link code writes
        logger.add(
            logs_dir / "api_{time:YYYY-MM-DD}.log",
            format=LOG_FORMAT,
            level="DEBUG",
            rotation="00:00",  # Rotate at midnight
            retention="7 days",
            compression="zip",
            encoding="utf-8",
        )

        # Errors only
        logger.add(
            logs_dir / "error_{time:YYYY-MM-DD}.log",
            format=LOG_FORMAT,
            level="ERROR",
            rotation="00:00",
            retention="30 days",  # Keep error logs longer
            compression="zip",
            encoding="utf-8",
        )

    # Send ERROR and CRITICAL to Sentry
    if SENTRY_DSN:
        logger.add(
            sentry_sink,
            level="ERROR",
            format="{message}",
        )

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.ERROR)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logger.info(f"Lazy Trading API initialized | Environment: {ENVIRONMENT} | Log level: {LOG_LEVEL}")


def sentry_sink(message):
    """
    Custom sink to send ERROR and CRITICAL logs to Sentry
    """
    record = message.record
    level = "fatal" if record["level"].name == "CRITICAL" else "error"

    sentry_sdk.capture_message(
        record["message"],
        level=level,
        extras={
            "function": record["function"],
            "file": record["file"].path,
            "line": record["line"],
        },
    )

    # If there's an exception, send it to Sentry
    if record["exception"]:
        sentry_sdk.capture_exception(record["exception"].value)
