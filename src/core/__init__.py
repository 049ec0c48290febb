"""
Core module - base types, enums and errors for the whole stack.
"""

from src.core.enums import OnboardingStep
from src.core.errors import (
    LazyTradingError,
    InvalidWalletError,
    ResolutionError,
    LinkGenerationError,
    DuplicateLinkError,
)

__all__ = [
    "OnboardingStep",
    "LazyTradingError",
    "InvalidWalletError",
    "ResolutionError",
    "LinkGenerationError",
    "DuplicateLinkError",
]
