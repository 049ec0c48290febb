"""
Core Enums - shared types for the lazy trading onboarding flow.

Defines:
- OnboardingStep: funnel stages, in funnel order
"""

from enum import Enum


class OnboardingStep(str, Enum):
    """Lazy trading onboarding funnel stage.

    Order: WALLET → TELEGRAM → PREFERENCES → OSTIUM.
    OSTIUM is also the resume state for fully configured users; delegation
    and allowance completeness are checked on that step, not modeled here.
    """

    WALLET = "wallet"  # Nothing set up yet
    TELEGRAM = "telegram"  # Agent exists, Telegram not linked
    PREFERENCES = "preferences"  # Telegram linked, no deployment
    OSTIUM = "ostium"  # Deployment exists, delegation / allowance
