"""
Core errors for the lazy trading onboarding flow.

Every error the services raise derives from LazyTradingError so the API
layer can map them to HTTP responses in one place.
"""


class LazyTradingError(Exception):
    """Base error for the lazy trading flow"""


class InvalidWalletError(LazyTradingError, ValueError):
    """Wallet identifier is missing or malformed (client error, HTTP 400)"""


class ResolutionError(LazyTradingError):
    """Persistent store read failed while resolving the setup status"""


class LinkGenerationError(LazyTradingError):
    """Link code could not be minted or the idempotency lookup failed"""


class DuplicateLinkError(LazyTradingError):
    """A uniqueness constraint rejected a second active Telegram link

    Raised when two concurrent writers race past the lookup-before-act check.
    """

    def __init__(self, message: str, wallet: str | None = None):
        super().__init__(message)
        self.wallet = wallet
