"""Custom error classes."""


class CashbackError(Exception):
    """Base exception for the cashback application."""
    status_code = 500


class ChainAdapterError(CashbackError):
    """Error raised inside a chain adapter before it is absorbed."""
    status_code = 502

    def __init__(self, message: str, status: int = None):
        super().__init__(message)
        self.status = status

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class PriceServiceError(CashbackError):
    """Error related to price fetching."""
    status_code = 502


class WalletValidationError(CashbackError):
    """Wallet address failed format validation."""
    status_code = 400


class PersistenceError(CashbackError):
    """The relational store is unavailable or rejected a write."""
    status_code = 503


class NotFoundError(CashbackError):
    """Requested record does not exist."""
    status_code = 404


class ConflictError(CashbackError):
    """Record already exists."""
    status_code = 409


class RateLimitExceeded(CashbackError):
    """Client exceeded its request budget."""
    status_code = 429

    def __init__(self, message: str, retry_after: int = None):
        super().__init__(message)
        self.retry_after = retry_after
