class WalletError(Exception):
    """Base exception for client-side balance checks."""


class InvalidAmount(WalletError):
    """Raised when an amount is zero, negative or otherwise unusable."""


class InsufficientBalance(WalletError):
    """Raised when the stored balance cannot cover the requested amount."""
