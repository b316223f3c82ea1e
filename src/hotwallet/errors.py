"""
Error types raised by the transaction engine.

Every failure is reported as a distinct subclass of WalletError so callers can
tell, for example, insufficient funds from a bad address without parsing
message text.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all transaction engine errors."""


class InvalidPrivateKeyError(WalletError):
    pass


class KeyGenerationError(WalletError):
    pass


class SigningError(WalletError):
    pass


class InvalidAddressError(WalletError):
    pass


class AddressGenerationError(WalletError):
    pass


class InsufficientFundsError(WalletError):
    """Raised when the available outputs cannot cover amount plus fee."""

    def __init__(self, message: str, required: int = 0, available: int = 0):
        super().__init__(message)
        self.required = required
        self.available = available


class ValidationError(WalletError):
    """Zero, negative or overflowing amounts and empty input sets."""


class TransactionFailedError(WalletError):
    """Malformed previous output data (outpoint or locking script)."""


class TransactionError(WalletError):
    """Raised when raw transaction bytes cannot be parsed."""
