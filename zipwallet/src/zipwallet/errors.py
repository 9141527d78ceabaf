"""
Wallet error taxonomy.

Every failure the core reports is a WalletError subclass. Errors raised by
third-party libraries are wrapped, keeping only their message as ``cause``.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all wallet errors."""

    def __init__(self, message: str, cause: str | None = None):
        self.message = message
        self.cause = cause
        super().__init__(f"{message}: {cause}" if cause else message)


class InsufficientFunds(WalletError):
    """Coin selection cannot cover the requested amount plus fee."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: need {required}, have {available}")


class InvalidAmount(WalletError):
    """A payment or split request carries an unusable amount, fee or count."""


class ChainIndexUnavailable(WalletError):
    """No balance or UTXO data could be obtained from the chain index."""


class SigningFailure(WalletError):
    """Signature hash or ECDSA signing failed for at least one input."""


class AliasNotFound(WalletError):
    """The alias was never reserved for this user."""


class InvalidAliasPrefix(WalletError):
    """The requested alias prefix fails validation."""


class DerivationExhausted(WalletError):
    """The child key index space is exhausted or derivation produced an invalid key."""


class PaymentDirectoryError(WalletError):
    """A third-party handle could not be resolved or paid."""


class PriceUnavailable(WalletError):
    """No fiat price could be obtained."""
