"""
zipwallet - Single-signer BSV wallet backend

Provides key derivation, UTXO caching, payment building and signing, and
PayMail alias reservation.
"""

__version__ = "0.1.0"

from zipwallet.config import AliasConfig, WalletSettings, get_settings
from zipwallet.errors import (
    AliasNotFound,
    ChainIndexUnavailable,
    DerivationExhausted,
    InsufficientFunds,
    InvalidAliasPrefix,
    InvalidAmount,
    PaymentDirectoryError,
    PriceUnavailable,
    SigningFailure,
    WalletError,
)
from zipwallet.wallet.service import WalletService

__all__ = [
    "AliasConfig",
    "AliasNotFound",
    "ChainIndexUnavailable",
    "DerivationExhausted",
    "InsufficientFunds",
    "InvalidAliasPrefix",
    "InvalidAmount",
    "PaymentDirectoryError",
    "PriceUnavailable",
    "SigningFailure",
    "WalletError",
    "WalletService",
    "WalletSettings",
    "get_settings",
]
