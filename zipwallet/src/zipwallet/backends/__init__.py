"""
Network collaborators.

Available backends:
- WhatsOnChainBackend: chain index over the WhatsOnChain REST API
- PaymailClient: bsvalias resolution and P2P transaction delivery
- CoinGeckoPriceFeed: fiat prices
"""

from zipwallet.backends.base import (
    AddressUnspent,
    ChainIndex,
    PaymentDestination,
    PaymentDirectory,
    PriceFeed,
)
from zipwallet.backends.coingecko import CoinGeckoPriceFeed
from zipwallet.backends.paymail import PaymailClient
from zipwallet.backends.whatsonchain import WhatsOnChainBackend

__all__ = [
    "AddressUnspent",
    "ChainIndex",
    "CoinGeckoPriceFeed",
    "PaymailClient",
    "PaymentDestination",
    "PaymentDirectory",
    "PriceFeed",
    "WhatsOnChainBackend",
]
