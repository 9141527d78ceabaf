"""
Collaborator interfaces: chain index, payment directory and price feed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass
class AddressUnspent:
    """An unspent output as reported by the chain index"""

    txid: str
    vout: int
    value: int
    height: int | None = None


@dataclass
class PaymentDestination:
    """Where and how much to pay a third-party handle"""

    script: bytes
    amount: int
    reference: str | None = None


class ChainIndex(ABC):
    """
    Remote chain-indexing service.
    Best effort: every method may fail with a network error.
    """

    @abstractmethod
    async def query_balance(self, address: str) -> int:
        """Get balance for an address in satoshis"""

    @abstractmethod
    async def query_tx_history(self, address: str) -> list[str]:
        """Get txids touching an address, oldest first"""

    @abstractmethod
    async def list_unspent(self, address: str) -> list[AddressUnspent]:
        """Get unspent outputs locked to an address"""

    @abstractmethod
    async def broadcast(self, tx_hex: str) -> str:
        """Broadcast transaction, returns txid"""

    async def close(self) -> None:
        """Close backend connection"""
        pass


class PaymentDirectory(ABC):
    """
    Alias resolution and payment notification service for other users' handles.
    """

    @abstractmethod
    async def resolve(self, handle: str, amount: int) -> PaymentDestination:
        """Translate a handle into a locking script and amount"""

    @abstractmethod
    async def has_capability(self, handle: str, feature: str) -> bool:
        """Check whether the handle's host advertises a capability"""

    @abstractmethod
    async def send_direct(
        self, handle: str, tx_hex: str, metadata: dict[str, Any], reference: str
    ) -> str:
        """Hand a signed transaction to the recipient's host, returns txid"""

    async def close(self) -> None:
        pass


class PriceFeed(ABC):
    @abstractmethod
    async def get_price(self, currency: str) -> Decimal:
        """Price of one coin in the given fiat currency"""

    async def close(self) -> None:
        pass
