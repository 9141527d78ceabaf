"""
Storage collaborator interface.

Values are opaque byte blobs; the wallet core owns their serialization.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class WalletStorage(ABC):
    """
    Key/value storage for wallet secrets, caches and records.

    Implementations only move bytes around. They must not interpret
    or log the values they store.
    """

    @abstractmethod
    def get_private_key(self) -> bytes | None:
        """Return the master seed, or None if the wallet was never created"""

    @abstractmethod
    def store_private_key(self, key: bytes) -> None:
        """Persist the master seed"""

    @abstractmethod
    def get_cached_utxos(self, user_id: str) -> bytes | None:
        """Return the serialized spendable set for a user"""

    @abstractmethod
    def cache_utxos(self, user_id: str, data: bytes) -> None:
        """Store the serialized spendable set for a user"""

    @abstractmethod
    def delete_cached_utxos(self, user_id: str) -> None:
        """Drop the cached spendable set for a user"""

    @abstractmethod
    def get_user_record(self, user_id: str) -> bytes | None:
        """Return the user record (aliases, balance snapshot)"""

    @abstractmethod
    def store_user_record(self, user_id: str, data: bytes) -> None:
        """Persist the user record"""

    @abstractmethod
    def get_wallet_record(self) -> bytes | None:
        """Return the wallet record (derivation index, address history)"""

    @abstractmethod
    def store_wallet_record(self, data: bytes) -> None:
        """Persist the wallet record"""

    @abstractmethod
    def get_registry_record(self) -> bytes | None:
        """Return the alias registry record (sequence counter)"""

    @abstractmethod
    def store_registry_record(self, data: bytes) -> None:
        """Persist the alias registry record"""
