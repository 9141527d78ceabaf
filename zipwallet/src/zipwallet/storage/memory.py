"""
In-process storage, used by tests and ephemeral wallets.
"""

from __future__ import annotations

from zipwallet.storage.base import WalletStorage


class MemoryStorage(WalletStorage):
    def __init__(self) -> None:
        self._private_key: bytes | None = None
        self._utxos: dict[str, bytes] = {}
        self._users: dict[str, bytes] = {}
        self._wallet: bytes | None = None
        self._registry: bytes | None = None

    def get_private_key(self) -> bytes | None:
        return self._private_key

    def store_private_key(self, key: bytes) -> None:
        self._private_key = bytes(key)

    def get_cached_utxos(self, user_id: str) -> bytes | None:
        return self._utxos.get(user_id)

    def cache_utxos(self, user_id: str, data: bytes) -> None:
        self._utxos[user_id] = bytes(data)

    def delete_cached_utxos(self, user_id: str) -> None:
        self._utxos.pop(user_id, None)

    def get_user_record(self, user_id: str) -> bytes | None:
        return self._users.get(user_id)

    def store_user_record(self, user_id: str, data: bytes) -> None:
        self._users[user_id] = bytes(data)

    def get_wallet_record(self) -> bytes | None:
        return self._wallet

    def store_wallet_record(self, data: bytes) -> None:
        self._wallet = bytes(data)

    def get_registry_record(self) -> bytes | None:
        return self._registry

    def store_registry_record(self, data: bytes) -> None:
        self._registry = bytes(data)
