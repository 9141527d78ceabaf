"""
Per-user spendable set, cached in storage and refreshed from the chain index.
"""

from __future__ import annotations

import json
from collections.abc import Iterable

from loguru import logger

from zipwallet.backends.base import ChainIndex
from zipwallet.errors import ChainIndexUnavailable, WalletError
from zipwallet.storage.base import WalletStorage
from zipwallet.wallet.derivation import KeyChain
from zipwallet.wallet.models import UnspentOutput


def serialize_utxos(utxos: Iterable[UnspentOutput]) -> bytes:
    return json.dumps([u.to_dict() for u in utxos]).encode("utf-8")


def deserialize_utxos(data: bytes) -> list[UnspentOutput]:
    return [UnspentOutput.from_dict(d) for d in json.loads(data)]


class UtxoStore:
    """
    Cache-first access to a user's spendable outputs.

    A cached set is returned as-is. On a miss the addresses owned by the
    user are queried on the chain index and the result is written back to
    the cache. Users never share an address, so their sets never overlap.
    Order is preserved: cache order is store order for coin selection.
    """

    def __init__(
        self,
        storage: WalletStorage,
        keychain: KeyChain,
        chain_index: ChainIndex | None = None,
    ):
        self.storage = storage
        self.keychain = keychain
        self.chain_index = chain_index

    async def get_spendable_set(self, user_id: str) -> list[UnspentOutput]:
        cached = self.storage.get_cached_utxos(user_id)
        if cached is not None:
            utxos = deserialize_utxos(cached)
            logger.debug(f"UTXO cache hit for {user_id}: {len(utxos)} outputs")
            return utxos

        utxos = await self._fetch(user_id)
        self.storage.cache_utxos(user_id, serialize_utxos(utxos))
        return utxos

    async def get_balance(self, user_id: str) -> int:
        return sum(u.value for u in await self.get_spendable_set(user_id))

    async def _fetch(self, user_id: str) -> list[UnspentOutput]:
        if self.chain_index is None:
            raise ChainIndexUnavailable(f"No cached outputs for {user_id} and no chain index configured")

        addresses = self.keychain.addresses(owner=user_id)
        logger.info(f"Refreshing spendable set for {user_id} across {len(addresses)} addresses")

        utxos: list[UnspentOutput] = []
        try:
            for derived in addresses:
                # Skip the unspent listing for empty addresses
                if await self.chain_index.query_balance(derived.address) <= 0:
                    continue

                script = self.keychain.script_for(derived)
                for unspent in await self.chain_index.list_unspent(derived.address):
                    utxos.append(
                        UnspentOutput(
                            txid=unspent.txid,
                            vout=unspent.vout,
                            value=unspent.value,
                            script=script,
                            path=derived.path,
                        )
                    )
        except WalletError:
            raise
        except Exception as e:
            raise ChainIndexUnavailable("Chain index query failed", cause=str(e)) from e

        logger.info(f"Found {len(utxos)} spendable outputs for {user_id}")
        return utxos

    def apply_transaction(
        self,
        user_id: str,
        spent: Iterable[tuple[str, int]],
        created: Iterable[UnspentOutput],
    ) -> list[UnspentOutput]:
        """
        Remove spent outpoints from the cached set and append new wallet outputs.

        Returns the updated set. A user without a cached set starts empty.
        """
        cached = self.storage.get_cached_utxos(user_id)
        current = deserialize_utxos(cached) if cached is not None else []

        spent_set = set(spent)
        updated = [u for u in current if u.outpoint not in spent_set]
        removed = len(current) - len(updated)
        updated.extend(created)

        self.storage.cache_utxos(user_id, serialize_utxos(updated))
        logger.debug(f"Applied transaction for {user_id}: {removed} spent, {len(updated)} cached")
        return updated

    def invalidate(self, user_id: str) -> None:
        self.storage.delete_cached_utxos(user_id)
        logger.debug(f"Invalidated UTXO cache for {user_id}")
