"""
Pytest configuration and fixtures for wallet tests.
"""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal
from typing import Any

import pytest

from zipwallet.backends.base import (
    AddressUnspent,
    ChainIndex,
    PaymentDestination,
    PaymentDirectory,
    PriceFeed,
)
from zipwallet.config import AliasConfig
from zipwallet.storage.memory import MemoryStorage
from zipwallet.storage.records import UserRecords
from zipwallet.wallet.derivation import KeyChain
from zipwallet.wallet.models import UnspentOutput
from zipwallet.wallet.signing import hash256
from zipwallet.wallet.utxo_store import UtxoStore, serialize_utxos

TEST_SEED = bytes(range(32))


class FakeChainIndex(ChainIndex):
    """In-memory chain index keyed by address."""

    def __init__(self) -> None:
        self.unspent: dict[str, list[AddressUnspent]] = {}
        self.history: dict[str, list[str]] = {}
        self.broadcasts: list[str] = []
        self.closed = False

    async def query_balance(self, address: str) -> int:
        return sum(u.value for u in self.unspent.get(address, []))

    async def query_tx_history(self, address: str) -> list[str]:
        return list(self.history.get(address, []))

    async def list_unspent(self, address: str) -> list[AddressUnspent]:
        return list(self.unspent.get(address, []))

    async def broadcast(self, tx_hex: str) -> str:
        self.broadcasts.append(tx_hex)
        return hash256(bytes.fromhex(tx_hex))[::-1].hex()

    async def close(self) -> None:
        self.closed = True


class FakeDirectory(PaymentDirectory):
    def __init__(self, destination: PaymentDestination, p2p: bool = False) -> None:
        self.destination = destination
        self.p2p = p2p
        self.delivered: list[dict[str, Any]] = []

    async def resolve(self, handle: str, amount: int) -> PaymentDestination:
        return self.destination

    async def has_capability(self, handle: str, feature: str) -> bool:
        return self.p2p and feature == "p2pTx"

    async def send_direct(
        self, handle: str, tx_hex: str, metadata: dict[str, Any], reference: str
    ) -> str:
        self.delivered.append(
            {"handle": handle, "hex": tx_hex, "metadata": metadata, "reference": reference}
        )
        return hash256(bytes.fromhex(tx_hex))[::-1].hex()


class FakePriceFeed(PriceFeed):
    def __init__(self, price: Decimal = Decimal("50")) -> None:
        self.price = price
        self.calls = 0

    async def get_price(self, currency: str) -> Decimal:
        self.calls += 1
        return self.price


@pytest.fixture
def seed() -> bytes:
    return TEST_SEED


@pytest.fixture
def storage() -> MemoryStorage:
    """Memory storage seeded with a fixed master seed"""
    storage = MemoryStorage()
    storage.store_private_key(TEST_SEED)
    return storage


@pytest.fixture
def keychain(storage: MemoryStorage) -> KeyChain:
    return KeyChain.load_or_create(storage, "mainnet")


@pytest.fixture
def chain_index() -> FakeChainIndex:
    return FakeChainIndex()


@pytest.fixture
def utxo_store(
    storage: MemoryStorage, keychain: KeyChain, chain_index: FakeChainIndex
) -> UtxoStore:
    return UtxoStore(storage, keychain, chain_index)


@pytest.fixture
def price_feed() -> FakePriceFeed:
    return FakePriceFeed()


@pytest.fixture
def make_directory() -> type[FakeDirectory]:
    return FakeDirectory


@pytest.fixture
def alias_config() -> AliasConfig:
    return AliasConfig(domain="zip.io")


@pytest.fixture
def records(storage: MemoryStorage) -> UserRecords:
    return UserRecords(storage)


@pytest.fixture
def fund(
    storage: MemoryStorage, keychain: KeyChain
) -> Callable[[str, list[int]], list[UnspentOutput]]:
    """
    Cache wallet-controlled outputs of the given values for a user.

    Each output sits on its own freshly derived address.
    """
    counter = {"n": 0}

    def _fund(user_id: str, values: list[int]) -> list[UnspentOutput]:
        utxos = []
        for value in values:
            counter["n"] += 1
            derived = keychain.derive_next_address(user_id)
            utxos.append(
                UnspentOutput(
                    txid=format(counter["n"], "064x"),
                    vout=0,
                    value=value,
                    script=keychain.script_for(derived),
                    path=derived.path,
                )
            )
        storage.cache_utxos(user_id, serialize_utxos(utxos))
        return utxos

    return _fund
