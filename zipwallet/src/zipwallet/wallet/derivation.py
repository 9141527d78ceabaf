"""
Key derivation: one-time-use addresses from the wallet's master seed.

Derivation path: m/44'/{coin_type}'/0'/0/{index}
- coin_type: 236 on mainnet, 1 on testnet/regtest
- index: strictly increasing, never handed out twice
"""

from __future__ import annotations

import json
import secrets
import threading

from loguru import logger

from zipwallet.constants import COIN_TYPES, DEFAULT_USER_ID, MAX_CHILD_INDEX
from zipwallet.errors import DerivationExhausted, SigningFailure
from zipwallet.storage.base import WalletStorage
from zipwallet.wallet.address import pubkey_to_p2pkh_script
from zipwallet.wallet.bip32 import HDKey
from zipwallet.wallet.models import DerivedAddress

SEED_LENGTH = 32


def root_path_for(network: str) -> str:
    return f"m/44'/{COIN_TYPES[network]}'/0'/0"


class KeyChain:
    """
    Wallet state: master key, derivation counter and network.

    The master key never leaves this object; the signer asks for the
    key of a given path through ``key_for_path``.
    """

    def __init__(
        self,
        master_key: HDKey,
        storage: WalletStorage,
        network: str = "mainnet",
        derivation_index: int = 0,
        history: list[DerivedAddress] | None = None,
    ):
        if network not in COIN_TYPES:
            raise ValueError(f"Unknown network: {network}")

        self._master_key = master_key
        self.storage = storage
        self.network = network
        self.root_path = root_path_for(network)
        self._derivation_index = derivation_index
        self._history: list[DerivedAddress] = list(history or [])
        self._lock = threading.Lock()

    @classmethod
    def load_or_create(cls, storage: WalletStorage, network: str = "mainnet") -> KeyChain:
        """Restore the wallet from storage, creating and persisting a new seed if absent."""
        seed = storage.get_private_key()
        if seed is None:
            seed = secrets.token_bytes(SEED_LENGTH)
            storage.store_private_key(seed)
            logger.info("Created new wallet seed")

        master_key = HDKey.from_seed(seed)

        index = 0
        history: list[DerivedAddress] = []
        raw = storage.get_wallet_record()
        if raw is not None:
            record = json.loads(raw)
            if record.get("network", network) != network:
                raise ValueError(
                    f"Wallet was created for {record['network']}, not {network}"
                )
            index = int(record.get("derivation_index", 0))
            history = [DerivedAddress.from_dict(a) for a in record.get("addresses", [])]

        keychain = cls(master_key, storage, network, derivation_index=index, history=history)
        if raw is None:
            keychain._persist()

        logger.info(f"Loaded {network} wallet at derivation index {index}")
        return keychain

    @property
    def derivation_index(self) -> int:
        return self._derivation_index

    def _persist(self) -> None:
        record = {
            "network": self.network,
            "derivation_index": self._derivation_index,
            "addresses": [a.to_dict() for a in self._history],
        }
        self.storage.store_wallet_record(json.dumps(record).encode("utf-8"))

    def derive_next_address(self, owner: str = DEFAULT_USER_ID) -> DerivedAddress:
        """
        Hand out the next unused address, recorded as funding ``owner``.

        Increment, derivation and persistence happen under one lock, so
        concurrent callers always receive distinct indices.

        Raises:
            DerivationExhausted: index space exhausted or invalid child key
        """
        with self._lock:
            index = self._derivation_index + 1
            if index > MAX_CHILD_INDEX:
                raise DerivationExhausted(f"Derivation index {index} exceeds {MAX_CHILD_INDEX}")

            path = f"{self.root_path}/{index}"
            try:
                key = self._master_key.derive(path)
            except ValueError as e:
                raise DerivationExhausted(f"Cannot derive {path}", cause=str(e)) from e

            derived = DerivedAddress(
                address=key.get_address(self.network), path=path, index=index, owner=owner
            )

            self._derivation_index = index
            self._history.append(derived)
            self._persist()

        logger.info(f"Derived address #{index} for {owner}")
        logger.debug(f"Address {derived.address} at {path}")
        return derived

    def addresses(self, owner: str | None = None) -> list[DerivedAddress]:
        """Addresses handed out so far, oldest first, optionally only those of one owner"""
        with self._lock:
            return [a for a in self._history if owner is None or a.owner == owner]

    def script_for(self, derived: DerivedAddress) -> bytes:
        return pubkey_to_p2pkh_script(self._key(derived.path).get_public_key_bytes())

    def key_for_path(self, path: str) -> HDKey:
        """Signing key for an input's derivation path"""
        if not path.startswith(self.root_path + "/"):
            raise SigningFailure(f"Path {path!r} is outside wallet root {self.root_path}")
        try:
            return self._key(path)
        except ValueError as e:
            raise SigningFailure(f"Cannot derive signing key for {path}", cause=str(e)) from e

    def _key(self, path: str) -> HDKey:
        return self._master_key.derive(path)
