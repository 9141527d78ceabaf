"""
Wallet service: the entry point used by the GUI and CLI layers.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from decimal import Decimal

from loguru import logger

from zipwallet.backends.base import ChainIndex, PaymentDestination, PaymentDirectory, PriceFeed
from zipwallet.cache import AsyncTTLCache
from zipwallet.config import AliasConfig, WalletSettings
from zipwallet.constants import DEFAULT_DUST_THRESHOLD, DEFAULT_USER_ID, SATOSHIS_PER_COIN
from zipwallet.errors import (
    ChainIndexUnavailable,
    PaymentDirectoryError,
    PriceUnavailable,
    WalletError,
)
from zipwallet.storage.base import WalletStorage
from zipwallet.storage.records import UserRecords
from zipwallet.wallet.alias import AliasRegistry
from zipwallet.wallet.derivation import KeyChain
from zipwallet.wallet.models import (
    Alias,
    BalanceSnapshot,
    SignedTransaction,
    UnsignedTransaction,
    UnspentOutput,
)
from zipwallet.wallet.signing import TransactionSigner
from zipwallet.wallet.tx_builder import TransactionBuilder
from zipwallet.wallet.utxo_store import UtxoStore


class WalletService:
    """
    Single-signer wallet.

    Composes key derivation, the UTXO store, the transaction builder and
    signer, and the alias registry. Every address belongs to one user, so
    users spend disjoint outputs. Payments of one user are serialized: at
    most one payment per user is built and signed at a time.
    """

    def __init__(
        self,
        storage: WalletStorage,
        network: str = "mainnet",
        chain_index: ChainIndex | None = None,
        directory: PaymentDirectory | None = None,
        price_feed: PriceFeed | None = None,
        alias_config: AliasConfig | None = None,
        dust_threshold: int = DEFAULT_DUST_THRESHOLD,
        price_cache_ttl: float = 300.0,
        sender_handle: str = "",
    ):
        self.storage = storage
        self.network = network
        self.chain_index = chain_index
        self.directory = directory
        self.price_feed = price_feed
        self.sender_handle = sender_handle

        self.keychain = KeyChain.load_or_create(storage, network)
        self.utxo_store = UtxoStore(storage, self.keychain, chain_index)
        self.builder = TransactionBuilder(self.utxo_store, self.keychain, dust_threshold)
        self.signer = TransactionSigner()
        self.records = UserRecords(storage)
        self.aliases = AliasRegistry(self.records, alias_config)

        self.price_cache: AsyncTTLCache[str, Decimal] = AsyncTTLCache(price_cache_ttl)
        self._payment_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

        logger.info(f"Initialized {network} wallet service")

    @classmethod
    def from_settings(cls, settings: WalletSettings, storage: WalletStorage) -> WalletService:
        """Wire HTTP collaborators from settings. Empty URLs leave a collaborator out."""
        from zipwallet.backends.coingecko import CoinGeckoPriceFeed
        from zipwallet.backends.paymail import PaymailClient
        from zipwallet.backends.whatsonchain import WhatsOnChainBackend

        chain_index = None
        if settings.chain_index_url:
            chain_index = WhatsOnChainBackend(
                base_url=settings.chain_index_url,
                network=settings.network,
                timeout=settings.http_timeout,
            )

        price_feed = None
        if settings.price_feed_url:
            price_feed = CoinGeckoPriceFeed(settings.price_feed_url, timeout=settings.http_timeout)

        return cls(
            storage=storage,
            network=settings.network,
            chain_index=chain_index,
            directory=PaymailClient(settings.sender_handle, timeout=settings.http_timeout),
            price_feed=price_feed,
            alias_config=settings.alias,
            dust_threshold=settings.dust_threshold,
            price_cache_ttl=settings.price_cache_ttl,
            sender_handle=settings.sender_handle,
        )

    # Addresses and balances

    def get_address(self, user_id: str = DEFAULT_USER_ID) -> str:
        """Fresh receive address funding ``user_id``, never handed out before"""
        return self.keychain.derive_next_address(user_id).address

    async def fetch_price(self, currency: str) -> Decimal:
        """Fiat price of one coin, cached for the configured TTL."""
        code = currency.upper()
        cached = await self.price_cache.get(code)
        if cached is not None:
            return cached

        if self.price_feed is None:
            raise PriceUnavailable(f"No price feed configured for {code}")

        try:
            price = await self.price_feed.get_price(code)
        except WalletError:
            raise
        except Exception as e:
            raise PriceUnavailable(f"Price lookup failed for {code}", cause=str(e)) from e

        await self.price_cache.insert(code, price)
        return price

    async def update_balance(
        self, user_id: str, currency: str, refresh: bool = False
    ) -> tuple[int, Decimal]:
        """
        Spendable balance in satoshis and its value in ``currency``.

        ``refresh`` drops the cached spendable set first.
        """
        if refresh:
            self.utxo_store.invalidate(user_id)

        utxos = await self.utxo_store.get_spendable_set(user_id)
        balance = sum(u.value for u in utxos)

        price = await self.fetch_price(currency)
        converted = Decimal(balance) / Decimal(SATOSHIS_PER_COIN) * price

        snapshot = BalanceSnapshot(
            satoshis=balance,
            currency=currency.upper(),
            converted=converted,
            addresses=sorted({self._address_for_path(u.path) for u in utxos if u.path}),
        )
        await self.records.update_section(user_id, "balance", snapshot.to_dict())

        logger.info(f"Balance for {user_id}: {balance:,} sat ({converted:.2f} {currency.upper()})")
        return balance, converted

    def _address_for_path(self, path: str) -> str:
        for derived in self.keychain.addresses():
            if derived.path == path:
                return derived.address
        return ""

    async def get_history(self, user_id: str) -> list[str]:
        """Txids touching the user's addresses, oldest first, without duplicates"""
        if self.chain_index is None:
            raise ChainIndexUnavailable("No chain index configured")

        seen: dict[str, None] = {}
        try:
            for derived in self.keychain.addresses(owner=user_id):
                for txid in await self.chain_index.query_tx_history(derived.address):
                    seen.setdefault(txid, None)
        except WalletError:
            raise
        except Exception as e:
            raise ChainIndexUnavailable("History query failed", cause=str(e)) from e

        logger.debug(f"History for {user_id}: {len(seen)} transactions")
        return list(seen)

    # Payments

    def sign(self, unsigned: UnsignedTransaction) -> SignedTransaction:
        return self.signer.sign(unsigned, self.keychain)

    async def _broadcast(self, signed: SignedTransaction) -> str:
        if self.chain_index is None:
            raise ChainIndexUnavailable("No chain index configured for broadcast")
        try:
            txid = await self.chain_index.broadcast(signed.hex)
        except WalletError:
            raise
        except Exception as e:
            raise ChainIndexUnavailable("Broadcast failed", cause=str(e)) from e

        if txid != signed.txid:
            logger.warning(f"Chain index reported txid {txid}, expected {signed.txid}")
        return signed.txid

    def _record_spend(self, user_id: str, signed: SignedTransaction) -> list[UnspentOutput]:
        created = signed.wallet_outputs()
        self.utxo_store.apply_transaction(
            user_id, spent=[(i.txid, i.vout) for i in signed.inputs], created=created
        )
        return created

    async def send_payment(self, user_id: str, script: bytes, amount: int, fee: int) -> str:
        """
        Pay ``amount`` satoshis to a locking script and broadcast.

        Returns the txid.
        """
        async with self._payment_locks[user_id]:
            unsigned = await self.builder.build_payment(user_id, script, amount, fee)
            signed = self.sign(unsigned)
            txid = await self._broadcast(signed)
            self._record_spend(user_id, signed)

        logger.info(f"Sent {amount:,} sat for {user_id} in {txid}")
        return txid

    async def pay_handle(self, user_id: str, handle: str, amount: int, fee: int) -> str:
        """
        Pay a third-party PayMail handle.

        The signed transaction goes straight to the recipient's host when it
        accepts P2P transactions, otherwise it is broadcast.
        """
        destination = await self._resolve(handle, amount)

        async with self._payment_locks[user_id]:
            unsigned = await self.builder.build_payment(
                user_id, destination.script, destination.amount, fee
            )
            signed = self.sign(unsigned)

            if destination.reference and await self._supports_p2p(handle):
                metadata = {"sender": self.sender_handle, "note": ""}
                try:
                    await self.directory.send_direct(  # type: ignore[union-attr]
                        handle, signed.hex, metadata, destination.reference
                    )
                except WalletError:
                    raise
                except Exception as e:
                    raise PaymentDirectoryError(f"Delivery to {handle} failed", cause=str(e)) from e
                txid = signed.txid
            else:
                txid = await self._broadcast(signed)

            self._record_spend(user_id, signed)

        logger.info(f"Paid {destination.amount:,} sat to {handle} in {txid}")
        return txid

    async def _supports_p2p(self, handle: str) -> bool:
        try:
            return await self.directory.has_capability(handle, "p2pTx")  # type: ignore[union-attr]
        except WalletError:
            raise
        except Exception as e:
            raise PaymentDirectoryError(f"Capability check failed for {handle}", cause=str(e)) from e

    async def pre_create_utxos(
        self, user_id: str, count: int, value: int, fee: int = 0
    ) -> list[UnspentOutput]:
        """
        Split the balance into ``count`` outputs of ``value`` and broadcast.

        Returns the new wallet outputs: the split outputs, then change if any.
        """
        async with self._payment_locks[user_id]:
            unsigned = await self.builder.split_utxos(user_id, count, value, fee)
            signed = self.sign(unsigned)
            await self._broadcast(signed)
            created = self._record_spend(user_id, signed)

        logger.info(f"Pre-created {count} outputs of {value:,} sat for {user_id}")
        return created

    # Handles and aliases

    async def _resolve(self, handle: str, amount: int) -> PaymentDestination:
        if self.directory is None:
            raise PaymentDirectoryError(f"No payment directory configured to resolve {handle}")
        try:
            return await self.directory.resolve(handle, amount)
        except WalletError:
            raise
        except Exception as e:
            raise PaymentDirectoryError(f"Cannot resolve {handle}", cause=str(e)) from e

    async def resolve_handle(self, handle: str, amount: int) -> tuple[bytes, int]:
        """Locking script and amount to pay a third-party handle"""
        destination = await self._resolve(handle, amount)
        return destination.script, destination.amount

    async def create_default_alias(
        self, user_id: str, bespoke_prefix: str | None = None
    ) -> tuple[Alias, Decimal]:
        return await self.aliases.create_default_alias(user_id, bespoke_prefix)

    async def create_paid_alias(self, user_id: str, prefix: str) -> tuple[Alias, Decimal]:
        return await self.aliases.create_paid_alias(user_id, prefix)

    async def confirm_alias(self, user_id: str, handle: str) -> Alias:
        return await self.aliases.confirm_alias(user_id, handle)

    async def list_aliases(self, user_id: str) -> list[Alias]:
        return await self.aliases.list_aliases(user_id)

    async def close(self) -> None:
        """Close collaborator connections"""
        for collaborator in (self.chain_index, self.directory, self.price_feed):
            if collaborator is not None:
                await collaborator.close()
