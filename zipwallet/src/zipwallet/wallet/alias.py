"""
PayMail alias reservation and pricing.

Each user owns a set of aliases on the wallet's PayMail domain. The first
registration mints a free sequential numeric alias (101, 102, ...) from a
counter shared by all users of the wallet and persisted in storage.
Bespoke prefixes are priced and reserved; a reservation becomes confirmed
once the off-band payment has cleared. Aliases are never removed.
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal

from loguru import logger

from zipwallet.config import AliasConfig
from zipwallet.errors import AliasNotFound, InvalidAliasPrefix
from zipwallet.storage.records import UserRecords
from zipwallet.wallet.models import Alias, AliasStatus


class AliasPricing:
    """
    Prefix validation and price lookup.

    Price rules, first match wins:
    1. user's first alias and prefix is the initial sequential prefix: free
    2. premium table entry: table price
    3. 3 characters: three_char_price
    4. 4 characters: four_char_price
    5. anything longer: base_price
    """

    def __init__(self, config: AliasConfig):
        self.config = config

    def validate_prefix(self, prefix: str) -> None:
        if not prefix or "@" in prefix or "." in prefix:
            raise InvalidAliasPrefix(f"Invalid PayMail prefix: {prefix!r}")
        if any(c.isspace() for c in prefix):
            raise InvalidAliasPrefix(f"PayMail prefix must not contain whitespace: {prefix!r}")
        if len(prefix) < self.config.min_prefix_length:
            raise InvalidAliasPrefix(
                f"Prefix too short: {prefix!r} (minimum {self.config.min_prefix_length})"
            )

    def price(self, prefix: str, is_first: bool) -> Decimal:
        if is_first and prefix == self.config.initial_prefix:
            return Decimal(0)
        if prefix in self.config.premium_prefixes:
            return self.config.premium_prefixes[prefix]
        if len(prefix) == 3:
            return self.config.three_char_price
        if len(prefix) == 4:
            return self.config.four_char_price
        return self.config.base_price


class AliasRegistry:
    """
    Alias lifecycle: RESERVED -> CONFIRMED, one way.

    The sequence counter lives in the storage's registry record so every
    process over the same storage continues the same sequence. Counter
    updates and user-record updates are read-modify-writes, so both run
    under locks.
    """

    def __init__(self, records: UserRecords, config: AliasConfig | None = None):
        self.records = records
        self.storage = records.storage
        self.config = config or AliasConfig()
        self.pricing = AliasPricing(self.config)
        self._sequence_lock = asyncio.Lock()

    @property
    def domain(self) -> str:
        return self.config.domain

    async def _next_sequential_prefix(self) -> str:
        async with self._sequence_lock:
            raw = self.storage.get_registry_record()
            registry = json.loads(raw) if raw is not None else {}

            start = self.config.sequence_start
            prefix = max(int(registry.get("next_prefix", start)), start)
            registry["next_prefix"] = prefix + 1
            self.storage.store_registry_record(json.dumps(registry).encode("utf-8"))

        return str(prefix)

    def _load_aliases(self, user_id: str) -> list[Alias]:
        return [Alias.from_dict(a) for a in self.records.load(user_id).get("aliases", [])]

    def _append_aliases(self, user_id: str, new: list[Alias]) -> None:
        record = self.records.load(user_id)
        entries = record.setdefault("aliases", [])
        held = {Alias.from_dict(a).handle for a in entries}
        for alias in new:
            if alias.handle in held:
                raise InvalidAliasPrefix(f"{alias.handle} is already held by this user")
            held.add(alias.handle)
        entries.extend(a.to_dict() for a in new)
        self.records.store(user_id, record)

    async def list_aliases(self, user_id: str) -> list[Alias]:
        async with self.records.lock:
            return self._load_aliases(user_id)

    async def create_default_alias(
        self, user_id: str, bespoke_prefix: str | None = None
    ) -> tuple[Alias, Decimal]:
        """
        Mint the next free sequential alias on a user's first registration,
        optionally reserving a bespoke prefix alongside it.

        Returns the bespoke alias and its price when one was requested,
        otherwise the sequential alias and a zero price. A user who already
        holds aliases gets no further sequential alias: a bespoke prefix is
        reserved on its own, and without one the user's first alias is
        returned unchanged.
        """
        if bespoke_prefix is not None:
            self.pricing.validate_prefix(bespoke_prefix)

        async with self.records.lock:
            held = self._load_aliases(user_id)
            if held and bespoke_prefix is None:
                logger.info(f"{user_id} already holds {held[0].handle}")
                return held[0], held[0].price

            new: list[Alias] = []
            if not held:
                prefix = await self._next_sequential_prefix()
                new.append(
                    Alias(
                        prefix=prefix,
                        domain=self.domain,
                        price=Decimal(0),
                        status=AliasStatus.CONFIRMED,
                    )
                )
                logger.info(f"Issued sequential alias {new[0].handle} to {user_id}")

            if bespoke_prefix is None:
                self._append_aliases(user_id, new)
                return new[0], Decimal(0)

            price = self.pricing.price(bespoke_prefix, is_first=not held)
            bespoke = Alias(
                prefix=bespoke_prefix,
                domain=self.domain,
                price=price,
                status=AliasStatus.CONFIRMED if price == 0 else AliasStatus.RESERVED,
            )
            new.append(bespoke)
            self._append_aliases(user_id, new)

        logger.info(f"Reserved {bespoke.handle} for {user_id} at {price}")
        return bespoke, price

    async def create_paid_alias(self, user_id: str, prefix: str) -> tuple[Alias, Decimal]:
        """Price a bespoke prefix and reserve it pending payment."""
        self.pricing.validate_prefix(prefix)

        async with self.records.lock:
            is_first = not self._load_aliases(user_id)
            price = self.pricing.price(prefix, is_first)
            alias = Alias(
                prefix=prefix,
                domain=self.domain,
                price=price,
                status=AliasStatus.CONFIRMED if price == 0 else AliasStatus.RESERVED,
            )
            self._append_aliases(user_id, [alias])

        logger.info(f"Reserved {alias.handle} for {user_id} at {price}")
        return alias, price

    async def confirm_alias(self, user_id: str, handle: str) -> Alias:
        """
        Mark a reserved alias as confirmed after its payment cleared.

        Confirming an already confirmed alias changes nothing.

        Raises:
            AliasNotFound: the alias was never reserved for this user
        """
        async with self.records.lock:
            record = self.records.load(user_id)
            for entry in record.get("aliases", []):
                alias = Alias.from_dict(entry)
                if alias.handle != handle:
                    continue

                if alias.status == AliasStatus.CONFIRMED:
                    logger.warning(f"{handle} is already confirmed for {user_id}")
                    return alias

                alias.status = AliasStatus.CONFIRMED
                entry.update(alias.to_dict())
                self.records.store(user_id, record)
                logger.info(f"Confirmed {handle} for {user_id}")
                return alias

        raise AliasNotFound(f"Alias {handle} was never reserved for {user_id}")
