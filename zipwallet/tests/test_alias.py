"""
Tests for PayMail alias pricing and reservation.
"""

import asyncio
from decimal import Decimal

import pytest

from zipwallet.config import AliasConfig
from zipwallet.errors import AliasNotFound, InvalidAliasPrefix
from zipwallet.storage.records import UserRecords
from zipwallet.wallet.alias import AliasPricing, AliasRegistry
from zipwallet.wallet.models import AliasStatus


@pytest.fixture
def pricing(alias_config: AliasConfig) -> AliasPricing:
    return AliasPricing(alias_config)


@pytest.fixture
def registry(records: UserRecords, alias_config: AliasConfig) -> AliasRegistry:
    return AliasRegistry(records, alias_config)


class TestPricing:
    def test_initial_prefix_free_for_first_alias(self, pricing: AliasPricing):
        assert pricing.price("101", is_first=True) == Decimal(0)

    def test_initial_prefix_not_free_later(self, pricing: AliasPricing):
        assert pricing.price("101", is_first=False) == Decimal(250)

    def test_premium_prefix(self, pricing: AliasPricing):
        assert pricing.price("vip", is_first=False) == Decimal(5000)
        assert pricing.price("john", is_first=True) == Decimal(300)

    @pytest.mark.parametrize(
        "prefix,price",
        [("abc", 250), ("abcd", 25), ("alice", 10), ("averylongprefix", 10)],
    )
    def test_length_tiers(self, pricing: AliasPricing, prefix, price):
        assert pricing.price(prefix, is_first=False) == Decimal(price)

    def test_custom_tiers(self):
        pricing = AliasPricing(
            AliasConfig(
                domain="pay.example",
                three_char_price=Decimal(99),
                premium_prefixes={},
            )
        )
        assert pricing.price("vip", is_first=False) == Decimal(99)

    @pytest.mark.parametrize("prefix", ["", "ab", "a@b", "x.y", "has space"])
    def test_invalid_prefixes(self, pricing: AliasPricing, prefix):
        with pytest.raises(InvalidAliasPrefix):
            pricing.validate_prefix(prefix)


class TestDefaultAlias:
    @pytest.mark.asyncio
    async def test_sequential_and_free(self, registry: AliasRegistry):
        alias, price = await registry.create_default_alias("alice")
        assert alias.handle == "101@zip.io"
        assert alias.status == AliasStatus.CONFIRMED
        assert price == Decimal(0)

    @pytest.mark.asyncio
    async def test_counter_is_shared_between_users(self, registry: AliasRegistry):
        first, _ = await registry.create_default_alias("alice")
        second, _ = await registry.create_default_alias("bob")
        assert (first.prefix, second.prefix) == ("101", "102")

    @pytest.mark.asyncio
    async def test_concurrent_issuance_is_unique(self, registry: AliasRegistry):
        results = await asyncio.gather(
            *(registry.create_default_alias(f"user{i}") for i in range(25))
        )
        prefixes = sorted(int(alias.prefix) for alias, _ in results)
        assert prefixes == list(range(101, 126))

    @pytest.mark.asyncio
    async def test_with_bespoke_prefix(self, registry: AliasRegistry):
        alias, price = await registry.create_default_alias("alice", "alice")

        assert alias.handle == "alice@zip.io"
        assert alias.status == AliasStatus.RESERVED
        assert price == Decimal(10)

        held = await registry.list_aliases("alice")
        assert [a.handle for a in held] == ["101@zip.io", "alice@zip.io"]

    @pytest.mark.asyncio
    async def test_invalid_bespoke_consumes_nothing(self, registry: AliasRegistry):
        with pytest.raises(InvalidAliasPrefix):
            await registry.create_default_alias("alice", "x")
        assert await registry.list_aliases("alice") == []

        alias, _ = await registry.create_default_alias("alice")
        assert alias.prefix == "101"

    @pytest.mark.asyncio
    async def test_counter_continues_across_registries(
        self, records: UserRecords, alias_config: AliasConfig
    ):
        first, _ = await AliasRegistry(records, alias_config).create_default_alias("alice")

        restarted = AliasRegistry(UserRecords(records.storage), alias_config)
        second, _ = await restarted.create_default_alias("bob")

        assert (first.handle, second.handle) == ("101@zip.io", "102@zip.io")

    @pytest.mark.asyncio
    async def test_one_free_alias_per_user(self, registry: AliasRegistry):
        first, _ = await registry.create_default_alias("alice")
        again, price = await registry.create_default_alias("alice")

        assert again == first
        assert price == Decimal(0)
        assert len(await registry.list_aliases("alice")) == 1

        other, _ = await registry.create_default_alias("bob")
        assert other.prefix == "102"

    @pytest.mark.asyncio
    async def test_bespoke_for_existing_user_skips_sequential(self, registry: AliasRegistry):
        await registry.create_default_alias("alice")
        bespoke, price = await registry.create_default_alias("alice", "101x")

        assert price == Decimal(25)
        assert bespoke.status == AliasStatus.RESERVED
        held = await registry.list_aliases("alice")
        assert [a.handle for a in held] == ["101@zip.io", "101x@zip.io"]

        other, _ = await registry.create_default_alias("bob")
        assert other.prefix == "102"


class TestPaidAlias:
    @pytest.mark.asyncio
    async def test_reserved_until_confirmed(self, registry: AliasRegistry):
        alias, price = await registry.create_paid_alias("alice", "cash")
        assert price == Decimal(4000)
        assert alias.status == AliasStatus.RESERVED

        confirmed = await registry.confirm_alias("alice", "cash@zip.io")
        assert confirmed.status == AliasStatus.CONFIRMED

        held = await registry.list_aliases("alice")
        assert held[0].status == AliasStatus.CONFIRMED
        assert held[0].price == Decimal(4000)

    @pytest.mark.asyncio
    async def test_first_alias_on_initial_prefix_is_free(self, registry: AliasRegistry):
        alias, price = await registry.create_paid_alias("alice", "101")
        assert price == Decimal(0)
        assert alias.status == AliasStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_duplicate_rejected(self, registry: AliasRegistry):
        await registry.create_paid_alias("alice", "alice")
        with pytest.raises(InvalidAliasPrefix, match="already held"):
            await registry.create_paid_alias("alice", "alice")
        assert len(await registry.list_aliases("alice")) == 1

    @pytest.mark.asyncio
    async def test_second_alias_not_first(self, registry: AliasRegistry):
        await registry.create_default_alias("alice")
        _, price = await registry.create_paid_alias("alice", "101x")
        assert price == Decimal(25)


class TestConfirmAlias:
    @pytest.mark.asyncio
    async def test_unknown_alias(self, registry: AliasRegistry):
        with pytest.raises(AliasNotFound):
            await registry.confirm_alias("alice", "ghost@zip.io")

    @pytest.mark.asyncio
    async def test_other_users_alias(self, registry: AliasRegistry):
        await registry.create_paid_alias("alice", "alice")
        with pytest.raises(AliasNotFound):
            await registry.confirm_alias("bob", "alice@zip.io")

    @pytest.mark.asyncio
    async def test_confirm_twice_is_noop(self, registry: AliasRegistry):
        await registry.create_paid_alias("alice", "alice")
        await registry.confirm_alias("alice", "alice@zip.io")
        again = await registry.confirm_alias("alice", "alice@zip.io")

        assert again.status == AliasStatus.CONFIRMED
        assert len(await registry.list_aliases("alice")) == 1

    @pytest.mark.asyncio
    async def test_status_persisted(self, records: UserRecords, alias_config: AliasConfig):
        registry = AliasRegistry(records, alias_config)
        await registry.create_paid_alias("alice", "alice")
        await registry.confirm_alias("alice", "alice@zip.io")

        reloaded = AliasRegistry(records, alias_config)
        held = await reloaded.list_aliases("alice")
        assert held[0].status == AliasStatus.CONFIRMED
