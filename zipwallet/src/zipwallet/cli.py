"""
ZIP Wallet CLI - Addresses, balances, payments and PayMail aliases.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from loguru import logger

from zipwallet.config import WalletSettings, get_settings
from zipwallet.constants import DEFAULT_USER_ID
from zipwallet.errors import WalletError
from zipwallet.storage.file import FileStorage
from zipwallet.wallet.address import address_to_script, script_to_address
from zipwallet.wallet.alias import AliasPricing
from zipwallet.wallet.service import WalletService
from zipwallet.wallet.tx_builder import estimate_fee

T = TypeVar("T")

app = typer.Typer(
    name="zip-wallet",
    help="ZIP BSV Wallet",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def _load_settings(
    network: str | None, data_dir: Path | None, log_level: str | None
) -> WalletSettings:
    overrides: dict[str, Any] = {}
    if network:
        overrides["network"] = network
    if data_dir:
        overrides["data_dir"] = data_dir
    settings = WalletSettings(**overrides) if overrides else get_settings()

    setup_logging(log_level or settings.log_level)
    return settings


def _run(settings: WalletSettings, action: Callable[[WalletService], Awaitable[T]]) -> T:
    """Open the wallet, run one action and close collaborators."""

    async def _main() -> T:
        service = WalletService.from_settings(settings, FileStorage(settings.data_dir))
        try:
            return await action(service)
        finally:
            await service.close()

    try:
        return asyncio.run(_main())
    except WalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        raise typer.Exit(1)


NetworkOption = typer.Option(None, "--network", "-n", help="mainnet | testnet | regtest")
DataDirOption = typer.Option(None, "--data-dir", "-d", help="Wallet data directory")
LogLevelOption = typer.Option(None, "--log-level", "-l")
UserOption = typer.Option(DEFAULT_USER_ID, "--user", "-u", help="User id")


@app.command()
def address(
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Derive a fresh receive address for a user."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService) -> str:
        return service.get_address(user)

    typer.echo(_run(settings, action))


@app.command()
def balance(
    user: str = UserOption,
    currency: str = typer.Option("USD", "--currency", "-c", help="Fiat currency"),
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Ignore cached outputs"),
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Show the spendable balance and its fiat value."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.update_balance(user, currency, refresh=refresh)

    satoshis, converted = _run(settings, action)
    print(f"\nBalance: {satoshis:,} sats ({satoshis / 1e8:.8f} BSV)")
    print(f"Value:   {converted:.2f} {currency.upper()}")


@app.command()
def send(
    destination: str = typer.Argument(..., help="Address or PayMail handle"),
    amount: int = typer.Argument(..., help="Amount in satoshis"),
    fee: int | None = typer.Option(None, "--fee", "-f", help="Fee in satoshis"),
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Pay an address or a PayMail handle."""
    settings = _load_settings(network, data_dir, log_level)
    if fee is None:
        fee = estimate_fee(1, 2, settings.fee_rate_sat_per_kb)
        logger.info(f"Using estimated fee of {fee} sats")

    async def action(service: WalletService) -> str:
        if "@" in destination:
            return await service.pay_handle(user, destination, amount, fee)
        script = address_to_script(destination, settings.network)
        return await service.send_payment(user, script, amount, fee)

    txid = _run(settings, action)
    typer.echo(f"\nSent {amount:,} sats to {destination}")
    typer.echo(f"Transaction: {txid}")


@app.command()
def split(
    count: int = typer.Argument(..., help="Number of outputs"),
    value: int = typer.Argument(..., help="Value of each output in satoshis"),
    fee: int = typer.Option(0, "--fee", "-f", help="Fee in satoshis"),
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Pre-create equal outputs for rapid payments."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.pre_create_utxos(user, count, value, fee)

    created = _run(settings, action)
    print(f"\nCreated {len(created)} output(s):")
    for utxo in created:
        print(f"  {utxo.txid}:{utxo.vout}  {utxo.value:>12,} sats  {utxo.path}")


@app.command()
def history(
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """List transactions touching wallet addresses."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService) -> list[str]:
        return await service.get_history(user)

    txids = _run(settings, action)
    if not txids:
        print("\nNo transactions found.")
        return
    for txid in txids:
        print(txid)


@app.command("alias-create")
def alias_create(
    prefix: str | None = typer.Option(None, "--prefix", "-p", help="Bespoke prefix to reserve"),
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Issue the next sequential alias, optionally reserving a bespoke one."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.create_default_alias(user, prefix)

    alias, price = _run(settings, action)
    typer.echo(f"{alias.handle}  {alias.status.value}  price {price}")


@app.command("alias-buy")
def alias_buy(
    prefix: str = typer.Argument(..., help="Prefix to reserve"),
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Reserve a bespoke alias pending payment."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.create_paid_alias(user, prefix)

    alias, price = _run(settings, action)
    typer.echo(f"{alias.handle}  {alias.status.value}  price {price}")


@app.command("alias-confirm")
def alias_confirm(
    handle: str = typer.Argument(..., help="Reserved handle, alias@domain"),
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Confirm a reserved alias once its payment cleared."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.confirm_alias(user, handle)

    alias = _run(settings, action)
    typer.echo(f"{alias.handle}  {alias.status.value}")


@app.command("alias-list")
def alias_list(
    user: str = UserOption,
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """List a user's aliases."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.list_aliases(user)

    aliases = _run(settings, action)
    if not aliases:
        print("\nNo aliases.")
        return
    for alias in aliases:
        print(f"  {alias.handle:<32} {alias.status.value:<10} {alias.price}")


@app.command("alias-price")
def alias_price(
    prefix: str = typer.Argument(..., help="Prefix to price"),
    first: bool = typer.Option(False, "--first", help="Price as the user's first alias"),
    log_level: str | None = LogLevelOption,
) -> None:
    """Quote the price of a prefix without reserving it."""
    settings = _load_settings(None, None, log_level)
    pricing = AliasPricing(settings.alias)
    try:
        pricing.validate_prefix(prefix)
    except WalletError as e:
        logger.error(str(e))
        raise typer.Exit(1)
    typer.echo(f"{prefix}@{settings.alias.domain}  {pricing.price(prefix, first)}")


@app.command()
def resolve(
    handle: str = typer.Argument(..., help="PayMail handle, alias@domain"),
    amount: int = typer.Argument(..., help="Amount in satoshis"),
    network: str | None = NetworkOption,
    data_dir: Path | None = DataDirOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Resolve a PayMail handle into a locking script."""
    settings = _load_settings(network, data_dir, log_level)

    async def action(service: WalletService):
        return await service.resolve_handle(handle, amount)

    script, resolved = _run(settings, action)
    typer.echo(f"Script:  {script.hex()}")
    try:
        typer.echo(f"Address: {script_to_address(script, settings.network)}")
    except ValueError:
        logger.debug("Destination is not a P2PKH script")
    typer.echo(f"Amount:  {resolved:,} sats")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
