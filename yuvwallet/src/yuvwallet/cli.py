"""
YUV Wallet CLI - Show balances, announce chromas, issue and transfer pixels and check status.
"""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import typer
from loguru import logger
from pydantic import SecretStr

from yuvwallet.config import WalletSettings

app = typer.Typer(
    name="yuv-wallet",
    help="YUV colored-coin wallet",
    add_completion=False,
)

T = TypeVar("T")


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def load_settings(
    private_key: str | None = None,
    network: str | None = None,
    node_url: str | None = None,
    esplora_url: str | None = None,
    fee_rate: float | None = None,
) -> WalletSettings:
    """Environment and .env settings with command line overrides applied."""
    overrides: dict[str, Any] = {
        "network": network,
        "node_url": node_url,
        "esplora_url": esplora_url,
        "fee_rate": fee_rate,
    }
    if private_key:
        overrides["private_key"] = SecretStr(private_key)

    return WalletSettings(**{key: value for key, value in overrides.items() if value is not None})


def _run_with_wallet(
    settings: WalletSettings, action: Callable[[Any], Awaitable[T]], sync: bool = True
) -> T:
    from yuvwallet.backends.base import BackendError
    from yuvwallet.wallet.coin_selection import (
        InsufficientAssetBalanceError,
        InsufficientBtcBalanceError,
    )
    from yuvwallet.wallet.service import YuvWallet
    from yuvwallet.wallet.tx_builder import TransactionBuildError

    async def _main() -> T:
        wallet = YuvWallet.from_settings(settings)
        try:
            if sync:
                await wallet.sync()
            return await action(wallet)
        finally:
            await wallet.close()

    try:
        return asyncio.run(_main())
    except (
        InsufficientBtcBalanceError,
        InsufficientAssetBalanceError,
        TransactionBuildError,
        BackendError,
        ValueError,
    ) as e:
        logger.error(str(e))
        raise typer.Exit(1) from e


async def _submit(wallet: Any, tx: Any, dry_run: bool) -> None:
    if dry_run:
        print(json.dumps(tx.to_dto(), indent=2))
        return

    if not await wallet.broadcast(tx):
        logger.error(f"Node rejected transaction {tx.txid}")
        raise typer.Exit(1)
    print(f"Broadcast: {tx.txid}")


@app.command()
def address(
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    log_level: str = typer.Option("WARNING", "--log-level", "-l"),
) -> None:
    """Show the wallet's Bitcoin and YUV addresses."""
    setup_logging(log_level)
    settings = load_settings(private_key, network)

    async def _show(wallet: Any) -> None:
        print(f"Bitcoin (P2WPKH): {wallet.p2wpkh_address}")
        print(f"YUV (P2TR):       {wallet.p2tr_address}")
        print(f"Inner key:        {wallet.inner_key_hex}")

    _run_with_wallet(settings, _show, sync=False)


@app.command()
def info(
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    node_url: str = typer.Option(None, "--node-url", help="YUV node RPC URL"),
    esplora_url: str = typer.Option(None, "--esplora-url", help="Esplora API URL"),
    chroma: str = typer.Option(None, "--chroma", "-c", help="Show details of one chroma"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Display wallet balances."""
    setup_logging(log_level)
    settings = load_settings(private_key, network, node_url, esplora_url)

    async def _show(wallet: Any) -> None:
        if chroma:
            asset = await wallet.get_chroma_info_for_wallet(chroma)
            print(f"\n{asset.name} ({asset.symbol})")
            print(f"  Chroma:        {asset.chroma}")
            print(f"  Balance:       {asset.balance:,}")
            print(f"  Decimals:      {asset.decimals}")
            print(f"  Max supply:    {asset.max_supply:,}")
            print(f"  Total supply:  {asset.total_supply:,}")
            return

        btc_balance = await wallet.get_btc_balance()
        print(f"\nAddress: {wallet.p2tr_address}")
        print(f"BTC Balance: {btc_balance:,} sats ({btc_balance / 1e8:.8f} BTC)")

        balances = await wallet.get_yuv_balances()
        if not balances:
            print("\nNo YUV assets.")
            return

        print("\nYUV balances:")
        for balance in balances:
            print(f"  {balance.symbol:<8} {balance.balance:>24,}  |  {balance.chroma}")

    _run_with_wallet(settings, _show)


@app.command()
def announce(
    name: str = typer.Option(..., "--name", help="Asset name"),
    symbol: str = typer.Option(..., "--symbol", help="Asset ticker"),
    decimal: int = typer.Option(0, "--decimal", help="Decimal places"),
    max_supply: int = typer.Option(0, "--max-supply", help="Maximum supply, 0 for unlimited"),
    freezable: bool = typer.Option(False, "--freezable", help="Allow freezing outputs"),
    pay_address: str = typer.Option(None, "--pay-address", help="Also pay BTC to this address"),
    pay_amount: int = typer.Option(0, "--pay-amount", help="Satoshis paid to --pay-address"),
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    node_url: str = typer.Option(None, "--node-url", help="YUV node RPC URL"),
    esplora_url: str = typer.Option(None, "--esplora-url", help="Esplora API URL"),
    fee_rate: float = typer.Option(None, "--fee-rate", help="Fee rate in sat/vB"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the transaction only"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Announce a new chroma owned by this wallet."""
    setup_logging(log_level)
    settings = load_settings(private_key, network, node_url, esplora_url, fee_rate)

    if pay_address and pay_amount <= 0:
        logger.error("--pay-amount must be positive when --pay-address is set")
        raise typer.Exit(1)

    async def _announce(wallet: Any) -> None:
        announcement = wallet.create_announcement(name, symbol, decimal, max_supply, freezable)
        if pay_address:
            tx = await wallet.prepare_announcement_with_fee(announcement, pay_address, pay_amount)
        else:
            tx = await wallet.prepare_announcement(announcement)
        await _submit(wallet, tx, dry_run)

    _run_with_wallet(settings, _announce)


@app.command()
def issue(
    amount: int = typer.Option(..., "--amount", "-a", help="Units to issue"),
    recipient: str = typer.Option(None, "--recipient", "-r", help="YUV address, default self"),
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    node_url: str = typer.Option(None, "--node-url", help="YUV node RPC URL"),
    esplora_url: str = typer.Option(None, "--esplora-url", help="Esplora API URL"),
    fee_rate: float = typer.Option(None, "--fee-rate", help="Fee rate in sat/vB"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the transaction only"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Issue units of this wallet's chroma."""
    from yuvwallet.wallet.models import Payment

    setup_logging(log_level)
    settings = load_settings(private_key, network, node_url, esplora_url, fee_rate)

    async def _issue(wallet: Any) -> None:
        payment = Payment(recipient or wallet.p2tr_address, amount, wallet.chroma.hex())
        tx = await wallet.prepare_issuance([payment])
        await _submit(wallet, tx, dry_run)

    _run_with_wallet(settings, _issue)


@app.command()
def transfer(
    chroma: str = typer.Option(..., "--chroma", "-c", help="Asset chroma (hex)"),
    amount: int = typer.Option(..., "--amount", "-a", help="Units to send"),
    recipient: str = typer.Option(..., "--recipient", "-r", help="Recipient YUV address"),
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    node_url: str = typer.Option(None, "--node-url", help="YUV node RPC URL"),
    esplora_url: str = typer.Option(None, "--esplora-url", help="Esplora API URL"),
    fee_rate: float = typer.Option(None, "--fee-rate", help="Fee rate in sat/vB"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print the transaction only"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Send pixels of a chroma to a YUV address."""
    from yuvwallet.wallet.models import Payment

    setup_logging(log_level)
    settings = load_settings(private_key, network, node_url, esplora_url, fee_rate)

    async def _transfer(wallet: Any) -> None:
        tx = await wallet.prepare_transfer([Payment(recipient, amount, chroma)])
        await _submit(wallet, tx, dry_run)

    _run_with_wallet(settings, _transfer)


@app.command()
def status(
    txid: str = typer.Argument(..., help="YUV transaction id"),
    private_key: str = typer.Option(None, "--private-key", "-k", help="Hex private key"),
    network: str = typer.Option(None, "--network", "-n", help="Bitcoin network"),
    node_url: str = typer.Option(None, "--node-url", help="YUV node RPC URL"),
    log_level: str = typer.Option("INFO", "--log-level", "-l"),
) -> None:
    """Show the node's status for a submitted transaction."""
    setup_logging(log_level)
    settings = load_settings(private_key, network, node_url)

    async def _show(wallet: Any) -> None:
        raw = await wallet.get_transaction_status(txid)
        print(f"{txid}: {raw.status.value}")

    _run_with_wallet(settings, _show, sync=False)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
