"""Command-line interface for CryptoTracker.

Provides commands to list products with their latest statistics, inspect one
product, manage the watchlist and convert holdings at the current price.
"""

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from cryptotracker.catalog import (
    PriceTrend,
    displayable_products,
    price_trend,
    search_products,
)
from cryptotracker.clients.coinbase import CoinbaseCatalogClient
from cryptotracker.config import CONFIG_FILE, Settings, load_config
from cryptotracker.converter import ConversionCalculator, format_number
from cryptotracker.logging_config import setup_logging
from cryptotracker.models import Product, Statistics
from cryptotracker.sync import SyncCoordinator
from cryptotracker.watchlist import FileBlobStorage, WatchlistStore

console = Console()


def _make_client(settings: Settings) -> CoinbaseCatalogClient:
    """Creates the catalog client described by the settings."""
    return CoinbaseCatalogClient(
        base_url=settings.api.base_url,
        timeout_s=settings.api.request_timeout_s,
    )


def _make_watchlist(settings: Settings) -> WatchlistStore:
    """Creates the watchlist store described by the settings."""
    return WatchlistStore(FileBlobStorage(Path(settings.watchlist.storage_path)))


def _products_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Product", style="cyan")
    table.add_column("Base")
    table.add_column("Quote")
    return table


async def _fetch_stats(settings: Settings, display_name: str) -> Statistics | None:
    async with _make_client(settings) as client:
        stats = await client.get_statistics(display_name)
    return stats if stats is not None and stats.is_valid else None


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=CONFIG_FILE,
    show_default=True,
    help="Path to the TOML configuration file.",
)
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path, verbose: bool) -> None:
    """Track Coinbase Exchange products, statistics and your watchlist."""
    settings = load_config(config_path)
    setup_logging(
        console_level="DEBUG" if verbose else settings.general.log_level_console,
        file_level=settings.general.log_level_file,
        log_dir=Path(settings.general.log_directory),
    )
    ctx.obj = settings


@cli.command()
@click.option(
    "--quote",
    default=None,
    help="Quote currency to list. Defaults to the preferred quote currency.",
)
@click.option("--all-quotes", is_flag=True, help="List every quote currency.")
@click.option("--search", "query", default=None, help="Base currency prefix.")
@click.pass_obj
def products(
    settings: Settings, quote: str | None, all_quotes: bool, query: str | None
) -> None:
    """List products that have statistics, with their last price.

    \b
    Examples:
      cryptotracker products
      cryptotracker products --quote EUR
      cryptotracker products --all-quotes --search ET
    """
    quote_currency = ""
    if not all_quotes:
        quote_currency = (quote or settings.display.preferred_quote_currency).upper()

    async def _run() -> tuple[list[Product], dict[str, Statistics]]:
        async with _make_client(settings) as client:
            coordinator = SyncCoordinator(
                client,
                max_concurrency=settings.sync.max_concurrent_requests,
                rate_limit=settings.sync.requests_per_second,
            )
            catalog = await coordinator.sync()
            index = coordinator.index.snapshot()
        listed = displayable_products(catalog, index, quote_currency)
        if query is not None:
            listed = search_products(listed, query)
        return listed, index

    listed, index = asyncio.run(_run())
    if not listed:
        console.print("[yellow]No products with statistics found.[/yellow]")
        return

    table = _products_table(f"Products ({quote_currency or 'all quotes'})")
    table.add_column("Last", justify="right")
    for product in listed:
        stats = index[product.display_name]
        colour = "green" if price_trend(stats) is PriceTrend.UP else "red"
        table.add_row(
            product.display_name,
            product.base_currency,
            product.quote_currency,
            f"[{colour}]{stats.last}[/{colour}]",
        )
    console.print(table)


@cli.command()
@click.argument("display_name")
@click.pass_obj
def stats(settings: Settings, display_name: str) -> None:
    """Show the 24h and 30d statistics of DISPLAY_NAME (e.g. BTC-USD)."""
    result = asyncio.run(_fetch_stats(settings, display_name.upper()))
    if result is None:
        console.print(f"[red]No stats available for {display_name.upper()}.[/red]")
        raise SystemExit(1)

    table = Table(title=display_name.upper(), show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("OPEN", result.open)
    table.add_row("LAST", result.last)
    table.add_row("HIGH", result.high)
    table.add_row("LOW", result.low)
    table.add_row("VOLUME (24h)", format_number(result.volume))
    table.add_row("VOLUME (30d)", format_number(result.volume_30day))
    console.print(table)


@cli.group()
def watchlist() -> None:
    """Manage the watchlist of saved products."""


@watchlist.command("list")
@click.pass_obj
def list_watchlist(settings: Settings) -> None:
    """Show the watched products."""
    saved = asyncio.run(_make_watchlist(settings).all())
    if not saved:
        console.print("Your watchlist is empty.")
        return

    table = _products_table("Watchlist")
    for product in saved:
        table.add_row(
            product.display_name, product.base_currency, product.quote_currency
        )
    console.print(table)


@watchlist.command("add")
@click.argument("display_name")
@click.pass_obj
def add_to_watchlist(settings: Settings, display_name: str) -> None:
    """Add DISPLAY_NAME (e.g. BTC-USD) to the watchlist."""
    display_name = display_name.upper()

    async def _run() -> Product | None:
        async with _make_client(settings) as client:
            catalog = await client.list_products()
        product = next(
            (p for p in catalog if display_name in (p.display_name, p.id)), None
        )
        if product is not None:
            await _make_watchlist(settings).add(product)
        return product

    product = asyncio.run(_run())
    if product is None:
        console.print(f"[red]Product {display_name} was not found.[/red]")
        raise SystemExit(1)
    console.print(f"[green]✓ {product.id} is on the watchlist[/green]")


@watchlist.command("remove")
@click.argument("product_id")
@click.pass_obj
def remove_from_watchlist(settings: Settings, product_id: str) -> None:
    """Remove PRODUCT_ID from the watchlist."""
    product_id = product_id.upper()
    asyncio.run(_make_watchlist(settings).remove(product_id))
    console.print(f"[green]✓ {product_id} is not on the watchlist[/green]")


@cli.command()
@click.argument("display_name")
@click.option("--amount", default=None, help="Amount of the base currency owned.")
@click.option("--total", default=None, help="Total value in the quote currency.")
@click.pass_obj
def convert(
    settings: Settings, display_name: str, amount: str | None, total: str | None
) -> None:
    """Convert between an amount owned and its value at the last price.

    \b
    Examples:
      cryptotracker convert BTC-USD --amount 0.5
      cryptotracker convert ETH-EUR --total 1000
    """
    if (amount is None) == (total is None):
        raise click.UsageError("Pass exactly one of --amount or --total.")

    display_name = display_name.upper()
    result = asyncio.run(_fetch_stats(settings, display_name))
    if result is None:
        console.print(f"[red]No stats available for {display_name}.[/red]")
        raise SystemExit(1)

    base, _, quote = display_name.partition("-")
    calculator = ConversionCalculator(result.last)
    if amount is not None:
        converted = calculator.total_value(amount)
        line = f"{amount} {base} = {converted} {quote}"
    else:
        converted = calculator.amount_owned(total)
        line = f"{total} {quote} = {converted} {base}"

    if converted is None:
        console.print("[red]Could not convert: enter a number.[/red]")
        raise SystemExit(1)
    console.print(f"{line} [dim](last price {result.last})[/dim]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
