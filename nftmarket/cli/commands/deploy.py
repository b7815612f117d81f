"""``nftmarket deploy`` — create a registry in the ledger and print its address."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from nftmarket.cli.commands._common import console, to_base_units
from nftmarket.config import config
from nftmarket.core.errors import MarketError
from nftmarket.core.tx_ledger import TxLedger
from nftmarket.core.units import format_units
from nftmarket.marketplace.registry import MarketplaceRegistry


def deploy_cmd(
    account: str = typer.Option(
        ...,
        "--account",
        "-a",
        help="Deployer identity; becomes the registry owner.",
    ),
    listing_price: str = typer.Option(
        None,
        "--listing-price",
        help="Listing fee (defaults to NFTMARKET_LISTING_PRICE).",
    ),
    unit: str = typer.Option(
        config.default_unit, "--unit", "-u", help="Unit for --listing-price."
    ),
    ledger_db: str = typer.Option(
        str(config.ledger_path),
        "--ledger",
        "-l",
        help="Path to the ledger SQLite database.",
    ),
) -> None:
    """Deploy a new marketplace registry.

    The registry address is printed last, on its own line, for scripting.
    """
    fee = to_base_units(listing_price, unit) if listing_price else None
    ledger = TxLedger(Path(ledger_db))
    try:
        registry = MarketplaceRegistry.deploy(account, fee, ledger=ledger)
    except MarketError as exc:
        console.print(f"[bold red]Deploy failed ({exc.reason}):[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Marketplace deployed![/bold green]",
                "",
                f"[bold]Address:[/bold]        {registry.address}",
                f"[bold]Owner:[/bold]          {registry.owner}",
                f"[bold]Listing price:[/bold]  "
                f"{format_units(registry.get_listing_price(), unit)} {unit}",
                f"[bold]Ledger DB:[/bold]      {ledger_db}",
            ]),
            title="[bold]nftmarket[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print(registry.address)
