"""Read-only commands over a registry rebuilt from the ledger."""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.markup import escape
from rich.table import Table

from nftmarket.cli.commands._common import console, open_registry
from nftmarket.cli.render import items_table
from nftmarket.config import config
from nftmarket.core.errors import ItemNotFoundError
from nftmarket.core.tx_ledger import LedgerIntegrityError
from nftmarket.core.units import format_units
from nftmarket.marketplace.registry import MarketplaceRegistry
from nftmarket.models.ledger import Checkpoint

_MARKET = typer.Option(
    None, "--market", "-m", help="Registry address (defaults to the latest deploy)."
)
_LEDGER = typer.Option(
    str(config.ledger_path), "--ledger", "-l", help="Path to the ledger SQLite database."
)
_UNIT = typer.Option(config.default_unit, "--unit", "-u", help="Unit for amounts.")


def listing_price_cmd(
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Print the current listing fee."""
    registry = open_registry(ledger_db, market)
    console.print(f"{format_units(registry.get_listing_price(), unit)} {unit}")


def market_cmd(
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """List every token currently for sale."""
    registry = open_registry(ledger_db, market)
    items = registry.fetch_market_items()
    if not items:
        console.print("[dim]No items for sale.[/dim]")
        return
    console.print(items_table(items, "Market Items", unit))


def nfts_cmd(
    account: str = typer.Option(..., "--account", "-a", help="Owner identity."),
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """List the tokens an account owns."""
    registry = open_registry(ledger_db, market)
    items = registry.fetch_nfts(account)
    if not items:
        console.print(f"[dim]{account} owns no items.[/dim]")
        return
    console.print(items_table(items, f"Owned by {account}", unit))


def listed_cmd(
    account: str = typer.Option(..., "--account", "-a", help="Seller identity."),
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """List the listings an account has created."""
    registry = open_registry(ledger_db, market)
    items = registry.fetch_items_listed(account)
    if not items:
        console.print(f"[dim]{account} has no listings.[/dim]")
        return
    console.print(items_table(items, f"Listed by {account}", unit))


def item_cmd(
    token_id: int = typer.Argument(..., help="Token to show."),
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Show one token."""
    registry = open_registry(ledger_db, market)
    try:
        item = registry.get_item(token_id)
    except ItemNotFoundError as exc:
        console.print(f"[bold red]{exc.reason}:[/bold red] {exc}")
        raise typer.Exit(code=1)
    console.print(items_table([item], f"Item {token_id}", unit))


def history_cmd(
    account: str = typer.Option(
        None, "--account", "-a", help="Only show transactions from this caller."
    ),
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Show the committed transactions of a registry."""
    registry = open_registry(ledger_db, market)
    ledger = registry.ledger
    if account:
        entries = ledger.get_caller_history(registry.address, account)
    else:
        entries = ledger.get_entries(registry.address)

    table = Table(title=f"Transactions on {registry.address}")
    table.add_column("#", justify="right")
    table.add_column("Operation", style="cyan")
    table.add_column("Caller")
    table.add_column(f"Value ({unit})", justify="right", style="green")
    table.add_column("Token", justify="right")
    table.add_column("Hash", style="dim")
    for idx, entry in enumerate(entries, 1):
        table.add_row(
            str(idx),
            entry.operation.value,
            entry.caller,
            format_units(entry.value, unit),
            "" if entry.token_id is None else str(entry.token_id),
            entry.entry_hash[:12],
        )
    console.print(table)


def verify_cmd(
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    export_checkpoint: Path = typer.Option(
        None,
        "--export-checkpoint",
        help="Write a checkpoint of the ledger head and registry state to this file.",
    ),
    checkpoint: Path = typer.Option(
        None,
        "--checkpoint",
        help="Check the ledger still replays to a previously exported checkpoint.",
    ),
) -> None:
    """Verify the ledger hash chain and, optionally, a state checkpoint."""
    registry = open_registry(ledger_db, market)
    try:
        if checkpoint is not None:
            recorded = Checkpoint.model_validate_json(
                checkpoint.read_text(encoding="utf-8")
            )
            MarketplaceRegistry.verify_checkpoint(registry.ledger, recorded)
        else:
            registry.ledger.verify_chain(registry.address)
    except ValidationError as exc:
        console.print(
            f"[bold red]Unreadable checkpoint:[/bold red] {escape(str(exc))}"
        )
        raise typer.Exit(code=1)
    except LedgerIntegrityError as exc:
        console.print(f"[bold red]Chain INVALID:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(f"[bold green]Chain valid[/bold green] for {registry.address}")
    if checkpoint is not None:
        console.print(
            f"[green]State matches checkpoint[/green] at entry {recorded.entry_count}"
        )
    if export_checkpoint is not None:
        sealed = registry.export_checkpoint()
        export_checkpoint.write_text(sealed.model_dump_json(indent=2), encoding="utf-8")
        console.print(
            f"[dim]Checkpoint at entry {sealed.entry_count} written to "
            f"{export_checkpoint}[/dim]"
        )
