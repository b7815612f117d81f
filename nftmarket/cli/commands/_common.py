"""Shared helpers for CLI commands: ledger access, amounts, failures."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from nftmarket.core.tx_ledger import LedgerIntegrityError, TxLedger
from nftmarket.core.units import parse_units
from nftmarket.marketplace.registry import MarketplaceRegistry
from nftmarket.models.ledger import TxReceipt
from nftmarket.cli.render import receipt_panel

console = Console()


def open_registry(ledger_db: str, market: str | None) -> MarketplaceRegistry:
    """Load a registry from the ledger, exiting with code 1 if impossible."""
    db_path = Path(ledger_db)
    if not db_path.exists():
        console.print(f"[bold red]Ledger not found:[/bold red] {ledger_db}")
        console.print("[dim]Deploy a registry first with: nftmarket deploy[/dim]")
        raise typer.Exit(code=1)
    try:
        return MarketplaceRegistry.load(TxLedger(db_path), market)
    except KeyError as exc:
        console.print(f"[bold red]Unknown registry:[/bold red] {exc.args[0]}")
        raise typer.Exit(code=1)
    except LedgerIntegrityError as exc:
        console.print(f"[bold red]Ledger integrity failure:[/bold red] {exc}")
        raise typer.Exit(code=1)


def to_base_units(amount: str, unit: str) -> int:
    try:
        return parse_units(amount, unit)
    except ValueError as exc:
        console.print(f"[bold red]Invalid amount:[/bold red] {exc}")
        raise typer.Exit(code=1)


def report(receipt: TxReceipt) -> None:
    """Print a committed receipt, or the revert reason and exit 1."""
    if not receipt.ok:
        console.print(
            f"[bold red]Reverted ({receipt.revert_reason}):[/bold red] "
            f"{receipt.message}"
        )
        raise typer.Exit(code=1)
    console.print(receipt_panel(receipt))
