"""Rich renderables for items and receipts."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from nftmarket.core.units import format_units
from nftmarket.models.items import ItemState, MarketItem
from nftmarket.models.ledger import TxReceipt

_STATE_STYLE: dict[ItemState, str] = {
    ItemState.LISTED: "green",
    ItemState.SOLD: "cyan",
    ItemState.CANCELLED: "dim",
}


def items_table(items: list[MarketItem], title: str, unit: str = "ether") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="bold")
    table.add_column("State")
    table.add_column(f"Price ({unit})", justify="right", style="green")
    table.add_column("Owner", style="cyan")
    table.add_column("Seller")
    table.add_column("Creator")
    table.add_column("URI", overflow="fold")

    for item in items:
        style = _STATE_STYLE[item.state]
        table.add_row(
            str(item.token_id),
            f"[{style}]{item.state.value}[/{style}]",
            format_units(item.price, unit),
            item.owner,
            item.seller,
            item.creator,
            item.uri,
        )
    return table


def receipt_panel(receipt: TxReceipt) -> Panel:
    lines = [
        f"[bold]Operation:[/bold] {receipt.operation.value}",
        f"[bold]Caller:[/bold]    {receipt.caller}",
        f"[bold]Registry:[/bold]  {receipt.registry_id}",
    ]
    if receipt.token_id is not None:
        lines.append(f"[bold]Token ID:[/bold]  {receipt.token_id}")
    for event in receipt.events:
        lines.append(f"[dim]event {event.kind.value}[/dim]")
    if receipt.entry_hash:
        lines.append(f"[dim]ledger {receipt.entry_hash[:16]}...[/dim]")
    return Panel(
        "\n".join(lines),
        title="[bold green]Transaction committed[/bold green]",
        border_style="green",
        padding=(1, 2),
    )
