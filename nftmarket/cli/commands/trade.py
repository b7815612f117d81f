"""Mutating commands: ``mint``, ``buy``, ``resell``, ``cancel``, ``set-listing-price``.

Every command submits a ``TxRequest`` through ``MarketplaceRegistry.execute``
and exits with code 1 when the transaction reverts.
"""

from __future__ import annotations

import typer

from nftmarket.cli.commands._common import open_registry, report, to_base_units
from nftmarket.config import config
from nftmarket.models.ledger import Operation, TxRequest

_ACCOUNT = typer.Option(..., "--account", "-a", help="Caller identity.")
_MARKET = typer.Option(
    None, "--market", "-m", help="Registry address (defaults to the latest deploy)."
)
_LEDGER = typer.Option(
    str(config.ledger_path), "--ledger", "-l", help="Path to the ledger SQLite database."
)
_UNIT = typer.Option(config.default_unit, "--unit", "-u", help="Unit for amounts.")


def mint_cmd(
    uri: str = typer.Argument(..., help="Metadata URI of the new token."),
    price: str = typer.Option(..., "--price", "-p", help="Sale price."),
    value: str = typer.Option(
        None, "--value", help="Attached value (defaults to the listing price)."
    ),
    account: str = _ACCOUNT,
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Mint a token and list it for sale."""
    registry = open_registry(ledger_db, market)
    paid = to_base_units(value, unit) if value else registry.get_listing_price()
    report(
        registry.execute(
            TxRequest(
                operation=Operation.CREATE_TOKEN,
                caller=account,
                value=paid,
                args={"uri": uri, "price": to_base_units(price, unit)},
            )
        )
    )


def buy_cmd(
    token_id: int = typer.Argument(..., help="Token to buy."),
    value: str = typer.Option(
        None, "--value", help="Attached value (defaults to the item price)."
    ),
    account: str = _ACCOUNT,
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Buy a listed token."""
    registry = open_registry(ledger_db, market)
    if value:
        paid = to_base_units(value, unit)
    else:
        listed = {item.token_id: item for item in registry.fetch_market_items()}
        paid = listed[token_id].price if token_id in listed else 0
    report(
        registry.execute(
            TxRequest(
                operation=Operation.CREATE_MARKET_SALE,
                caller=account,
                value=paid,
                args={"token_id": token_id},
            )
        )
    )


def resell_cmd(
    token_id: int = typer.Argument(..., help="Token to relist."),
    price: str = typer.Option(..., "--price", "-p", help="New sale price."),
    value: str = typer.Option(
        None, "--value", help="Attached value (defaults to the listing price)."
    ),
    account: str = _ACCOUNT,
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Put an owned token back on the market."""
    registry = open_registry(ledger_db, market)
    paid = to_base_units(value, unit) if value else registry.get_listing_price()
    report(
        registry.execute(
            TxRequest(
                operation=Operation.RESELL_TOKEN,
                caller=account,
                value=paid,
                args={"token_id": token_id, "price": to_base_units(price, unit)},
            )
        )
    )


def cancel_cmd(
    token_id: int = typer.Argument(..., help="Token whose listing to cancel."),
    account: str = _ACCOUNT,
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
) -> None:
    """Cancel an unsold listing; the token returns to its lister."""
    registry = open_registry(ledger_db, market)
    report(
        registry.execute(
            TxRequest(
                operation=Operation.CANCEL_ITEM_LISTING,
                caller=account,
                args={"token_id": token_id},
            )
        )
    )


def set_listing_price_cmd(
    listing_price: str = typer.Argument(..., help="New listing fee."),
    account: str = _ACCOUNT,
    market: str = _MARKET,
    ledger_db: str = _LEDGER,
    unit: str = _UNIT,
) -> None:
    """Change the listing fee (registry owner only)."""
    registry = open_registry(ledger_db, market)
    report(
        registry.execute(
            TxRequest(
                operation=Operation.UPDATE_LISTING_PRICE,
                caller=account,
                args={"listing_price": to_base_units(listing_price, unit)},
            )
        )
    )
