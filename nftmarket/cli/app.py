"""Main Typer application — imports and registers all CLI commands.

Entry point: ``nftmarket`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from nftmarket.cli.commands.deploy import deploy_cmd
from nftmarket.cli.commands.query import (
    history_cmd,
    item_cmd,
    listed_cmd,
    listing_price_cmd,
    market_cmd,
    nfts_cmd,
    verify_cmd,
)
from nftmarket.cli.commands.trade import (
    buy_cmd,
    cancel_cmd,
    mint_cmd,
    resell_cmd,
    set_listing_price_cmd,
)
from nftmarket.config import config

app = typer.Typer(
    name="nftmarket",
    help="nftmarket: NFT marketplace registry with a hash-chained transaction ledger.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log at DEBUG level."
    ),
) -> None:
    """Configure logging before any command runs."""
    level = "DEBUG" if verbose or config.debug else config.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(
                console=Console(stderr=True), show_path=False, rich_tracebacks=True
            )
        ],
        force=True,
    )


# Register subcommands
app.command(name="deploy", help="Deploy a new marketplace registry.")(deploy_cmd)
app.command(name="listing-price", help="Show the listing fee.")(listing_price_cmd)
app.command(name="set-listing-price", help="Change the listing fee.")(set_listing_price_cmd)
app.command(name="mint", help="Mint a token and list it for sale.")(mint_cmd)
app.command(name="buy", help="Buy a listed token.")(buy_cmd)
app.command(name="resell", help="Relist an owned token.")(resell_cmd)
app.command(name="cancel", help="Cancel an unsold listing.")(cancel_cmd)
app.command(name="market", help="Show tokens for sale.")(market_cmd)
app.command(name="nfts", help="Show tokens owned by an account.")(nfts_cmd)
app.command(name="listed", help="Show listings created by an account.")(listed_cmd)
app.command(name="item", help="Show a single token.")(item_cmd)
app.command(name="history", help="Show committed transactions.")(history_cmd)
app.command(name="verify", help="Verify the ledger hash chain.")(verify_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
