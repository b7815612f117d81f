"""Shared test fixtures for nftmarket."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from nftmarket.core.tx_ledger import TxLedger
from nftmarket.core.units import parse_units
from nftmarket.marketplace.registry import MarketplaceRegistry

LISTING_PRICE = parse_units("0.025", "ether")
AUCTION_PRICE = parse_units("100", "ether")
TOKEN_URI = "https://dummy-token.url/"


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test artifacts."""
    return tmp_path


@pytest.fixture
def ledger(tmp_dir: Path) -> TxLedger:
    """Provide a fresh TxLedger backed by a temp SQLite database."""
    return TxLedger(tmp_dir / "test_ledger.db")


@pytest.fixture
def listing_price() -> int:
    return LISTING_PRICE


@pytest.fixture
def auction_price() -> int:
    """Sale price used across tests: 100 ether in wei."""
    return AUCTION_PRICE


@pytest.fixture
def token_uri() -> str:
    return TOKEN_URI


@pytest.fixture
def owner() -> str:
    return "0x1111111111111111111111111111111111111111"


@pytest.fixture
def buyer() -> str:
    return "0x2222222222222222222222222222222222222222"


@pytest.fixture
def other() -> str:
    return "0x3333333333333333333333333333333333333333"


@pytest.fixture
def market(owner: str) -> MarketplaceRegistry:
    """Provide an in-memory registry deployed by ``owner``."""
    return MarketplaceRegistry.deploy(owner, LISTING_PRICE)


@pytest.fixture
def ledger_market(owner: str, ledger: TxLedger) -> MarketplaceRegistry:
    """Provide a registry that records every commit in the test ledger."""
    return MarketplaceRegistry.deploy(owner, LISTING_PRICE, ledger=ledger)


@pytest.fixture
def mint_and_list(
    market: MarketplaceRegistry, owner: str
) -> Callable[..., int]:
    """Factory fixture: mint and list a token on ``market``, return its id."""

    def _factory(
        uri: str = TOKEN_URI,
        price: int = AUCTION_PRICE,
        caller: str | None = None,
    ) -> int:
        receipt = market.create_token(
            caller or owner, uri, price, market.get_listing_price()
        )
        return receipt.token_id

    return _factory
