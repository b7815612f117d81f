"""Integration tests — full marketplace flows, including ledger persistence.

Mirrors the mint / list / buy lifecycle end to end: deploy, mint and list,
purchase, resale, cancellation, then rebuild the registry from its ledger.
"""

from __future__ import annotations

import pytest

from nftmarket.core.errors import IncorrectListingFeeError, InvalidPriceError
from nftmarket.core.tx_ledger import TxLedger
from nftmarket.marketplace.registry import MarketplaceRegistry
from nftmarket.models.ledger import Operation


class TestMintAndList:
    def test_zero_price_reverts(self, market, owner, token_uri, listing_price):
        with pytest.raises(InvalidPriceError):
            market.create_token(owner, token_uri, 0, listing_price)

    def test_wrong_listing_fee_reverts(self, market, owner, token_uri, auction_price):
        with pytest.raises(IncorrectListingFeeError):
            market.create_token(owner, token_uri, auction_price, 0)

    def test_owner_and_uri(self, market, mint_and_list, token_uri):
        token_id = mint_and_list()
        assert market.owner_of(token_id) == market.address
        assert market.token_uri(token_id) == token_uri

    def test_created_event_args(self, market, owner, token_uri, auction_price, listing_price):
        receipt = market.create_token(owner, token_uri, auction_price, listing_price)
        event = receipt.events[0]
        assert event.kind.value == "MarketItemCreated"
        assert (event.token_id, event.seller, event.owner, event.price, event.sold) == (
            receipt.token_id, owner, market.address, auction_price, False,
        )


class TestMarketSale:
    def test_full_lifecycle(
        self, market, mint_and_list, owner, buyer, other, auction_price, listing_price
    ):
        ids = [mint_and_list() for _ in range(3)]
        assert len(market.fetch_market_items()) == 3

        # Purchase
        market.create_market_sale(buyer, ids[0], auction_price)
        assert [i.token_id for i in market.fetch_nfts(buyer)] == [ids[0]]
        assert len(market.fetch_market_items()) == 2

        # Cancellation
        market.cancel_item_listing(owner, ids[1])
        assert [i.token_id for i in market.fetch_market_items()] == [ids[2]]

        # Resale
        market.resell_token(buyer, ids[0], auction_price * 2, listing_price)
        relisted = {i.token_id: i for i in market.fetch_market_items()}
        assert set(relisted) == {ids[0], ids[2]}
        assert relisted[ids[0]].sold is False
        assert relisted[ids[0]].price == auction_price * 2

        # Second-hand sale pays the reseller
        market.create_market_sale(other, ids[0], auction_price * 2)
        assert market.owner_of(ids[0]) == other
        assert market.proceeds_of(buyer) == auction_price * 2
        assert market.proceeds_of(owner) == auction_price

        # Listing fees: three mints plus one resale
        assert market.treasury_balance() == 4 * listing_price


class TestLedgerPersistence:
    def _trade(self, market, owner, buyer, listing_price, auction_price):
        for uri in ("ipfs://a", "ipfs://b", "ipfs://c"):
            market.create_token(owner, uri, auction_price, listing_price)
        market.create_market_sale(buyer, 1, auction_price)
        market.cancel_item_listing(owner, 2)
        market.resell_token(buyer, 1, auction_price + 1, listing_price)
        market.update_listing_price(owner, listing_price * 2)

    def test_every_commit_is_recorded(
        self, ledger_market, ledger, owner, buyer, listing_price, auction_price
    ):
        self._trade(ledger_market, owner, buyer, listing_price, auction_price)
        entries = ledger.get_entries(ledger_market.address)
        assert [e.operation for e in entries] == [
            Operation.DEPLOY,
            Operation.CREATE_TOKEN,
            Operation.CREATE_TOKEN,
            Operation.CREATE_TOKEN,
            Operation.CREATE_MARKET_SALE,
            Operation.CANCEL_ITEM_LISTING,
            Operation.RESELL_TOKEN,
            Operation.UPDATE_LISTING_PRICE,
        ]
        assert ledger.verify_chain(ledger_market.address) is True

    def test_receipt_carries_entry_hash(self, ledger_market, ledger, owner, listing_price):
        receipt = ledger_market.create_token(owner, "ipfs://a", 10, listing_price)
        assert receipt.entry_hash == ledger.get_latest(ledger_market.address).entry_hash

    def test_reverted_calls_are_not_recorded(
        self, ledger_market, ledger, owner, listing_price
    ):
        with pytest.raises(InvalidPriceError):
            ledger_market.create_token(owner, "ipfs://a", 0, listing_price)
        assert len(ledger.get_entries(ledger_market.address)) == 1  # deploy only

    def test_load_rebuilds_identical_state(
        self, ledger_market, ledger, owner, buyer, listing_price, auction_price
    ):
        self._trade(ledger_market, owner, buyer, listing_price, auction_price)

        reloaded = MarketplaceRegistry.load(TxLedger(ledger.db_path), ledger_market.address)
        assert reloaded.address == ledger_market.address
        assert reloaded.owner == owner
        assert reloaded.snapshot() == ledger_market.snapshot()

    def test_load_does_not_append(
        self, ledger_market, ledger, owner, buyer, listing_price, auction_price
    ):
        self._trade(ledger_market, owner, buyer, listing_price, auction_price)
        before = len(ledger.get_entries(ledger_market.address))
        MarketplaceRegistry.load(ledger, ledger_market.address)
        assert len(ledger.get_entries(ledger_market.address)) == before

    def test_loaded_registry_keeps_trading(
        self, ledger_market, ledger, owner, buyer, listing_price, auction_price
    ):
        ledger_market.create_token(owner, "ipfs://a", auction_price, listing_price)
        reloaded = MarketplaceRegistry.load(ledger, ledger_market.address)
        reloaded.create_market_sale(buyer, 1, auction_price)

        again = MarketplaceRegistry.load(ledger, ledger_market.address)
        assert again.owner_of(1) == buyer

    def test_load_defaults_to_latest_deploy(self, ledger, owner, listing_price):
        MarketplaceRegistry.deploy(owner, listing_price, ledger=ledger)
        latest = MarketplaceRegistry.deploy(owner, listing_price, ledger=ledger)
        assert MarketplaceRegistry.load(ledger).address == latest.address

    def test_load_empty_ledger(self, ledger):
        with pytest.raises(KeyError):
            MarketplaceRegistry.load(ledger)

    def test_load_unknown_address(self, ledger_market, ledger):
        with pytest.raises(KeyError):
            MarketplaceRegistry.load(ledger, "0x" + "0" * 40)
