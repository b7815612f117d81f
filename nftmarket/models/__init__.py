"""nftmarket data models — all Pydantic v2, all frozen (immutable)."""

from nftmarket.models.events import (
    EventKind,
    ListingPriceUpdated,
    MarketEvent,
    MarketItemCancelled,
    MarketItemCreated,
    MarketItemRelisted,
    MarketItemSold,
)
from nftmarket.models.items import (
    VALID_TRANSITIONS,
    ItemState,
    MarketItem,
    RegistryState,
)
from nftmarket.models.ledger import (
    CALL_ARGS,
    Checkpoint,
    CreateTokenArgs,
    ListingPriceArgs,
    Operation,
    ResellArgs,
    TokenArgs,
    TxEntry,
    TxReceipt,
    TxRequest,
    TxStatus,
)

__all__ = [
    # items
    "ItemState",
    "MarketItem",
    "RegistryState",
    "VALID_TRANSITIONS",
    # events
    "EventKind",
    "MarketEvent",
    "MarketItemCreated",
    "MarketItemSold",
    "MarketItemRelisted",
    "MarketItemCancelled",
    "ListingPriceUpdated",
    # ledger
    "Operation",
    "TxEntry",
    "TxRequest",
    "TxReceipt",
    "TxStatus",
    "Checkpoint",
    # call arguments
    "CALL_ARGS",
    "CreateTokenArgs",
    "TokenArgs",
    "ResellArgs",
    "ListingPriceArgs",
]
