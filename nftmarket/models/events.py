"""Typed marketplace events, returned in receipts and sealed into the ledger."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    MARKET_ITEM_CREATED = "MarketItemCreated"
    MARKET_ITEM_SOLD = "MarketItemSold"
    MARKET_ITEM_RELISTED = "MarketItemRelisted"
    MARKET_ITEM_CANCELLED = "MarketItemCancelled"
    LISTING_PRICE_UPDATED = "ListingPriceUpdated"


class MarketEvent(BaseModel):
    """Base fields shared by every event."""

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: EventKind
    registry_id: str
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class MarketItemCreated(MarketEvent):
    """Emitted by ``create_token``: ``(token_id, seller, owner, price, sold)``.

    ``owner`` is the custodian address; ``sold`` is always False.
    """

    kind: EventKind = EventKind.MARKET_ITEM_CREATED
    token_id: int
    seller: str
    owner: str
    price: int
    sold: bool = False


class MarketItemSold(MarketEvent):
    kind: EventKind = EventKind.MARKET_ITEM_SOLD
    token_id: int
    seller: str
    buyer: str
    price: int


class MarketItemRelisted(MarketEvent):
    kind: EventKind = EventKind.MARKET_ITEM_RELISTED
    token_id: int
    seller: str
    price: int


class MarketItemCancelled(MarketEvent):
    kind: EventKind = EventKind.MARKET_ITEM_CANCELLED
    token_id: int
    seller: str


class ListingPriceUpdated(MarketEvent):
    kind: EventKind = EventKind.LISTING_PRICE_UPDATED
    old_price: int
    new_price: int
