"""Marketplace item models and the per-item state table."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ItemState(str, Enum):
    """Lifecycle state of an item, derived from its ``listed``/``sold`` flags."""

    LISTED = "listed"
    SOLD = "sold"
    CANCELLED = "cancelled"


# Valid per-item transitions, enforced by MarketplaceRegistry.
# No state is terminal: ids are never reused and any holder may relist.
VALID_TRANSITIONS: dict[ItemState, set[ItemState]] = {
    ItemState.LISTED: {ItemState.SOLD, ItemState.CANCELLED},
    ItemState.SOLD: {ItemState.LISTED},  # resale by the buyer
    ItemState.CANCELLED: {ItemState.LISTED},  # relist by the lister
}


class MarketItem(BaseModel):
    """A minted token and its current listing instance.

    ``owner`` is the custodian address while the item is listed and unsold.
    ``seller`` is whoever created the current listing instance and is the
    party paid on sale.
    """

    model_config = ConfigDict(frozen=True)

    token_id: int = Field(ge=1)
    owner: str
    creator: str
    seller: str
    price: int = Field(gt=0)  # base units
    uri: str
    sold: bool = False
    listed: bool = True

    @property
    def state(self) -> ItemState:
        if not self.listed:
            return ItemState.CANCELLED
        return ItemState.SOLD if self.sold else ItemState.LISTED


class RegistryState(BaseModel):
    """Complete, immutable snapshot of a registry.

    Mutations build a new snapshot with ``model_copy`` and swap it in as a
    single reference assignment.  The dicts held here are never mutated.
    """

    model_config = ConfigDict(frozen=True)

    listing_price: int = Field(gt=0)
    items: dict[int, MarketItem] = Field(default_factory=dict)
    next_token_id: int = 1
    treasury: int = 0  # listing fees collected
    proceeds: dict[str, int] = Field(default_factory=dict)  # seller income
    items_sold: int = 0
