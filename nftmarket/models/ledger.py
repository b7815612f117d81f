"""Transaction ledger entry and the submit-boundary request/receipt models.

The Tx Ledger is the persistent record of a registry.  It is:
- Append-only (no UPDATE, no DELETE)
- Hash-chained (each entry links to the previous via SHA-256)
- One entry per committed transaction; reverted calls are never recorded
- Replayable (operation, caller, value and args fully determine the effect)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from nftmarket.models.events import MarketEvent


class Operation(str, Enum):
    """Mutating calls a registry accepts."""

    DEPLOY = "deploy"
    CREATE_TOKEN = "create_token"
    CREATE_MARKET_SALE = "create_market_sale"
    RESELL_TOKEN = "resell_token"
    CANCEL_ITEM_LISTING = "cancel_item_listing"
    UPDATE_LISTING_PRICE = "update_listing_price"


class TxStatus(str, Enum):
    SUCCESS = "success"
    REVERTED = "reverted"


class TxEntry(BaseModel):
    """A single committed transaction in the append-only Tx Ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    registry_id: str  # custodian address of the registry
    operation: Operation
    caller: str
    value: int = 0  # attached amount, base units
    args: dict[str, Any] = {}
    token_id: int | None = None
    events: list[dict[str, Any]] = []  # serialized MarketEvent records
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    schema_version: str = "2026-10"
    previous_entry_hash: str = ""  # SHA-256 of previous entry's canonical bytes
    entry_hash: str = ""  # computed on append, seals this entry


class TxRequest(BaseModel):
    """A mutating call submitted through ``MarketplaceRegistry.execute``."""

    model_config = ConfigDict(frozen=True)

    operation: Operation
    caller: str
    value: int = 0
    args: dict[str, Any] = {}


class TxReceipt(BaseModel):
    """Outcome of a mutating call.

    ``token_id`` is the new item id for ``create_token`` and the affected id
    for item operations.  ``revert_reason`` holds the failure's reason name
    when ``status`` is REVERTED.
    """

    model_config = ConfigDict(frozen=True)

    tx_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    registry_id: str
    operation: Operation
    caller: str
    status: TxStatus = TxStatus.SUCCESS
    token_id: int | None = None
    events: list[SerializeAsAny[MarketEvent]] = []
    revert_reason: str = ""
    message: str = ""
    entry_hash: str = ""  # ledger seal, empty when no ledger is bound

    @property
    def ok(self) -> bool:
        return self.status == TxStatus.SUCCESS


# ---------------------------------------------------------------------------
# Per-operation arguments carried by TxRequest.args
# ---------------------------------------------------------------------------


class _CallArgs(BaseModel):
    model_config = ConfigDict(frozen=True, strict=True, extra="forbid")


class CreateTokenArgs(_CallArgs):
    uri: str
    price: int


class TokenArgs(_CallArgs):
    token_id: int


class ResellArgs(_CallArgs):
    token_id: int
    price: int


class ListingPriceArgs(_CallArgs):
    listing_price: int


CALL_ARGS: dict[Operation, type[_CallArgs]] = {
    Operation.CREATE_TOKEN: CreateTokenArgs,
    Operation.CREATE_MARKET_SALE: TokenArgs,
    Operation.RESELL_TOKEN: ResellArgs,
    Operation.CANCEL_ITEM_LISTING: TokenArgs,
    Operation.UPDATE_LISTING_PRICE: ListingPriceArgs,
}


class Checkpoint(BaseModel):
    """Externally witnessed commitment to a registry's ledger head and state.

    ``state_digest`` is SHA-256 over the canonical JSON of the full
    ``RegistryState`` after replaying ``entry_count`` entries.
    """

    model_config = ConfigDict(frozen=True)

    registry_id: str
    entry_count: int = Field(ge=1)
    head_hash: str
    listing_price: int
    next_token_id: int
    items_sold: int
    treasury: int
    state_digest: str
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    checkpoint_hash: str = ""
