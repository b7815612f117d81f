"""Marketplace item registry — minting, escrowed listings, sales and resale.

The registry is the custodian of every listed, unsold item: while an item
is on the market its ``owner`` is the registry's own address.  Listing fees
accumulate in the treasury; sale payments are credited to the seller.

Atomicity
---------
Each mutating call runs under a single lock.  All preconditions are checked
against the current ``RegistryState`` snapshot, a complete new snapshot is
built off to the side, the transaction is appended to the Tx Ledger (when
one is bound), and only then is the snapshot reference swapped.  A failure
at any step leaves the previous snapshot in place, and readers never see a
half-applied transaction.

Persistence
-----------
A registry bound to a ``TxLedger`` records one entry per committed call.
``MarketplaceRegistry.load`` verifies the hash chain and replays those
entries to rebuild the registry.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Callable

from pydantic import ValidationError

from nftmarket.config import config
from nftmarket.core.errors import (
    IncorrectListingFeeError,
    IncorrectPaymentAmountError,
    InvalidArgumentsError,
    InvalidCallerError,
    InvalidPriceError,
    ItemNotForSaleError,
    ItemNotFoundError,
    MarketError,
    NotListerError,
    NotOwnerError,
    NotRegistryOwnerError,
)
from nftmarket.core.hasher import canonical_json_bytes, derive_address, sha256_hex
from nftmarket.core.tx_ledger import LedgerIntegrityError, TxLedger
from nftmarket.models.events import (
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
    Operation,
    TxEntry,
    TxReceipt,
    TxRequest,
    TxStatus,
)

logger = logging.getLogger(__name__)


class MarketplaceRegistry:
    """Authoritative registry of marketplace items.

    Parameters
    ----------
    address:
        The registry's custodian address.  Use ``deploy`` to derive a fresh one.
    owner:
        The deployer; the only caller allowed to change the listing price.
    listing_price:
        Fee, in base units, required to create or resell a listing.
        Defaults to ``config.listing_price``.
    ledger:
        Optional ``TxLedger`` that receives one entry per committed call.

    Examples
    --------
    >>> market = MarketplaceRegistry.deploy("0xalice", listing_price=10)
    >>> receipt = market.create_token("0xalice", "ipfs://token/1", 500, paid=10)
    >>> receipt.token_id
    1
    >>> market.owner_of(1) == market.address
    True
    """

    def __init__(
        self,
        address: str,
        owner: str,
        listing_price: int | None = None,
        *,
        ledger: TxLedger | None = None,
    ) -> None:
        if listing_price is None:
            listing_price = config.listing_price
        if listing_price <= 0:
            raise InvalidPriceError(
                f"Listing price must be greater than 0, got {listing_price}."
            )
        self._address = address
        self._owner = owner
        self._ledger = ledger
        self._lock = threading.RLock()
        self._state = RegistryState(listing_price=listing_price)
        self._replaying = False

    # -- Deployment & persistence ------------------------------------------

    @classmethod
    def deploy(
        cls,
        owner: str,
        listing_price: int | None = None,
        *,
        ledger: TxLedger | None = None,
    ) -> MarketplaceRegistry:
        """Create a registry at a freshly derived address.

        When a ledger is given, the deployment is recorded as the first entry
        of the registry's chain so that ``load`` can rebuild it later.
        """
        if not owner:
            raise InvalidCallerError("Registry owner must be a non-empty identity.")
        address = derive_address("nftmarket", owner, uuid.uuid4().hex)
        registry = cls(address, owner, listing_price, ledger=ledger)
        if ledger is not None:
            ledger.append(
                TxEntry(
                    registry_id=address,
                    operation=Operation.DEPLOY,
                    caller=owner,
                    args={"listing_price": registry.get_listing_price()},
                )
            )
        logger.info(
            "Deployed marketplace registry %s (owner %s, listing price %d).",
            address,
            owner,
            registry.get_listing_price(),
        )
        return registry

    @classmethod
    def load(
        cls,
        ledger: TxLedger,
        address: str | None = None,
        *,
        entry_count: int | None = None,
    ) -> MarketplaceRegistry:
        """Rebuild a registry by replaying its ledger entries.

        Parameters
        ----------
        ledger:
            The ledger the registry was deployed into.
        address:
            Registry address; defaults to the most recently deployed one.
        entry_count:
            Replay only the first *entry_count* entries (deploy included),
            rebuilding the registry as it stood at that point.

        Raises
        ------
        KeyError
            If the ledger holds no such registry.
        LedgerIntegrityError
            If the chain is broken, holds fewer than *entry_count* entries, or
            a replayed call diverges from its recorded outcome.
        """
        if address is None:
            deployed = ledger.get_all_registry_ids()
            if not deployed:
                raise KeyError(f"No registry deployed in ledger {ledger.db_path}.")
            address = deployed[0]

        ledger.verify_chain(address)
        entries = ledger.get_entries(address)
        if not entries:
            raise KeyError(f"No registry at {address} in ledger {ledger.db_path}.")
        if entry_count is not None:
            if len(entries) < entry_count:
                raise LedgerIntegrityError(
                    f"Registry {address} has {len(entries)} ledger entries, "
                    f"expected at least {entry_count}."
                )
            entries = entries[:entry_count]

        genesis = entries[0]
        if genesis.operation != Operation.DEPLOY:
            raise LedgerIntegrityError(
                f"First entry for {address} is {genesis.operation.value}, not deploy."
            )

        registry = cls(
            address,
            genesis.caller,
            genesis.args["listing_price"],
            ledger=ledger,
        )
        registry._replaying = True
        try:
            for entry in entries[1:]:
                try:
                    receipt = registry._dispatch(
                        entry.operation, entry.caller, entry.value, entry.args
                    )
                except MarketError as exc:
                    raise LedgerIntegrityError(
                        f"Replay of entry {entry.entry_id} failed: {exc.reason}"
                    ) from exc
                if receipt.token_id != entry.token_id:
                    raise LedgerIntegrityError(
                        f"Replay of entry {entry.entry_id} produced token "
                        f"{receipt.token_id}, ledger recorded {entry.token_id}."
                    )
        finally:
            registry._replaying = False

        logger.info(
            "Loaded registry %s from %d ledger entries.", address, len(entries)
        )
        return registry

    # -- Checkpoints --------------------------------------------------------

    def export_checkpoint(self) -> Checkpoint:
        """Commit to the current ledger head and registry state.

        The returned checkpoint is meant to be stored outside the ledger
        database; ``verify_checkpoint`` later proves the ledger still
        replays to exactly this state.

        Raises
        ------
        LedgerIntegrityError
            If no ledger is bound to the registry.
        """
        if self._ledger is None:
            raise LedgerIntegrityError(
                f"Registry {self._address} has no ledger to checkpoint."
            )
        with self._lock:
            entries = self._ledger.get_entries(self._address)
            checkpoint = Checkpoint(
                registry_id=self._address,
                entry_count=len(entries),
                head_hash=entries[-1].entry_hash,
                **_state_commitment(self._state),
            )
        sealed = checkpoint.model_copy(
            update={"checkpoint_hash": _checkpoint_hash(checkpoint)}
        )
        logger.info(
            "Checkpoint of %s at entry %d (items sold %d, treasury %d).",
            self._address,
            sealed.entry_count,
            sealed.items_sold,
            sealed.treasury,
        )
        return sealed

    @classmethod
    def verify_checkpoint(cls, ledger: TxLedger, checkpoint: Checkpoint) -> bool:
        """Check that *ledger* still replays to the state *checkpoint* records.

        Entries appended after the checkpoint are allowed; the anchored
        prefix must be unchanged and must rebuild the same items, treasury,
        proceeds and counters.

        Raises
        ------
        LedgerIntegrityError
            If the checkpoint was edited, the chain is broken or truncated,
            or the replayed state differs.
        """
        if checkpoint.checkpoint_hash != _checkpoint_hash(checkpoint):
            raise LedgerIntegrityError(
                f"Checkpoint for {checkpoint.registry_id} does not match its seal."
            )
        try:
            registry = cls.load(
                ledger, checkpoint.registry_id, entry_count=checkpoint.entry_count
            )
        except KeyError as exc:
            raise LedgerIntegrityError(
                f"Checkpointed registry {checkpoint.registry_id} is not in the ledger."
            ) from exc
        head = ledger.get_entries(checkpoint.registry_id)[checkpoint.entry_count - 1]
        if head.entry_hash != checkpoint.head_hash:
            raise LedgerIntegrityError(
                f"Entry {checkpoint.entry_count} of {checkpoint.registry_id} is "
                f"{head.entry_hash[:12]}, checkpoint recorded "
                f"{checkpoint.head_hash[:12]}."
            )

        replayed = _state_commitment(registry.snapshot())
        recorded = checkpoint.model_dump(include=set(replayed))
        diverged = sorted(k for k in replayed if replayed[k] != recorded[k])
        if diverged:
            raise LedgerIntegrityError(
                f"Replayed state of {checkpoint.registry_id} differs from the "
                f"checkpoint in: {', '.join(diverged)}."
            )
        return True

    # -- Identity -----------------------------------------------------------

    @property
    def address(self) -> str:
        """The custodian address that holds listed, unsold items."""
        return self._address

    @property
    def owner(self) -> str:
        return self._owner

    @property
    def ledger(self) -> TxLedger | None:
        return self._ledger

    def snapshot(self) -> RegistryState:
        """Return the current immutable state snapshot."""
        return self._state

    # -- Mutating calls -----------------------------------------------------

    def create_token(
        self, caller: str, uri: str, price: int, paid: int
    ) -> TxReceipt:
        """Mint a new item and list it for sale at *price*.

        The item is held by the registry until sold.  *paid* must equal the
        listing price exactly; it is kept in the treasury.

        Raises
        ------
        InvalidPriceError
            If *price* is not greater than zero.
        IncorrectListingFeeError
            If *paid* differs from the listing price.
        """
        with self._lock:
            self._require_caller(caller)
            state = self._state
            if price <= 0:
                raise InvalidPriceError(
                    f"Items must be listed with a price greater than 0, got {price}."
                )
            if paid != state.listing_price:
                raise IncorrectListingFeeError(
                    f"Attached value {paid} does not equal the listing price "
                    f"{state.listing_price}."
                )

            token_id = state.next_token_id
            item = MarketItem(
                token_id=token_id,
                owner=self._address,
                creator=caller,
                seller=caller,
                price=price,
                uri=uri,
            )
            event = MarketItemCreated(
                registry_id=self._address,
                token_id=token_id,
                seller=caller,
                owner=self._address,
                price=price,
            )
            new_state = state.model_copy(
                update={
                    "items": {**state.items, token_id: item},
                    "next_token_id": token_id + 1,
                    "treasury": state.treasury + paid,
                }
            )
            return self._commit(
                new_state,
                Operation.CREATE_TOKEN,
                caller,
                paid,
                {"uri": uri, "price": price},
                token_id,
                [event],
            )

    def create_market_sale(self, caller: str, token_id: int, paid: int) -> TxReceipt:
        """Buy a listed item; *paid* must equal its price exactly.

        Ownership moves to *caller* and the payment is credited to the
        item's seller in the same commit.
        """
        with self._lock:
            self._require_caller(caller)
            state = self._state
            item = self._require_item(state, token_id)
            self._require_transition(item, ItemState.SOLD)
            if paid != item.price:
                raise IncorrectPaymentAmountError(
                    f"Attached value {paid} does not equal the price of item "
                    f"{token_id} ({item.price})."
                )

            sold = item.model_copy(update={"owner": caller, "sold": True})
            event = MarketItemSold(
                registry_id=self._address,
                token_id=token_id,
                seller=item.seller,
                buyer=caller,
                price=item.price,
            )
            new_state = state.model_copy(
                update={
                    "items": {**state.items, token_id: sold},
                    "proceeds": {
                        **state.proceeds,
                        item.seller: state.proceeds.get(item.seller, 0) + paid,
                    },
                    "items_sold": state.items_sold + 1,
                }
            )
            return self._commit(
                new_state,
                Operation.CREATE_MARKET_SALE,
                caller,
                paid,
                {"token_id": token_id},
                token_id,
                [event],
            )

    def resell_token(
        self, caller: str, token_id: int, price: int, paid: int
    ) -> TxReceipt:
        """Put an owned item back on the market at a new *price*.

        Works for bought items and for items whose listing was cancelled.
        *paid* must equal the listing price.
        """
        with self._lock:
            self._require_caller(caller)
            state = self._state
            item = self._require_item(state, token_id)
            if item.owner != caller:
                raise NotOwnerError(
                    f"{caller} does not own item {token_id}."
                )
            if price <= 0:
                raise InvalidPriceError(
                    f"Items must be listed with a price greater than 0, got {price}."
                )
            if paid != state.listing_price:
                raise IncorrectListingFeeError(
                    f"Attached value {paid} does not equal the listing price "
                    f"{state.listing_price}."
                )

            relisted = item.model_copy(
                update={
                    "owner": self._address,
                    "seller": caller,
                    "price": price,
                    "sold": False,
                    "listed": True,
                }
            )
            event = MarketItemRelisted(
                registry_id=self._address,
                token_id=token_id,
                seller=caller,
                price=price,
            )
            new_state = state.model_copy(
                update={
                    "items": {**state.items, token_id: relisted},
                    "treasury": state.treasury + paid,
                }
            )
            return self._commit(
                new_state,
                Operation.RESELL_TOKEN,
                caller,
                paid,
                {"token_id": token_id, "price": price},
                token_id,
                [event],
            )

    def cancel_item_listing(
        self, caller: str, token_id: int, paid: int = 0
    ) -> TxReceipt:
        """Withdraw an unsold listing and return the item to its lister.

        The listing fee is not refunded, and the call accepts no value.
        """
        with self._lock:
            self._require_caller(caller)
            state = self._state
            item = self._require_item(state, token_id)
            self._require_transition(item, ItemState.CANCELLED)
            if item.seller != caller:
                raise NotListerError(
                    f"{caller} did not list item {token_id}."
                )
            self._require_no_value(Operation.CANCEL_ITEM_LISTING, paid)

            cancelled = item.model_copy(
                update={"owner": item.seller, "listed": False}
            )
            event = MarketItemCancelled(
                registry_id=self._address,
                token_id=token_id,
                seller=item.seller,
            )
            new_state = state.model_copy(
                update={"items": {**state.items, token_id: cancelled}}
            )
            return self._commit(
                new_state,
                Operation.CANCEL_ITEM_LISTING,
                caller,
                0,
                {"token_id": token_id},
                token_id,
                [event],
            )

    def update_listing_price(
        self, caller: str, listing_price: int, paid: int = 0
    ) -> TxReceipt:
        """Change the listing fee.  Only the registry owner may call this."""
        with self._lock:
            self._require_caller(caller)
            state = self._state
            if caller != self._owner:
                raise NotRegistryOwnerError(
                    "Only the registry owner can update the listing price."
                )
            if listing_price <= 0:
                raise InvalidPriceError(
                    f"Listing price must be greater than 0, got {listing_price}."
                )
            self._require_no_value(Operation.UPDATE_LISTING_PRICE, paid)

            event = ListingPriceUpdated(
                registry_id=self._address,
                old_price=state.listing_price,
                new_price=listing_price,
            )
            new_state = state.model_copy(update={"listing_price": listing_price})
            return self._commit(
                new_state,
                Operation.UPDATE_LISTING_PRICE,
                caller,
                0,
                {"listing_price": listing_price},
                None,
                [event],
            )

    # -- Submit boundary ----------------------------------------------------

    def execute(self, request: TxRequest) -> TxReceipt:
        """Run a mutating call and report failure as a reverted receipt.

        Direct method calls raise ``MarketError``; this boundary instead
        returns ``status=REVERTED`` with the failure's reason name, the way a
        transaction submitter would observe it.
        """
        try:
            return self._dispatch(
                request.operation, request.caller, request.value, request.args
            )
        except MarketError as exc:
            logger.warning(
                "Reverted %s from %s: %s (%s)",
                request.operation.value,
                request.caller,
                exc.reason,
                exc,
            )
            return TxReceipt(
                registry_id=self._address,
                operation=request.operation,
                caller=request.caller,
                status=TxStatus.REVERTED,
                token_id=_token_id_of(request.args),
                revert_reason=exc.reason,
                message=str(exc),
            )

    def _dispatch(
        self, operation: Operation, caller: str, value: int, args: dict[str, Any]
    ) -> TxReceipt:
        args_model = CALL_ARGS.get(operation)
        if args_model is None:
            raise ValueError(f"Operation {operation.value} cannot be dispatched.")
        try:
            parsed = args_model.model_validate(args)
        except ValidationError as exc:
            fields = ", ".join(
                ".".join(str(part) for part in err["loc"]) or "args"
                for err in exc.errors()
            )
            raise InvalidArgumentsError(
                f"Bad arguments for {operation.value}: {fields}."
            ) from exc

        if operation == Operation.CREATE_TOKEN:
            return self.create_token(caller, parsed.uri, parsed.price, value)
        if operation == Operation.CREATE_MARKET_SALE:
            return self.create_market_sale(caller, parsed.token_id, value)
        if operation == Operation.RESELL_TOKEN:
            return self.resell_token(caller, parsed.token_id, parsed.price, value)
        if operation == Operation.CANCEL_ITEM_LISTING:
            return self.cancel_item_listing(caller, parsed.token_id, value)
        return self.update_listing_price(caller, parsed.listing_price, value)

    # -- Read calls ---------------------------------------------------------

    def get_listing_price(self) -> int:
        """Return the fee, in base units, required to list an item."""
        return self._state.listing_price

    def get_item(self, token_id: int) -> MarketItem:
        return self._require_item(self._state, token_id)

    def owner_of(self, token_id: int) -> str:
        return self._require_item(self._state, token_id).owner

    def token_uri(self, token_id: int) -> str:
        return self._require_item(self._state, token_id).uri

    def balance_of(self, account: str) -> int:
        """Number of items currently held by *account*."""
        return sum(1 for item in self._state.items.values() if item.owner == account)

    def total_supply(self) -> int:
        return len(self._state.items)

    def fetch_market_items(self) -> list[MarketItem]:
        """Return every listed, unsold item in ascending id order."""
        return self._select(lambda item: item.listed and not item.sold)

    def fetch_nfts(self, caller: str) -> list[MarketItem]:
        """Return the items *caller* currently owns."""
        return self._select(lambda item: item.owner == caller)

    def fetch_items_listed(self, caller: str) -> list[MarketItem]:
        """Return the active listing instances created by *caller*.

        A sold listing stays here until the buyer relists the item.
        """
        return self._select(lambda item: item.seller == caller and item.listed)

    def treasury_balance(self) -> int:
        return self._state.treasury

    def proceeds_of(self, account: str) -> int:
        return self._state.proceeds.get(account, 0)

    def get_stats(self) -> dict[str, Any]:
        """Return summary statistics about the registry.

        Returns
        -------
        dict[str, Any]
            Keys: ``total``, ``items_sold``, ``treasury``, ``listing_price``
            and a ``by_state`` dict mapping each ``ItemState`` value to its
            count.
        """
        state = self._state
        by_state: dict[str, int] = {s.value: 0 for s in ItemState}
        for item in state.items.values():
            by_state[item.state.value] += 1
        return {
            "total": len(state.items),
            "items_sold": state.items_sold,
            "treasury": state.treasury,
            "listing_price": state.listing_price,
            "by_state": by_state,
        }

    # -- Internal helpers ---------------------------------------------------

    def _select(self, predicate: Callable[[MarketItem], bool]) -> list[MarketItem]:
        state = self._state
        return [
            state.items[token_id]
            for token_id in sorted(state.items)
            if predicate(state.items[token_id])
        ]

    def _require_caller(self, caller: str) -> None:
        if not caller:
            raise InvalidCallerError("Caller identity must not be empty.")
        if caller == self._address:
            raise InvalidCallerError("The registry cannot call itself.")

    @staticmethod
    def _require_item(state: RegistryState, token_id: int) -> MarketItem:
        item = state.items.get(token_id)
        if item is None:
            raise ItemNotFoundError(f"Item {token_id} does not exist.")
        return item

    @staticmethod
    def _require_no_value(operation: Operation, paid: int) -> None:
        if paid != 0:
            raise IncorrectPaymentAmountError(
                f"{operation.value} does not accept an attached value."
            )

    @staticmethod
    def _require_transition(item: MarketItem, target: ItemState) -> None:
        current = item.state
        if target not in VALID_TRANSITIONS.get(current, set()):
            raise ItemNotForSaleError(
                f"Item {item.token_id} is {current.value}; cannot move to "
                f"{target.value}."
            )

    def _commit(
        self,
        new_state: RegistryState,
        operation: Operation,
        caller: str,
        value: int,
        args: dict[str, Any],
        token_id: int | None,
        events: list[MarketEvent],
    ) -> TxReceipt:
        """Record the transaction, then publish *new_state*.  Caller holds the lock."""
        entry_hash = ""
        if self._ledger is not None and not self._replaying:
            sealed = self._ledger.append(
                TxEntry(
                    registry_id=self._address,
                    operation=operation,
                    caller=caller,
                    value=value,
                    args=args,
                    token_id=token_id,
                    events=[event.model_dump(mode="json") for event in events],
                )
            )
            entry_hash = sealed.entry_hash

        self._state = new_state

        log = logger.debug if self._replaying else logger.info
        log(
            "%s by %s committed on %s (token %s).",
            operation.value,
            caller,
            self._address,
            token_id,
        )
        return TxReceipt(
            registry_id=self._address,
            operation=operation,
            caller=caller,
            token_id=token_id,
            events=events,
            entry_hash=entry_hash,
        )


def _token_id_of(args: dict[str, Any]) -> int | None:
    token_id = args.get("token_id")
    if isinstance(token_id, int) and not isinstance(token_id, bool):
        return token_id
    return None


def _state_commitment(state: RegistryState) -> dict[str, Any]:
    return {
        "listing_price": state.listing_price,
        "next_token_id": state.next_token_id,
        "items_sold": state.items_sold,
        "treasury": state.treasury,
        "state_digest": sha256_hex(
            canonical_json_bytes(state.model_dump(mode="json"))
        ),
    }


def _checkpoint_hash(checkpoint: Checkpoint) -> str:
    payload = checkpoint.model_dump(mode="json", exclude={"checkpoint_hash"})
    return sha256_hex(canonical_json_bytes(payload))
