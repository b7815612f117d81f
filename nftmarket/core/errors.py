"""Marketplace failure reasons.

Every precondition violation raised by the registry is a ``MarketError``
subclass.  The ``reason`` class attribute is the stable name surfaced in
reverted receipts and CLI output; the message carries the detail.
"""

from __future__ import annotations


class MarketError(RuntimeError):
    """Base class for all registry precondition failures."""

    reason: str = "MarketError"


class ItemNotFoundError(MarketError):
    """Raised when a token id does not exist in the registry."""

    reason = "ItemNotFound"


class InvalidPriceError(MarketError):
    """Raised when an item (or the listing fee) is priced at or below zero."""

    reason = "InvalidPrice"


class IncorrectListingFeeError(MarketError):
    """Raised when the attached value differs from the listing price."""

    reason = "IncorrectListingFee"


class IncorrectPaymentAmountError(MarketError):
    """Raised when the attached value differs from the item's price."""

    reason = "IncorrectPaymentAmount"


class NotOwnerError(MarketError):
    """Raised when the caller does not own the item."""

    reason = "NotOwner"


class NotListerError(NotOwnerError):
    """Raised when the caller is not the seller of the active listing."""

    reason = "NotLister"


class ItemNotForSaleError(MarketError):
    """Raised when an item is not in the listed, unsold state."""

    reason = "ItemNotForSale"


class NotRegistryOwnerError(MarketError):
    """Raised when a non-owner attempts an administrative call."""

    reason = "NotRegistryOwner"


class InvalidCallerError(MarketError):
    """Raised for an empty caller identity or the custodian calling itself."""

    reason = "InvalidCaller"


class InvalidArgumentsError(MarketError):
    """Raised when a submitted request's arguments are missing or mistyped."""

    reason = "InvalidArguments"
