"""NFT marketplace registry — escrowed listings, sales and resale."""

from nftmarket.marketplace.registry import MarketplaceRegistry

__all__ = ["MarketplaceRegistry"]
