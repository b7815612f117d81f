"""nftmarket: NFT marketplace registry with an auditable transaction ledger.

  - Mint-and-list with a fixed listing fee held in the registry treasury
  - Escrowed listings: the registry holds every listed, unsold item
  - Purchase, resale and cancellation with atomic, all-or-nothing commits
  - Append-only, hash-chained SQLite ledger; registries rebuild by replay
  - Typer/Rich CLI (``nftmarket``)
"""

__version__ = "0.1.0"
__description__ = "NFT marketplace registry with a hash-chained transaction ledger"

from nftmarket.marketplace.registry import MarketplaceRegistry
from nftmarket.cli.app import app as cli

__all__ = ["MarketplaceRegistry", "cli", "__version__"]
