"""Runtime configuration — env-driven.

Centralized config using pydantic-settings for environment variable
support. Reads from .env file and NFTMARKET_* environment variables.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class MarketConfig(BaseSettings):
    """Marketplace configuration with environment variable overrides.

    All settings can be overridden via NFTMARKET_* environment variables
    or a .env file in the project root.

    Examples
    --------
    Override via environment::

        export NFTMARKET_LOG_LEVEL=DEBUG
        export NFTMARKET_LEDGER_PATH=/data/market.db
        export NFTMARKET_LISTING_PRICE=10000000000000000

    Or via .env file::

        NFTMARKET_ENVIRONMENT=production
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="NFTMARKET_",
        env_file_encoding="utf-8",
    )

    # Runtime environment
    environment: str = "development"
    log_level: str = "INFO"
    debug: bool = False

    # Storage
    ledger_path: Path = Path(".nftmarket/ledger.db")

    # Market economics, in integer base units (wei)
    listing_price: int = 25_000_000_000_000_000  # 0.025 ether
    default_unit: str = "ether"

    @property
    def is_production(self) -> bool:
        """Whether running in production mode."""
        return self.environment == "production"


# Module-level singleton; import as `from nftmarket.config import config`
config = MarketConfig()
