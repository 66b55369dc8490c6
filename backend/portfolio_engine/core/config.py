"""
Engine configuration using Pydantic Settings.

Supports hierarchical environment configuration:
- .env.base: Common non-secret defaults (committed to git)
- .env.{ENVIRONMENT}: Environment-specific overrides (gitignored)
- Environment variables: Highest priority
"""

import os
from functools import lru_cache
from typing import Literal
from urllib.parse import urlsplit

from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

# Get environment from env var, default to development
ENV = os.getenv("ENVIRONMENT", "development")


class Settings(BaseSettings):
    """Engine settings with hierarchical env file support."""

    model_config = SettingsConfigDict(
        # Load base first, then environment-specific override
        env_file=[
            ".env.base",  # Common defaults (committed)
            f".env.{ENV}",  # Environment overrides (gitignored)
        ],
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "test", "production"] = "development"

    # Database connections
    mongodb_url: str = "mongodb://localhost:27017/portfolio_engine"
    redis_url: str = "redis://localhost:6379"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False  # JSON renderer for production log shipping

    # Transaction fee policy (fraction of the transaction amount)
    buy_fee_rate: float = 0.005  # 0.5%
    sell_fee_rate: float = 0.005  # 0.5%, kept separate so it can diverge

    # Fund catalog
    default_minimum_investment: float = 500.0  # Used when a fund has no minimum
    fund_cache_ttl_seconds: int = 300  # Fund listings (5 min)

    # Allocation policy
    allocation_tolerance: float = 0.1  # Percentage points around 100

    # Recommendations
    recommendation_ttl_days: int = 90

    # Holding lock (per portfolio + fund)
    lock_ttl_seconds: int = 30  # Auto-expire to prevent deadlocks
    lock_max_attempts: int = 50
    lock_retry_delay_seconds: float = 0.05

    # Optimistic concurrency on portfolio aggregates
    aggregate_max_retries: int = 5

    # Transactions stuck in pending/processing longer than this are failed by reconciliation
    stuck_transaction_age_minutes: int = 10

    @property
    def database_name(self) -> str:
        """
        Database name from the MongoDB URL path, query string stripped.

        Raises:
            ConfigurationError: If the URL names no usable database
        """
        path = urlsplit(self.mongodb_url).path.lstrip("/")
        if not path or any(char in path for char in "/&="):
            raise ConfigurationError(
                "MONGODB_URL must name a database: mongodb://host/dbname?params",
                parsed_db_name=path,
            )
        return path

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def fee_rate_for(self, transaction_type: str) -> float:
        """Fee rate applied to a transaction type (dividends are free)."""
        if transaction_type == "buy":
            return self.buy_fee_rate
        if transaction_type == "sell":
            return self.sell_fee_rate
        return 0.0


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
