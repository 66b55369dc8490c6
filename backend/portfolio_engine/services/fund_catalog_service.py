"""
Fund catalog service.

Listings are read-mostly and cached in Redis. Single-fund lookups feed
transaction pricing and always read MongoDB so a stale NAV is never used.
"""

import structlog

from ..core.config import Settings
from ..core.exceptions import NotFoundError, ValidationError
from ..database.redis import RedisCache
from ..database.repositories.fund_repository import FundRepository
from ..models.allocation import FUND_CLASSES, FundClass
from ..models.fund import Fund

logger = structlog.get_logger()


class FundCacheKeys:
    """
    Cache key generators for fund listings.

    Key Convention:
        funds:list:{fund_type | all}
    """

    PREFIX = "funds"

    @staticmethod
    def listing(fund_type: str | None = None) -> str:
        """Key for an active-fund listing, optionally filtered by class."""
        return f"{FundCacheKeys.PREFIX}:list:{fund_type or 'all'}"


class FundCatalogService:
    """Read access to the fund catalog."""

    def __init__(
        self,
        fund_repo: FundRepository,
        redis_cache: RedisCache,
        settings: Settings,
    ):
        """
        Initialize fund catalog service.

        Args:
            fund_repo: Repository for fund data access
            redis_cache: Redis cache for listings
            settings: Engine settings (cache TTL)
        """
        self.fund_repo = fund_repo
        self.redis_cache = redis_cache
        self.settings = settings

    async def get_fund_by_id(self, fund_id: str) -> Fund:
        """
        Get a fund for pricing.

        Raises:
            NotFoundError: If the fund does not exist
        """
        fund = await self.fund_repo.get_by_id(fund_id)
        if not fund:
            raise NotFoundError(f"Fund {fund_id} not found", fund_id=fund_id)
        return fund

    async def list_funds(self, fund_type: FundClass | None = None) -> list[Fund]:
        """
        List active funds, optionally of one class.

        Args:
            fund_type: Optional class filter

        Returns:
            Funds ordered by class then name

        Raises:
            ValidationError: If fund_type is not a known class
        """
        if fund_type is not None and fund_type not in FUND_CLASSES:
            raise ValidationError(
                f"Unknown fund type: {fund_type}",
                fund_type=fund_type,
                allowed=list(FUND_CLASSES),
            )

        cache_key = FundCacheKeys.listing(fund_type)
        cached = await self.redis_cache.get(cache_key)
        if cached is not None:
            return [Fund(**fund_dict) for fund_dict in cached]

        funds = await self.fund_repo.list_funds(fund_type=fund_type)

        await self.redis_cache.set(
            cache_key,
            [fund.model_dump(mode="json") for fund in funds],
            ttl_seconds=self.settings.fund_cache_ttl_seconds,
        )

        logger.debug(
            "Fund listing cached",
            cache_key=cache_key,
            count=len(funds),
            ttl=self.settings.fund_cache_ttl_seconds,
        )

        return funds

    async def get_funds_by_type(self, fund_type: FundClass) -> list[Fund]:
        """Active funds of one class."""
        return await self.list_funds(fund_type=fund_type)

    async def invalidate_listings(self) -> None:
        """Drop cached listings (after catalog or NAV updates)."""
        for fund_type in (None, *FUND_CLASSES):
            await self.redis_cache.delete(FundCacheKeys.listing(fund_type))

        logger.info("Fund listing cache invalidated")
