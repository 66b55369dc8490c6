"""
Portfolio repository.

Derived fields (current allocation and totals) are written only through
compare_and_swap_aggregates(); the target allocation has its own setter.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument

from ...core.utils.date_utils import utcnow
from ...models.allocation import Allocation
from ...models.portfolio import Portfolio
from ..errors import translate_driver_errors

logger = structlog.get_logger()


class PortfolioRepository:
    """Repository for portfolio data access operations."""

    def __init__(self, collection: AsyncIOMotorCollection):
        """
        Initialize portfolio repository.

        Args:
            collection: MongoDB collection for portfolios
        """
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """
        Create indexes for optimal query performance.
        Called during engine startup.
        """
        await self.collection.create_index(
            "portfolio_id", name="idx_portfolio_id", unique=True
        )
        await self.collection.create_index(
            [("user_id", 1), ("is_active", 1), ("created_at", 1)],
            name="idx_user_portfolios",
        )

        logger.info("Portfolio indexes ensured")

    @staticmethod
    def _to_model(portfolio_dict: dict[str, Any]) -> Portfolio:
        portfolio_dict.pop("_id", None)
        return Portfolio(**portfolio_dict)

    @translate_driver_errors
    async def create(self, portfolio: Portfolio) -> Portfolio:
        """
        Insert a new portfolio.

        Args:
            portfolio: Portfolio to insert

        Returns:
            Created portfolio
        """
        await self.collection.insert_one(portfolio.model_dump())

        logger.info(
            "Portfolio created",
            portfolio_id=portfolio.portfolio_id,
            user_id=portfolio.user_id,
            target_allocation=portfolio.target_allocation.model_dump(),
        )

        return portfolio

    @translate_driver_errors
    async def get(self, portfolio_id: str) -> Portfolio | None:
        """
        Get portfolio by ID (active or not).

        Args:
            portfolio_id: Portfolio identifier

        Returns:
            Portfolio if found, None otherwise
        """
        portfolio_dict = await self.collection.find_one({"portfolio_id": portfolio_id})

        if not portfolio_dict:
            return None

        return self._to_model(portfolio_dict)

    @translate_driver_errors
    async def list_by_user(
        self, user_id: str, active_only: bool = True
    ) -> list[Portfolio]:
        """
        List a user's portfolios, oldest first.

        Args:
            user_id: User identifier
            active_only: Skip soft-deleted portfolios

        Returns:
            List of portfolios
        """
        query: dict[str, Any] = {"user_id": user_id}
        if active_only:
            query["is_active"] = True

        cursor = self.collection.find(query).sort("created_at", 1)

        portfolios = []
        async for portfolio_dict in cursor:
            portfolios.append(self._to_model(portfolio_dict))

        return portfolios

    @translate_driver_errors
    async def update_target_allocation(
        self, portfolio_id: str, allocation: Allocation
    ) -> Portfolio | None:
        """
        Replace the target allocation of an active portfolio.

        Args:
            portfolio_id: Portfolio identifier
            allocation: Validated allocation

        Returns:
            Updated portfolio, or None if not found or inactive
        """
        result = await self.collection.find_one_and_update(
            {"portfolio_id": portfolio_id, "is_active": True},
            {
                "$set": {
                    "target_allocation": allocation.model_dump(),
                    "updated_at": utcnow(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            return None

        logger.info(
            "Portfolio target allocation updated",
            portfolio_id=portfolio_id,
            target_allocation=allocation.model_dump(),
        )

        return self._to_model(result)

    @translate_driver_errors
    async def compare_and_swap_aggregates(
        self,
        portfolio_id: str,
        expected_version: int,
        updates: dict[str, Any],
    ) -> Portfolio | None:
        """
        Write derived fields only if no other recompute landed since our read.

        Args:
            portfolio_id: Portfolio identifier
            expected_version: Version the caller read
            updates: Derived fields to set

        Returns:
            Updated portfolio, or None if the version moved
        """
        result = await self.collection.find_one_and_update(
            {"portfolio_id": portfolio_id, "version": expected_version},
            {
                "$set": {**updates, "updated_at": utcnow()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            logger.debug(
                "Portfolio version mismatch",
                portfolio_id=portfolio_id,
                expected_version=expected_version,
            )
            return None

        return self._to_model(result)

    @translate_driver_errors
    async def deactivate(self, portfolio_id: str) -> Portfolio | None:
        """
        Soft-delete a portfolio.

        Args:
            portfolio_id: Portfolio identifier

        Returns:
            Updated portfolio, or None if not found
        """
        result = await self.collection.find_one_and_update(
            {"portfolio_id": portfolio_id},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            return None

        logger.info("Portfolio deactivated", portfolio_id=portfolio_id)

        return self._to_model(result)
