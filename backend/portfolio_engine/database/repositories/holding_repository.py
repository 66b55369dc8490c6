"""
Holding repository for portfolio management.

Holdings are written only through create() (first buy) and compare_and_swap()
(every later mutation), so a write based on a stale read never lands.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ...core.exceptions import ConcurrencyConflictError
from ...core.utils.date_utils import utcnow
from ...models.holding import Holding
from ..errors import translate_driver_errors

logger = structlog.get_logger()


class HoldingRepository:
    """Repository for holding data access operations."""

    def __init__(self, collection: AsyncIOMotorCollection):
        """
        Initialize holding repository.

        Args:
            collection: MongoDB collection for holdings
        """
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """
        Create indexes for optimal query performance.

        Indexes:
        1. holding_id: Primary lookup (unique)
        2. portfolio_id + fund_id: One holding per fund per portfolio (unique)
        3. user_id + updated_at: For listing user holdings sorted by update time
        """
        await self.collection.create_index(
            "holding_id", name="idx_holding_id", unique=True
        )

        await self.collection.create_index(
            [("portfolio_id", 1), ("fund_id", 1)],
            name="idx_portfolio_fund",
            unique=True,
        )

        await self.collection.create_index(
            [("user_id", 1), ("updated_at", -1)],
            name="idx_user_holdings",
        )

        logger.info("Holding indexes ensured")

    @staticmethod
    def _to_model(holding_dict: dict[str, Any]) -> Holding:
        # Remove MongoDB _id field
        holding_dict.pop("_id", None)
        return Holding(**holding_dict)

    @translate_driver_errors
    async def create(self, holding: Holding) -> Holding:
        """
        Insert a new holding.

        Args:
            holding: Holding to insert (version 1)

        Returns:
            Created holding

        Raises:
            ConcurrencyConflictError: If a holding for the same portfolio+fund
                was inserted first by a concurrent buy
        """
        try:
            await self.collection.insert_one(holding.model_dump())
        except DuplicateKeyError as e:
            logger.warning(
                "Holding already created by concurrent writer",
                portfolio_id=holding.portfolio_id,
                fund_id=holding.fund_id,
            )
            raise ConcurrencyConflictError(
                "Holding was created concurrently",
                portfolio_id=holding.portfolio_id,
                fund_id=holding.fund_id,
            ) from e

        logger.info(
            "Holding created",
            holding_id=holding.holding_id,
            portfolio_id=holding.portfolio_id,
            fund_id=holding.fund_id,
            units_held=holding.units_held,
        )

        return holding

    @translate_driver_errors
    async def get(self, holding_id: str) -> Holding | None:
        """
        Get holding by ID.

        Args:
            holding_id: Holding identifier

        Returns:
            Holding if found, None otherwise
        """
        holding_dict = await self.collection.find_one({"holding_id": holding_id})

        if not holding_dict:
            return None

        return self._to_model(holding_dict)

    @translate_driver_errors
    async def get_by_fund(self, portfolio_id: str, fund_id: str) -> Holding | None:
        """
        Get holding by portfolio and fund.

        Args:
            portfolio_id: Portfolio identifier
            fund_id: Fund identifier

        Returns:
            Holding if found, None otherwise
        """
        holding_dict = await self.collection.find_one(
            {"portfolio_id": portfolio_id, "fund_id": fund_id}
        )

        if not holding_dict:
            return None

        return self._to_model(holding_dict)

    @translate_driver_errors
    async def list_by_portfolio(self, portfolio_id: str) -> list[Holding]:
        """
        List all holdings in a portfolio.

        Args:
            portfolio_id: Portfolio identifier

        Returns:
            Holdings sorted by updated_at descending
        """
        cursor = self.collection.find({"portfolio_id": portfolio_id}).sort(
            "updated_at", -1
        )

        holdings = []
        async for holding_dict in cursor:
            holdings.append(self._to_model(holding_dict))

        return holdings

    @translate_driver_errors
    async def list_by_user(self, user_id: str) -> list[Holding]:
        """
        List all holdings for a user across portfolios.

        Args:
            user_id: User identifier

        Returns:
            Holdings sorted by updated_at descending
        """
        cursor = self.collection.find({"user_id": user_id}).sort("updated_at", -1)

        holdings = []
        async for holding_dict in cursor:
            holdings.append(self._to_model(holding_dict))

        return holdings

    @translate_driver_errors
    async def compare_and_swap(
        self,
        holding_id: str,
        expected_version: int,
        updates: dict[str, Any],
    ) -> Holding | None:
        """
        Apply updates only if the stored version still matches.

        Uses a single conditional write; the version is incremented atomically
        with the update.

        Args:
            holding_id: Holding identifier
            expected_version: Version the caller read
            updates: Fields to set

        Returns:
            Updated holding, or None if the version moved (or holding is gone)
        """
        result = await self.collection.find_one_and_update(
            {"holding_id": holding_id, "version": expected_version},
            {
                "$set": {**updates, "updated_at": utcnow()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            logger.warning(
                "Holding version mismatch",
                holding_id=holding_id,
                expected_version=expected_version,
            )
            return None

        holding = self._to_model(result)

        logger.info(
            "Holding updated",
            holding_id=holding_id,
            version=holding.version,
            fields=sorted(updates.keys()),
        )

        return holding
