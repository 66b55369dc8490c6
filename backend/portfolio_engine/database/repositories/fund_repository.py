"""
Fund catalog repository.
Read-only from the engine's side; NAVs are written by an external feed.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection

from ...models.allocation import FundClass
from ...models.fund import Fund
from ..errors import translate_driver_errors

logger = structlog.get_logger()


class FundRepository:
    """Repository for fund catalog lookups."""

    def __init__(self, collection: AsyncIOMotorCollection):
        """
        Initialize fund repository.

        Args:
            collection: MongoDB collection for funds
        """
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """Create indexes for fund lookups and class listings."""
        await self.collection.create_index("fund_id", name="idx_fund_id", unique=True)
        await self.collection.create_index(
            [("fund_type", 1), ("is_active", 1), ("name", 1)],
            name="idx_fund_type_active",
        )

        logger.info("Fund indexes ensured")

    @staticmethod
    def _to_model(fund_dict: dict[str, Any]) -> Fund:
        fund_dict.pop("_id", None)
        return Fund(**fund_dict)

    @translate_driver_errors
    async def get_by_id(self, fund_id: str) -> Fund | None:
        """
        Get fund by ID (active or not).

        Args:
            fund_id: Fund identifier

        Returns:
            Fund if found, None otherwise
        """
        fund_dict = await self.collection.find_one({"fund_id": fund_id})

        if not fund_dict:
            return None

        return self._to_model(fund_dict)

    @translate_driver_errors
    async def list_funds(
        self, fund_type: FundClass | None = None, active_only: bool = True
    ) -> list[Fund]:
        """
        List funds ordered by class then name.

        Args:
            fund_type: Optional class filter
            active_only: Skip funds closed for transactions

        Returns:
            List of funds
        """
        query: dict[str, Any] = {}
        if fund_type:
            query["fund_type"] = fund_type
        if active_only:
            query["is_active"] = True

        cursor = self.collection.find(query).sort([("fund_type", 1), ("name", 1)])

        funds = []
        async for fund_dict in cursor:
            funds.append(self._to_model(fund_dict))

        return funds
