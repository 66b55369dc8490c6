"""
Recommendation repository.

A partial unique index on user_id (active rows only) guarantees at most one
active recommendation per user even under concurrent generation.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo.errors import DuplicateKeyError

from ...core.exceptions import ConcurrencyConflictError
from ...core.utils.date_utils import utcnow
from ...models.recommendation import Recommendation
from ..errors import translate_driver_errors

logger = structlog.get_logger()


class RecommendationRepository:
    """Repository for recommendation data access operations."""

    def __init__(self, collection: AsyncIOMotorCollection):
        """
        Initialize recommendation repository.

        Args:
            collection: MongoDB collection for recommendations
        """
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """
        Create indexes.

        Indexes:
        1. recommendation_id: Primary lookup (unique)
        2. user_id where is_active: One active recommendation per user (partial unique)
        3. user_id + created_at: History listing
        """
        await self.collection.create_index(
            "recommendation_id", name="idx_recommendation_id", unique=True
        )
        await self.collection.create_index(
            "user_id",
            name="idx_user_active_recommendation",
            unique=True,
            partialFilterExpression={"is_active": True},
        )
        await self.collection.create_index(
            [("user_id", 1), ("created_at", -1)], name="idx_user_recommendations"
        )

        logger.info("Recommendation indexes ensured")

    @staticmethod
    def _to_model(recommendation_dict: dict[str, Any]) -> Recommendation:
        recommendation_dict.pop("_id", None)
        return Recommendation(**recommendation_dict)

    @translate_driver_errors
    async def deactivate_all(self, user_id: str) -> int:
        """
        Deactivate every active recommendation of a user.

        Returns:
            Number of recommendations deactivated
        """
        result = await self.collection.update_many(
            {"user_id": user_id, "is_active": True},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )

        if result.modified_count:
            logger.info(
                "Recommendations deactivated",
                user_id=user_id,
                count=result.modified_count,
            )

        return result.modified_count

    @translate_driver_errors
    async def create(self, recommendation: Recommendation) -> Recommendation:
        """
        Insert a new recommendation.

        Raises:
            ConcurrencyConflictError: If another active recommendation for the
                user was inserted in the meantime
        """
        try:
            await self.collection.insert_one(recommendation.model_dump())
        except DuplicateKeyError as e:
            raise ConcurrencyConflictError(
                "Another active recommendation exists for this user",
                user_id=recommendation.user_id,
            ) from e

        logger.info(
            "Recommendation created",
            recommendation_id=recommendation.recommendation_id,
            user_id=recommendation.user_id,
            risk_category=recommendation.risk_category,
        )

        return recommendation

    @translate_driver_errors
    async def get_active(self, user_id: str) -> Recommendation | None:
        """Get the user's active recommendation, if any."""
        recommendation_dict = await self.collection.find_one(
            {"user_id": user_id, "is_active": True}
        )

        if not recommendation_dict:
            return None

        return self._to_model(recommendation_dict)

    @translate_driver_errors
    async def list_by_user(self, user_id: str, limit: int = 20) -> list[Recommendation]:
        """List a user's recommendations, newest first."""
        cursor = (
            self.collection.find({"user_id": user_id})
            .sort("created_at", -1)
            .limit(limit)
        )

        recommendations = []
        async for recommendation_dict in cursor:
            recommendations.append(self._to_model(recommendation_dict))

        return recommendations
