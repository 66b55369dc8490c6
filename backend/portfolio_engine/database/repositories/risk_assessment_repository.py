"""
Risk assessment repository.

Append-only: every submission is a new row and the newest by created_at is
the user's authoritative assessment.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection

from ...models.risk_assessment import RiskAssessment
from ..errors import translate_driver_errors

logger = structlog.get_logger()


class RiskAssessmentRepository:
    """Repository for risk assessment data access operations."""

    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """Create indexes for latest-per-user lookups."""
        await self.collection.create_index(
            "assessment_id", name="idx_assessment_id", unique=True
        )
        await self.collection.create_index(
            [("user_id", 1), ("created_at", -1)], name="idx_user_assessments"
        )

        logger.info("Risk assessment indexes ensured")

    @staticmethod
    def _to_model(assessment_dict: dict[str, Any]) -> RiskAssessment:
        assessment_dict.pop("_id", None)
        return RiskAssessment(**assessment_dict)

    @translate_driver_errors
    async def create(self, assessment: RiskAssessment) -> RiskAssessment:
        """Insert a new assessment row."""
        await self.collection.insert_one(assessment.model_dump())

        logger.info(
            "Risk assessment stored",
            assessment_id=assessment.assessment_id,
            user_id=assessment.user_id,
            score=assessment.calculated_risk_score,
            category=assessment.risk_category,
        )

        return assessment

    @translate_driver_errors
    async def get_latest(self, user_id: str) -> RiskAssessment | None:
        """
        Get the user's most recent assessment.

        Args:
            user_id: User identifier

        Returns:
            Newest assessment, or None if the user never submitted one
        """
        assessment_dict = await self.collection.find_one(
            {"user_id": user_id}, sort=[("created_at", -1)]
        )

        if not assessment_dict:
            return None

        return self._to_model(assessment_dict)

    @translate_driver_errors
    async def list_by_user(self, user_id: str, limit: int = 50) -> list[RiskAssessment]:
        """List a user's assessments, newest first."""
        cursor = (
            self.collection.find({"user_id": user_id})
            .sort("created_at", -1)
            .limit(limit)
        )

        assessments = []
        async for assessment_dict in cursor:
            assessments.append(self._to_model(assessment_dict))

        return assessments
