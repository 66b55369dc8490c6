"""
Recommendation service.

Builds an allocation recommendation from the user's latest risk assessment and
keeps exactly one recommendation active per user.
"""

from datetime import timedelta

import structlog

from ..core.analysis.allocation_policy import get_recommended_allocation
from ..core.config import Settings
from ..core.exceptions import ConcurrencyConflictError, RiskAssessmentRequiredError
from ..core.utils.date_utils import utcnow
from ..core.utils.id_utils import generate_id
from ..database.repositories.recommendation_repository import (
    RecommendationRepository,
)
from ..database.repositories.risk_assessment_repository import (
    RiskAssessmentRepository,
)
from ..models.allocation import RiskCategory
from ..models.recommendation import FundRecommendations, Recommendation
from ..models.risk_assessment import RiskAssessment
from .fund_catalog_service import FundCatalogService

logger = structlog.get_logger()

# Illustrative annual return (%) per risk category
EXPECTED_RETURNS: dict[RiskCategory, float] = {
    "conservative": 5.5,  # 4-7%
    "moderate": 8.0,  # 6-10%
    "aggressive": 12.0,  # 9-15%
}

CATEGORY_REASONS: dict[RiskCategory, str] = {
    "conservative": (
        "Based on your conservative risk profile, we recommend a defensive "
        "allocation focused on capital preservation."
    ),
    "moderate": (
        "Your moderate risk tolerance allows for a balanced approach between "
        "growth and stability."
    ),
    "aggressive": (
        "Your aggressive risk profile supports a growth-oriented strategy with "
        "higher return potential."
    ),
}

TIMELINE_REASONS = {
    "long_term": "Your long-term investment horizon allows for riding out market volatility.",
    "short_term": (
        "Given your short-term timeline, we prioritize liquidity and capital "
        "preservation."
    ),
}

EXPERIENCE_REASONS = {
    "beginner": (
        "As a beginner investor, this allocation provides diversification while "
        "minimizing complexity."
    ),
    "expert": (
        "Your investment experience allows for a more sophisticated allocation "
        "strategy."
    ),
}

FUNDS_PER_CLASS = 3
MAX_ACTIVATION_ATTEMPTS = 3


def build_reasoning(assessment: RiskAssessment) -> str:
    """Human-readable explanation from category, timeline and experience."""
    reasons = [CATEGORY_REASONS[assessment.risk_category]]

    timeline_reason = TIMELINE_REASONS.get(assessment.investment_timeline or "")
    if timeline_reason:
        reasons.append(timeline_reason)

    experience_reason = EXPERIENCE_REASONS.get(assessment.financial_experience or "")
    if experience_reason:
        reasons.append(experience_reason)

    return " ".join(reasons)


class RecommendationService:
    """Service for generating and reading recommendations."""

    def __init__(
        self,
        recommendation_repo: RecommendationRepository,
        assessment_repo: RiskAssessmentRepository,
        fund_catalog: FundCatalogService,
        settings: Settings,
    ):
        self.recommendation_repo = recommendation_repo
        self.assessment_repo = assessment_repo
        self.fund_catalog = fund_catalog
        self.settings = settings

    async def generate(self, user_id: str) -> Recommendation:
        """
        Generate a fresh recommendation and make it the user's only active one.

        Args:
            user_id: User identifier

        Returns:
            The new active recommendation

        Raises:
            RiskAssessmentRequiredError: If the user has no risk assessment
            ConcurrencyConflictError: If concurrent generations kept colliding
        """
        assessment = await self.assessment_repo.get_latest(user_id)
        if not assessment:
            raise RiskAssessmentRequiredError(
                "Please complete risk assessment first", user_id=user_id
            )

        category = assessment.risk_category

        for attempt in range(1, MAX_ACTIVATION_ATTEMPTS + 1):
            now = utcnow()
            recommendation = Recommendation(
                recommendation_id=generate_id("rec"),
                user_id=user_id,
                recommended_allocation=get_recommended_allocation(category),
                reasoning=build_reasoning(assessment),
                expected_return=EXPECTED_RETURNS[category],
                risk_score=assessment.calculated_risk_score,
                risk_category=category,
                is_active=True,
                expires_at=now + timedelta(days=self.settings.recommendation_ttl_days),
                created_at=now,
                updated_at=now,
            )

            await self.recommendation_repo.deactivate_all(user_id)
            try:
                created = await self.recommendation_repo.create(recommendation)
            except ConcurrencyConflictError:
                if attempt == MAX_ACTIVATION_ATTEMPTS:
                    raise
                logger.info(
                    "Concurrent recommendation insert, retrying",
                    user_id=user_id,
                    attempt=attempt,
                )
                continue

            logger.info(
                "Recommendation generated",
                user_id=user_id,
                recommendation_id=created.recommendation_id,
                risk_category=category,
                expected_return=created.expected_return,
            )
            return created

        raise ConcurrencyConflictError(
            "Could not activate recommendation", user_id=user_id
        )

    async def get_active(self, user_id: str) -> Recommendation | None:
        """The user's active recommendation, if any."""
        return await self.recommendation_repo.get_active(user_id)

    async def get_history(self, user_id: str) -> list[Recommendation]:
        """All of the user's recommendations, newest first."""
        return await self.recommendation_repo.list_by_user(user_id)

    async def get_fund_recommendations(self, user_id: str) -> FundRecommendations:
        """
        Top active funds per class alongside the allocation for the user's profile.

        Users without an assessment get the conservative profile.
        """
        assessment = await self.assessment_repo.get_latest(user_id)
        risk_profile: RiskCategory = (
            assessment.risk_category if assessment else "conservative"
        )

        funds = await self.fund_catalog.list_funds()

        def top(fund_type: str) -> list:
            return [f for f in funds if f.fund_type == fund_type][:FUNDS_PER_CLASS]

        return FundRecommendations(
            risk_profile=risk_profile,
            allocation=get_recommended_allocation(risk_profile),
            gold=top("gold"),
            fixed_income=top("fixed_income"),
            equity=top("equity"),
        )
