"""
Risk assessment service.
Scores questionnaires and keeps the per-user assessment history.
"""

import structlog

from ..core.analysis.risk_scorer import calculate_risk_score
from ..core.utils.date_utils import utcnow
from ..core.utils.id_utils import generate_id
from ..database.repositories.risk_assessment_repository import (
    RiskAssessmentRepository,
)
from ..models.risk_assessment import RiskAnswers, RiskAssessment

logger = structlog.get_logger()


class RiskAssessmentService:
    """Service for submitting and reading risk assessments."""

    def __init__(self, assessment_repo: RiskAssessmentRepository):
        self.assessment_repo = assessment_repo

    async def submit(self, user_id: str, answers: RiskAnswers) -> RiskAssessment:
        """
        Score a questionnaire and store it as the user's latest assessment.

        Earlier assessments are kept for history; the newest one wins.

        Args:
            user_id: User identifier
            answers: Questionnaire answers

        Returns:
            Stored assessment with score and category
        """
        risk_score = calculate_risk_score(answers)

        now = utcnow()
        assessment = RiskAssessment(
            assessment_id=generate_id("risk"),
            user_id=user_id,
            calculated_risk_score=risk_score.score,
            risk_category=risk_score.category,
            created_at=now,
            updated_at=now,
            **answers.model_dump(),
        )

        await self.assessment_repo.create(assessment)

        logger.info(
            "Risk assessment submitted",
            user_id=user_id,
            score=risk_score.score,
            category=risk_score.category,
        )

        return assessment

    async def get_latest(self, user_id: str) -> RiskAssessment | None:
        """The user's authoritative (most recent) assessment."""
        return await self.assessment_repo.get_latest(user_id)

    async def get_history(self, user_id: str) -> list[RiskAssessment]:
        """All of the user's assessments, newest first."""
        return await self.assessment_repo.list_by_user(user_id)
