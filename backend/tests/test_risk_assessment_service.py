"""
Unit tests for RiskAssessmentService.
"""

from datetime import timedelta

import pytest

from portfolio_engine.core.utils.date_utils import utcnow
from portfolio_engine.models.risk_assessment import RiskAnswers, RiskAssessment

USER_ID = "user_123"


class TestSubmit:
    """Test questionnaire submission"""

    @pytest.mark.asyncio
    async def test_submit_stores_score_and_category(self, engine):
        answers = RiskAnswers(
            employment_status="employed",
            risk_tolerance="moderate",
            investment_timeline="medium_term",
            financial_experience="intermediate",
            loss_tolerance="moderate_losses",
            investment_goal="retirement",
        )

        assessment = await engine.risk_assessments.submit(USER_ID, answers)

        assert assessment.calculated_risk_score == 70
        assert assessment.risk_category == "aggressive"
        assert assessment.assessment_id.startswith("risk_")
        assert assessment.investment_goal == "retirement"

        stored = await engine.risk_assessments.get_latest(USER_ID)
        assert stored == assessment

    @pytest.mark.asyncio
    async def test_empty_answers_use_defaults(self, engine):
        assessment = await engine.risk_assessments.submit(USER_ID, RiskAnswers())

        assert assessment.calculated_risk_score == 45
        assert assessment.risk_category == "conservative"

    @pytest.mark.asyncio
    async def test_no_assessment(self, engine):
        assert await engine.risk_assessments.get_latest(USER_ID) is None
        assert await engine.risk_assessments.get_history(USER_ID) == []


class TestLatestWins:
    """Test the most recent assessment is authoritative"""

    @pytest.mark.asyncio
    async def test_latest_by_created_at(self, engine):
        now = utcnow()
        for offset, category in [(2, "moderate"), (0, "aggressive"), (1, "conservative")]:
            created_at = now - timedelta(hours=offset)
            await engine.assessment_repo.create(
                RiskAssessment(
                    assessment_id=f"risk_{offset}",
                    user_id=USER_ID,
                    calculated_risk_score=60,
                    risk_category=category,
                    created_at=created_at,
                    updated_at=created_at,
                )
            )

        latest = await engine.risk_assessments.get_latest(USER_ID)
        history = await engine.risk_assessments.get_history(USER_ID)

        assert latest.assessment_id == "risk_0"
        assert [a.assessment_id for a in history] == ["risk_0", "risk_1", "risk_2"]

    @pytest.mark.asyncio
    async def test_assessments_are_per_user(self, engine):
        await engine.risk_assessments.submit("user_other", RiskAnswers())

        assert await engine.risk_assessments.get_latest(USER_ID) is None
