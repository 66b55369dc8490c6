"""
Unit tests for RecommendationService.

Tests:
- Generation requires a risk assessment
- Exactly one active recommendation per user
- Reasoning and expected return per risk category
- Top funds per class
"""

from datetime import timedelta

import pytest

from portfolio_engine.core.exceptions import RiskAssessmentRequiredError
from portfolio_engine.models.allocation import Allocation
from portfolio_engine.models.risk_assessment import RiskAnswers

USER_ID = "user_123"

AGGRESSIVE_ANSWERS = RiskAnswers(
    employment_status="self_employed",
    risk_tolerance="very_aggressive",
    investment_timeline="long_term",
    financial_experience="expert",
    loss_tolerance="significant_losses",
)

CONSERVATIVE_ANSWERS = RiskAnswers(
    employment_status="student",
    risk_tolerance="very_conservative",
    investment_timeline="short_term",
    financial_experience="beginner",
    loss_tolerance="cannot_accept",
)


class TestGenerate:
    """Test recommendation generation"""

    @pytest.mark.asyncio
    async def test_requires_assessment(self, engine):
        with pytest.raises(RiskAssessmentRequiredError) as exc_info:
            await engine.recommendations.generate(USER_ID)

        assert exc_info.value.message == "Please complete risk assessment first"
        assert await engine.recommendations.get_active(USER_ID) is None

    @pytest.mark.asyncio
    async def test_aggressive_recommendation(self, engine):
        await engine.risk_assessments.submit(USER_ID, AGGRESSIVE_ANSWERS)

        recommendation = await engine.recommendations.generate(USER_ID)

        assert recommendation.risk_category == "aggressive"
        assert recommendation.risk_score == 100
        assert recommendation.expected_return == 12.0
        assert recommendation.recommended_allocation == Allocation(
            gold=30, fixed_income=20, equity=50
        )
        assert "growth-oriented" in recommendation.reasoning
        assert "long-term investment horizon" in recommendation.reasoning
        assert "investment experience" in recommendation.reasoning
        assert recommendation.expires_at - recommendation.created_at == timedelta(
            days=engine.settings.recommendation_ttl_days
        )

    @pytest.mark.asyncio
    async def test_conservative_reasoning(self, engine):
        await engine.risk_assessments.submit(USER_ID, CONSERVATIVE_ANSWERS)

        recommendation = await engine.recommendations.generate(USER_ID)

        assert recommendation.risk_category == "conservative"
        assert recommendation.expected_return == 5.5
        assert "capital preservation" in recommendation.reasoning
        assert "short-term timeline" in recommendation.reasoning
        assert "beginner investor" in recommendation.reasoning

    @pytest.mark.asyncio
    async def test_regenerate_keeps_single_active(self, engine):
        await engine.risk_assessments.submit(USER_ID, AGGRESSIVE_ANSWERS)
        first = await engine.recommendations.generate(USER_ID)

        second = await engine.recommendations.generate(USER_ID)

        active = await engine.recommendations.get_active(USER_ID)
        history = await engine.recommendations.get_history(USER_ID)
        assert active.recommendation_id == second.recommendation_id
        assert len(history) == 2
        by_id = {r.recommendation_id: r for r in history}
        assert by_id[first.recommendation_id].is_active is False
        assert by_id[second.recommendation_id].is_active is True


class TestFundRecommendations:
    """Test fund picks per class"""

    @pytest.mark.asyncio
    async def test_top_three_active_funds_per_class(self, engine, catalog, make_fund):
        await catalog.add(
            *(make_fund(f"fund_gold_{i}", fund_type="gold", name=f"Gold {i}") for i in range(5)),
            make_fund("fund_eq", fund_type="equity", name="Equity"),
            make_fund("fund_eq_closed", fund_type="equity", is_active=False),
        )

        picks = await engine.recommendations.get_fund_recommendations(USER_ID)

        assert picks.risk_profile == "conservative"
        assert picks.allocation == Allocation(gold=50, fixed_income=40, equity=10)
        assert [f.name for f in picks.gold] == ["Gold 0", "Gold 1", "Gold 2"]
        assert [f.fund_id for f in picks.equity] == ["fund_eq"]
        assert picks.fixed_income == []

    @pytest.mark.asyncio
    async def test_profile_follows_assessment(self, engine):
        await engine.risk_assessments.submit(USER_ID, AGGRESSIVE_ANSWERS)

        picks = await engine.recommendations.get_fund_recommendations(USER_ID)

        assert picks.risk_profile == "aggressive"
        assert picks.allocation.equity == 50
