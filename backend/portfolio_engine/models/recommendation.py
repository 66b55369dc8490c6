"""
Investment recommendation model.
At most one active recommendation exists per user.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow
from .allocation import Allocation, RiskCategory
from .fund import Fund


class Recommendation(BaseModel):
    """Recommended allocation derived from the user's latest risk assessment."""

    recommendation_id: str = Field(..., description="Unique recommendation identifier")
    user_id: str = Field(..., description="Recommended user")
    recommended_allocation: Allocation
    reasoning: str = Field(..., description="Human-readable explanation")
    expected_return: float = Field(..., description="Illustrative annual return (%)")
    risk_score: int = Field(..., ge=0, le=100, description="Score snapshot")
    risk_category: RiskCategory
    recommendation_type: str = Field(default="portfolio_allocation")
    is_active: bool = Field(default=True)
    expires_at: datetime = Field(..., description="Recommendation expiry")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FundRecommendations(BaseModel):
    """Top funds per class for the user's risk profile."""

    risk_profile: RiskCategory
    allocation: Allocation
    gold: list[Fund]
    fixed_income: list[Fund]
    equity: list[Fund]
