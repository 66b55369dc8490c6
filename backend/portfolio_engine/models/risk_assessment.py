"""
Risk assessment models.

A user may have many assessment rows; the most recent one is authoritative.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow
from .allocation import RiskCategory


class RiskAnswers(BaseModel):
    """
    Questionnaire answers.

    Values are categorical strings; unknown or missing values are scored at a
    mid-range default rather than rejected.
    """

    employment_status: str | None = Field(
        None, description="unemployed | student | employed | self_employed"
    )
    money_usage_preference: str | None = Field(
        None, description="Informational, not scored"
    )
    risk_tolerance: str | None = Field(
        None,
        description="very_conservative | conservative | moderate | aggressive | very_aggressive",
    )
    investment_goal: str | None = Field(None, description="Informational, not scored")
    financial_experience: str | None = Field(
        None, description="beginner | intermediate | expert"
    )
    investment_timeline: str | None = Field(
        None, description="short_term | medium_term | long_term"
    )
    loss_tolerance: str | None = Field(
        None,
        description="cannot_accept | small_losses | moderate_losses | significant_losses",
    )
    income_source: str | None = Field(None, description="Informational, not scored")

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "employment_status": "employed",
                "risk_tolerance": "moderate",
                "investment_goal": "retirement",
                "financial_experience": "intermediate",
                "investment_timeline": "long_term",
                "loss_tolerance": "moderate_losses",
                "income_source": "salary",
            }
        }


class RiskScore(BaseModel):
    """Result of scoring a questionnaire."""

    score: int = Field(..., ge=0, le=100, description="Risk score")
    category: RiskCategory = Field(..., description="Derived risk category")


class RiskAssessment(RiskAnswers):
    """Persisted risk assessment with derived score and category."""

    assessment_id: str = Field(..., description="Unique assessment identifier")
    user_id: str = Field(..., description="Assessed user")
    calculated_risk_score: int = Field(..., ge=0, le=100)
    risk_category: RiskCategory

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
