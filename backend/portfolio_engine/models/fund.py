"""
Fund catalog model.

Reference data owned by an external feed; the engine only reads it.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow
from .allocation import FundClass


class Fund(BaseModel):
    """
    Investable fund.

    Immutable from the engine's perspective except current_nav, which an
    external price feed updates.
    """

    fund_id: str = Field(..., description="Unique fund identifier")
    name: str = Field(..., description="Fund display name")
    symbol: str = Field(..., description="Fund ticker symbol")
    fund_type: FundClass = Field(..., description="Fund class")
    description: str | None = Field(None, description="Fund description")
    manager_name: str | None = Field(None, description="Fund manager")

    # Pricing
    current_nav: float = Field(..., gt=0, description="Net asset value per unit")
    minimum_investment: float | None = Field(
        None, ge=0, description="Minimum buy amount (engine default when unset)"
    )
    currency: str = Field(default="AED", description="Pricing currency")

    # Performance statistics (informational)
    ytd_return: float | None = Field(None, description="Year-to-date return (%)")
    one_year_return: float | None = Field(None, description="1Y return (%)")
    three_year_return: float | None = Field(None, description="3Y return (%)")
    five_year_return: float | None = Field(None, description="5Y return (%)")
    risk_rating: str | None = Field(None, description="low | medium | high")
    volatility: float | None = Field(None, description="Annualized volatility")
    sharpe_ratio: float | None = Field(None, description="Sharpe ratio")

    is_active: bool = Field(default=True, description="Open for new transactions")
    is_shariah_compliant: bool = Field(default=False)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "fund_id": "fund_a1b2c3d4e5f6",
                "name": "Emirates Gold Fund",
                "symbol": "EGF",
                "fund_type": "gold",
                "current_nav": 10.0,
                "minimum_investment": 500.0,
                "currency": "AED",
                "risk_rating": "medium",
                "is_active": True,
                "is_shariah_compliant": True,
            }
        }

    def effective_minimum(self, default_minimum: float) -> float:
        """Minimum buy amount, falling back to the engine default."""
        if self.minimum_investment is None:
            return default_minimum
        return self.minimum_investment
