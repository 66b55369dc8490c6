"""
Allocation model shared by portfolios and recommendations.

An allocation is a closed three-field record of percentages, one per fund
class. It is never an open map.
"""

from typing import Literal

from pydantic import BaseModel, Field

FundClass = Literal["gold", "fixed_income", "equity"]
FUND_CLASSES: tuple[FundClass, ...] = ("gold", "fixed_income", "equity")

RiskCategory = Literal["conservative", "moderate", "aggressive"]


class Allocation(BaseModel):
    """Percentage split across gold, fixed income, and equity funds."""

    gold: float = Field(0.0, ge=0, description="Gold funds (%)")
    fixed_income: float = Field(0.0, ge=0, description="Fixed income funds (%)")
    equity: float = Field(0.0, ge=0, description="Equity funds (%)")

    model_config = {
        "extra": "forbid",
        "json_schema_extra": {
            "example": {"gold": 50.0, "fixed_income": 40.0, "equity": 10.0}
        },
    }

    @classmethod
    def zero(cls) -> "Allocation":
        """Allocation with every class at 0%."""
        return cls(gold=0.0, fixed_income=0.0, equity=0.0)

    def get(self, fund_class: FundClass) -> float:
        """Percentage for one fund class."""
        return float(getattr(self, fund_class))

    def total(self) -> float:
        """Sum of the three percentages."""
        return self.gold + self.fixed_income + self.equity

    def is_balanced(self, tolerance: float = 0.1) -> bool:
        """True when the percentages sum to 100 within tolerance."""
        return abs(self.total() - 100.0) <= tolerance


class AllocationComparison(BaseModel):
    """Target vs current percentage for one fund class."""

    fund_type: FundClass
    target: float = Field(..., description="Target percentage")
    current: float = Field(..., description="Realized percentage")
    drift: float = Field(..., description="current - target (percentage points)")
