"""
Portfolio models.

A portfolio owns a target allocation chosen by the user (or derived from their
risk profile) and a current allocation derived from its holdings. Only the
aggregate recompute operations write the current_* and total fields.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow
from .allocation import Allocation, AllocationComparison
from .fund import Fund
from .holding import Holding
from .transaction import InvestmentTransaction

DEFAULT_PORTFOLIO_NAME = "My Investment Portfolio"


class Portfolio(BaseModel):
    """
    User investment portfolio.

    Soft-deletable via is_active; never hard-deleted.
    """

    portfolio_id: str = Field(..., description="Unique portfolio identifier")
    user_id: str = Field(..., description="Portfolio owner")
    portfolio_name: str = Field(default=DEFAULT_PORTFOLIO_NAME)

    # Allocations
    target_allocation: Allocation = Field(..., description="Desired split (sums to 100)")
    current_allocation: Allocation = Field(
        default_factory=Allocation.zero, description="Realized split (derived)"
    )

    # Running totals (derived from holdings)
    total_invested: float = Field(0.0, description="Sum of holding cost basis")
    current_value: float = Field(0.0, description="Sum of holding market value")
    total_return: float = Field(0.0, description="current_value - total_invested")
    return_percentage: float = Field(0.0, description="total_return / total_invested (%)")

    # Rebalancing preferences
    auto_rebalance: bool = Field(default=False)
    rebalance_threshold: float = Field(
        default=5.0, ge=0, description="Allowed drift in percentage points"
    )

    is_active: bool = Field(default=True)
    version: int = Field(default=0, description="Optimistic concurrency counter")

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "portfolio_id": "portfolio_abc123",
                "user_id": "user_123",
                "portfolio_name": "My Investment Portfolio",
                "target_allocation": {"gold": 70, "fixed_income": 20, "equity": 10},
                "current_allocation": {"gold": 100, "fixed_income": 0, "equity": 0},
                "total_invested": 1000.0,
                "current_value": 1050.0,
                "total_return": 50.0,
                "return_percentage": 5.0,
                "auto_rebalance": False,
                "rebalance_threshold": 5.0,
                "is_active": True,
                "version": 2,
            }
        }


class PortfolioTotals(BaseModel):
    """Aggregated totals written by recompute_totals."""

    total_invested: float
    current_value: float
    total_return: float
    return_percentage: float


class HoldingsSummary(BaseModel):
    """A user's holdings (optionally of one portfolio) with their totals."""

    holdings: list[Holding]
    total_holdings: int
    total_value: float
    total_invested: float
    total_return: float
    return_percentage: float


class PortfolioDetails(BaseModel):
    """Portfolio with holdings and target vs current comparison."""

    portfolio: Portfolio
    holdings: list[Holding]
    allocation_comparison: list[AllocationComparison]
    needs_rebalance: bool = Field(
        ..., description="Any class drifted beyond the rebalance threshold"
    )


class InvestmentSummary(BaseModel):
    """Totals across all of a user's active portfolios."""

    portfolios: list[Portfolio]
    recent_transactions: list[InvestmentTransaction]
    total_invested: float
    total_value: float
    total_return: float
    return_percentage: float
    portfolio_count: int


class AllocationBreakdownItem(BaseModel):
    """Recommended vs current percentage for one class, with its funds."""

    recommended: float
    current: float
    funds: list[Fund]


class AllocationBreakdown(BaseModel):
    """Recommended vs current allocation across the three fund classes."""

    risk_profile: str
    recommended_allocation: Allocation
    current_allocation: Allocation
    gold: AllocationBreakdownItem
    fixed_income: AllocationBreakdownItem
    equity: AllocationBreakdownItem
    total_funds: int
