"""
Holding model for portfolio management.

Represents a position in one fund within one portfolio.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow
from .allocation import FundClass


class Holding(BaseModel):
    """
    Fund holding in a user's portfolio.

    Unique per (portfolio_id, fund_id). Tracks units, weighted-average cost
    basis, and value at the last NAV applied. Never deleted; a full sell
    leaves it zeroed.
    """

    holding_id: str = Field(..., description="Unique holding identifier")
    user_id: str = Field(..., description="Owner user ID")
    portfolio_id: str = Field(..., description="Owning portfolio")
    fund_id: str = Field(..., description="Held fund")
    fund_type: FundClass = Field(..., description="Class of the held fund")

    units_held: float = Field(..., ge=0, description="Units currently held")
    average_buy_price: float = Field(
        ..., ge=0, description="Weighted-average cost per unit"
    )

    # Calculated fields
    total_invested: float = Field(..., ge=0, description="Remaining cost basis")
    current_value: float = Field(..., description="units_held * last_nav")
    unrealized_gain_loss: float = Field(
        ..., description="current_value - total_invested"
    )
    last_nav: float = Field(..., gt=0, description="NAV used for current_value")

    version: int = Field(default=1, description="Incremented on every mutation")

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "holding_id": "holding_abc123",
                "user_id": "user_123",
                "portfolio_id": "portfolio_abc123",
                "fund_id": "fund_a1b2c3d4e5f6",
                "fund_type": "gold",
                "units_held": 125.0,
                "average_buy_price": 12.0,
                "total_invested": 1500.0,
                "current_value": 2500.0,
                "unrealized_gain_loss": 1000.0,
                "last_nav": 20.0,
                "version": 2,
            }
        }

    @property
    def unrealized_gain_loss_pct(self) -> float:
        """Unrealized gain/loss as a percentage of cost basis."""
        if self.total_invested <= 0:
            return 0.0
        return (self.unrealized_gain_loss / self.total_invested) * 100


class HoldingMutation(BaseModel):
    """Outcome of one ledger write."""

    holding: Holding = Field(..., description="Holding state after the write")
    units: float = Field(..., description="Units bought or sold")
    amount: float = Field(..., description="Money in (buy) or out (sell)")
    created: bool = Field(default=False, description="First buy into this fund")
