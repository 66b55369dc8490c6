"""
Investment transaction models.
Immutable audit trail of every buy, sell, and dividend.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..core.utils.date_utils import utcnow

TransactionType = Literal["buy", "sell", "dividend"]
TransactionStatus = Literal["pending", "processing", "completed", "failed"]

OPEN_STATUSES: tuple[TransactionStatus, ...] = ("pending", "processing")
TRANSACTION_STATUSES: tuple[TransactionStatus, ...] = (
    "pending",
    "processing",
    "completed",
    "failed",
)


class InvestmentTransaction(BaseModel):
    """
    Investment transaction model for database storage.

    Status flow: pending → processing → completed (or failed on any error).
    Terminal states never change.
    """

    transaction_id: str = Field(..., description="Unique transaction identifier")
    reference_number: str = Field(..., description="Unique external reference")
    user_id: str = Field(..., description="User who placed the transaction")
    portfolio_id: str = Field(..., description="Target portfolio")
    fund_id: str = Field(..., description="Traded fund")

    transaction_type: TransactionType = Field(..., description="buy | sell | dividend")
    status: TransactionStatus = Field(default="pending")

    # Pricing
    amount: float = Field(..., ge=0, description="Money in (buy) or out (sell)")
    units: float = Field(..., ge=0, description="Units bought or sold")
    price_per_unit: float = Field(..., gt=0, description="Fund NAV at execution")
    transaction_fees: float = Field(0.0, ge=0, description="Fees charged")

    # Ordering and outcome
    holding_version: int | None = Field(
        None, description="Holding version produced by this transaction"
    )
    failure_reason: str | None = Field(None, description="Why the transaction failed")

    # Timestamps
    transaction_date: datetime = Field(default_factory=utcnow)
    settlement_date: datetime | None = Field(None, description="Completion time")
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        json_schema_extra = {
            "example": {
                "transaction_id": "txn_abc123",
                "reference_number": "TXN-1730455200000-K3J9QZ",
                "user_id": "user_123",
                "portfolio_id": "portfolio_abc123",
                "fund_id": "fund_a1b2c3d4e5f6",
                "transaction_type": "buy",
                "status": "completed",
                "amount": 1000.0,
                "units": 100.0,
                "price_per_unit": 10.0,
                "transaction_fees": 5.0,
                "holding_version": 1,
            }
        }


class TransactionCreate(BaseModel):
    """Request model for creating a new pending transaction."""

    user_id: str
    portfolio_id: str
    fund_id: str
    transaction_type: TransactionType
    amount: float
    units: float
    price_per_unit: float
    transaction_fees: float = 0.0
