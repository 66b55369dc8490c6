"""
Structured result of an executed buy or sell.
"""

from pydantic import BaseModel, Field

from .fund import Fund
from .holding import Holding
from .portfolio import Portfolio
from .transaction import InvestmentTransaction


class TransactionResult(BaseModel):
    """Completed transaction with the state it produced."""

    transaction: InvestmentTransaction
    fund: Fund
    units: float = Field(..., description="Units bought or sold")
    fees: float = Field(..., description="Fees charged")
    holding: Holding = Field(..., description="Holding after the transaction")
    portfolio: Portfolio = Field(..., description="Portfolio after recompute")
