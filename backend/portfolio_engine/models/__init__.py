"""
Pydantic models for MongoDB collections.
Provides type safety and validation for database operations.
"""

from .allocation import (
    FUND_CLASSES,
    Allocation,
    AllocationComparison,
    FundClass,
    RiskCategory,
)
from .fund import Fund
from .holding import Holding, HoldingMutation
from .portfolio import (
    AllocationBreakdown,
    HoldingsSummary,
    InvestmentSummary,
    Portfolio,
    PortfolioDetails,
    PortfolioTotals,
)
from .recommendation import FundRecommendations, Recommendation
from .risk_assessment import RiskAnswers, RiskAssessment, RiskScore
from .transaction import InvestmentTransaction, TransactionCreate
from .transaction_result import TransactionResult

__all__ = [
    "FUND_CLASSES",
    "Allocation",
    "AllocationBreakdown",
    "AllocationComparison",
    "Fund",
    "FundClass",
    "FundRecommendations",
    "Holding",
    "HoldingMutation",
    "HoldingsSummary",
    "InvestmentSummary",
    "InvestmentTransaction",
    "Portfolio",
    "PortfolioDetails",
    "PortfolioTotals",
    "Recommendation",
    "RiskAnswers",
    "RiskAssessment",
    "RiskCategory",
    "RiskScore",
    "TransactionCreate",
    "TransactionResult",
]
