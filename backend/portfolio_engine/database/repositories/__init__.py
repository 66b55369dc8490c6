"""
Repository layer for MongoDB data access.
Provides clean abstraction over database operations.
"""

from .fund_repository import FundRepository
from .holding_repository import HoldingRepository
from .portfolio_repository import PortfolioRepository
from .recommendation_repository import RecommendationRepository
from .risk_assessment_repository import RiskAssessmentRepository
from .transaction_repository import TransactionRepository

__all__ = [
    "FundRepository",
    "HoldingRepository",
    "PortfolioRepository",
    "RecommendationRepository",
    "RiskAssessmentRepository",
    "TransactionRepository",
]
