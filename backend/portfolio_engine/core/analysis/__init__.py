"""
Pure portfolio analysis functions: risk scoring and allocation policy.
No I/O; safe to call from anywhere.
"""

from .allocation_policy import (
    DEFAULT_ALLOCATION,
    RISK_ALLOCATIONS,
    get_recommended_allocation,
    validate_custom_allocation,
)
from .risk_scorer import RiskScoringTables, calculate_risk_score, categorize

__all__ = [
    "DEFAULT_ALLOCATION",
    "RISK_ALLOCATIONS",
    "RiskScoringTables",
    "calculate_risk_score",
    "categorize",
    "get_recommended_allocation",
    "validate_custom_allocation",
]
