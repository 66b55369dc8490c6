"""
Risk questionnaire scoring.

Pure and deterministic: maps questionnaire answers to a score in [0, 100] and a
risk category. Five dimensions are scored from fixed lookup tables; investment
goal, income source, and money usage preference are informational only.
"""

from dataclasses import dataclass

from ...models.allocation import RiskCategory
from ...models.risk_assessment import RiskAnswers, RiskScore


@dataclass(frozen=True)
class ScoredDimension:
    """One scored questionnaire field and its point table."""

    field: str
    points: dict[str, int]
    default: int  # Awarded for missing or unrecognized answers
    pool: int  # Maximum points this dimension can contribute


class RiskScoringTables:
    """Point tables for each scored dimension (pools sum to 100)."""

    EMPLOYMENT_STATUS = ScoredDimension(
        field="employment_status",
        points={
            "unemployed": 5,
            "student": 10,
            "employed": 15,
            "self_employed": 20,
        },
        default=10,
        pool=20,
    )

    RISK_TOLERANCE = ScoredDimension(
        field="risk_tolerance",
        points={
            "very_conservative": 5,
            "conservative": 10,
            "moderate": 15,
            "aggressive": 20,
            "very_aggressive": 25,
        },
        default=10,
        pool=25,
    )

    INVESTMENT_TIMELINE = ScoredDimension(
        field="investment_timeline",
        points={
            "short_term": 5,  # < 2 years
            "medium_term": 15,  # 2-5 years
            "long_term": 20,  # > 5 years
        },
        default=10,
        pool=20,
    )

    FINANCIAL_EXPERIENCE = ScoredDimension(
        field="financial_experience",
        points={
            "beginner": 5,
            "intermediate": 10,
            "expert": 15,
        },
        default=5,
        pool=15,
    )

    LOSS_TOLERANCE = ScoredDimension(
        field="loss_tolerance",
        points={
            "cannot_accept": 5,
            "small_losses": 10,
            "moderate_losses": 15,
            "significant_losses": 20,
        },
        default=10,
        pool=20,
    )

    ALL: tuple[ScoredDimension, ...] = (
        EMPLOYMENT_STATUS,
        RISK_TOLERANCE,
        INVESTMENT_TIMELINE,
        FINANCIAL_EXPERIENCE,
        LOSS_TOLERANCE,
    )


AGGRESSIVE_THRESHOLD = 70
MODERATE_THRESHOLD = 50
MAX_SCORE = 100


def categorize(score: int) -> RiskCategory:
    """Map a score to its risk category (70 / 50 cutoffs)."""
    if score >= AGGRESSIVE_THRESHOLD:
        return "aggressive"
    if score >= MODERATE_THRESHOLD:
        return "moderate"
    return "conservative"


def score_dimension(dimension: ScoredDimension, answer: str | None) -> int:
    """Points for one answer, using the dimension default when unrecognized."""
    if answer is None:
        return dimension.default
    return dimension.points.get(answer.strip().lower(), dimension.default)


def calculate_risk_score(answers: RiskAnswers) -> RiskScore:
    """
    Score a questionnaire.

    Args:
        answers: Questionnaire answers (missing values allowed)

    Returns:
        RiskScore with score clamped to [0, 100] and its category
    """
    raw_score = sum(
        score_dimension(dimension, getattr(answers, dimension.field))
        for dimension in RiskScoringTables.ALL
    )
    score = max(0, min(MAX_SCORE, raw_score))

    return RiskScore(score=score, category=categorize(score))
