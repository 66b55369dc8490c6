"""
Allocation policy: risk category → target allocation.

Also validates user-supplied allocations. Custom allocations are accepted only
when they sum to 100 within tolerance; they are never normalized.
"""

from collections.abc import Mapping
from typing import Any

from ...models.allocation import FUND_CLASSES, Allocation, RiskCategory
from ..exceptions import ValidationError

ALLOCATION_TOLERANCE = 0.1

# Each row sums to exactly 100
RISK_ALLOCATIONS: dict[RiskCategory, Allocation] = {
    "conservative": Allocation(gold=50, fixed_income=40, equity=10),
    "moderate": Allocation(gold=40, fixed_income=30, equity=30),
    "aggressive": Allocation(gold=30, fixed_income=20, equity=50),
}

# Used when a user has no risk assessment yet
DEFAULT_ALLOCATION = Allocation(gold=70, fixed_income=20, equity=10)


def get_recommended_allocation(risk_category: str | None) -> Allocation:
    """
    Target allocation for a risk category.

    Unknown categories fall back to the conservative row.
    """
    allocation = RISK_ALLOCATIONS.get(risk_category, RISK_ALLOCATIONS["conservative"])  # type: ignore[arg-type]
    return allocation.model_copy()


def validate_custom_allocation(
    allocation: Allocation | Mapping[str, Any],
    tolerance: float = ALLOCATION_TOLERANCE,
) -> Allocation:
    """
    Validate a user-specified allocation.

    Args:
        allocation: Allocation model or mapping with exactly gold, fixed_income, equity
        tolerance: Allowed distance of the sum from 100

    Returns:
        The allocation as an Allocation model

    Raises:
        ValidationError: On unknown/missing classes, negative or non-numeric values,
            or a sum outside 100 ± tolerance
    """
    if isinstance(allocation, Allocation):
        parsed = allocation
    else:
        keys = set(allocation.keys())
        unknown = keys - set(FUND_CLASSES)
        missing = set(FUND_CLASSES) - keys
        if unknown or missing:
            raise ValidationError(
                "Allocation must specify exactly gold, fixed_income and equity",
                unknown=sorted(unknown),
                missing=sorted(missing),
            )

        values: dict[str, float] = {}
        for fund_class in FUND_CLASSES:
            value = allocation[fund_class]
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise ValidationError(
                    "Allocation percentages must be numbers",
                    fund_type=fund_class,
                    value=str(value),
                )
            if value < 0:
                raise ValidationError(
                    "Allocation percentages cannot be negative",
                    fund_type=fund_class,
                    value=value,
                )
            values[fund_class] = float(value)
        parsed = Allocation(**values)

    total = parsed.total()
    if not parsed.is_balanced(tolerance):
        raise ValidationError(
            "Portfolio allocation must sum to 100%",
            total=round(total, 4),
            tolerance=tolerance,
        )

    return parsed
