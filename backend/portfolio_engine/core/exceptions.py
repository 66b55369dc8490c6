"""
Custom exception hierarchy for error categorization and status mapping.

Every error the engine surfaces is an AppError subclass carrying a
human-readable message, structured context for logging, and the status code
a presentation layer should map it to:
- Caller errors (400-level): bad input, missing prerequisite, sell too large
- Transient errors (409): contention on a holding or portfolio
- Server errors (500-level): storage or cache infrastructure failed

Usage:
    from portfolio_engine.core.exceptions import InsufficientUnitsError

    raise InsufficientUnitsError(
        "Cannot sell 10 units, only 4 held",
        requested_units=10,
        units_held=4,
    )
"""

from typing import Any


class AppError(Exception):
    """
    Base application error with status mapping.

    All custom exceptions inherit from this to enable consistent error handling.
    """

    # Default status code (subclasses override)
    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str, **context: Any):
        """
        Initialize error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional key-value pairs for logging (e.g., portfolio_id, fund_id)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for responses and structured logging."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "status_code": self.status_code,
            **self.context,
        }


# ===== 400-level: Caller Errors =====


class ValidationError(AppError):
    """Caller provided invalid input (e.g., allocation not summing to 100, amount <= 0)."""

    status_code = 400
    error_type = "validation_error"


class BelowMinimumInvestmentError(ValidationError):
    """Buy amount is below the fund's minimum investment."""

    error_type = "below_minimum_investment"

    def __init__(self, message: str, minimum_investment: float, **context: Any):
        """
        Initialize with the offending minimum so callers can display it.

        Args:
            message: Error description (should name the minimum)
            minimum_investment: The fund's minimum investment amount
            **context: Additional context (e.g., fund_id, amount)
        """
        super().__init__(message, minimum_investment=minimum_investment, **context)
        self.minimum_investment = minimum_investment


class RiskAssessmentRequiredError(AppError):
    """Operation needs a completed risk assessment first."""

    status_code = 400
    error_type = "risk_assessment_required"


class AuthorizationError(AppError):
    """User does not own the requested resource."""

    status_code = 403
    error_type = "authorization_error"


class NotFoundError(AppError):
    """Requested resource does not exist."""

    status_code = 404
    error_type = "not_found_error"


class ConcurrencyConflictError(AppError):
    """
    Another mutation holds the holding lock or won the version race.

    Raised only after bounded internal retries; the caller may retry later.
    """

    status_code = 409
    error_type = "concurrency_conflict"


class InsufficientUnitsError(AppError):
    """Sell request exceeds the units held. Not retryable."""

    status_code = 422
    error_type = "insufficient_units"


# ===== 500-level: Server Errors =====


class PersistenceError(AppError):
    """
    Storage operation failed (connection, query, write issues).

    Examples:
        - Connection timeout to MongoDB
        - Write rejected by the server
        - Collection requested before connecting

    Not retried by the engine.
    """

    status_code = 500
    error_type = "persistence_error"


class CacheError(AppError):
    """Redis cache operation failed."""

    status_code = 500
    error_type = "cache_error"


class ConfigurationError(AppError):
    """
    Engine misconfigured (e.g., missing env vars, invalid settings).

    Should be caught during startup, not during request handling.
    """

    status_code = 500
    error_type = "configuration_error"
