"""
Holding ledger.

Applies buys and sells to the single holding of a (portfolio, fund) pair.
Cost basis follows the weighted-average method: buys move the average buy
price, sells reduce the remaining cost basis proportionally and keep the
average unchanged.

Every write after the first buy is a compare-and-swap on the holding version.
Callers serialize mutations of one holding with a lock; the version check
makes an update computed from a stale read fail instead of overwriting.
"""

import structlog

from ..core.exceptions import (
    ConcurrencyConflictError,
    InsufficientUnitsError,
    NotFoundError,
    ValidationError,
)
from ..core.utils.date_utils import utcnow
from ..core.utils.id_utils import generate_id
from ..database.repositories.holding_repository import HoldingRepository
from ..models.fund import Fund
from ..models.holding import Holding, HoldingMutation

logger = structlog.get_logger()

# Float slack when comparing unit quantities
UNITS_TOLERANCE = 1e-9


class HoldingLedger:
    """Read-modify-write operations on holdings."""

    def __init__(self, holding_repo: HoldingRepository):
        self.holding_repo = holding_repo

    async def apply_buy(
        self,
        user_id: str,
        portfolio_id: str,
        fund: Fund,
        amount: float,
        nav: float,
    ) -> HoldingMutation:
        """
        Add units bought at nav to the holding, creating it on the first buy.

        Args:
            user_id: Portfolio owner
            portfolio_id: Portfolio identifier
            fund: Fund being bought
            amount: Money invested (before fees)
            nav: Price per unit

        Returns:
            HoldingMutation with the holding after the buy

        Raises:
            ValidationError: If amount or nav is not positive
            ConcurrencyConflictError: If the holding changed since it was read
        """
        if nav <= 0:
            raise ValidationError("NAV must be positive", fund_id=fund.fund_id, nav=nav)
        if amount <= 0:
            raise ValidationError(
                "Investment amount must be positive", fund_id=fund.fund_id, amount=amount
            )

        units = amount / nav
        existing = await self.holding_repo.get_by_fund(portfolio_id, fund.fund_id)

        if existing is None:
            now = utcnow()
            holding = Holding(
                holding_id=generate_id("holding"),
                user_id=user_id,
                portfolio_id=portfolio_id,
                fund_id=fund.fund_id,
                fund_type=fund.fund_type,
                units_held=units,
                average_buy_price=nav,
                total_invested=amount,
                current_value=amount,
                unrealized_gain_loss=0.0,
                last_nav=nav,
                version=1,
                created_at=now,
                updated_at=now,
            )
            created = await self.holding_repo.create(holding)
            return HoldingMutation(
                holding=created, units=units, amount=amount, created=True
            )

        units_after = existing.units_held + units
        invested_after = existing.total_invested + amount
        value_after = units_after * nav

        updated = await self._swap(
            existing,
            {
                "units_held": units_after,
                "total_invested": invested_after,
                "average_buy_price": invested_after / units_after,
                "current_value": value_after,
                "unrealized_gain_loss": value_after - invested_after,
                "last_nav": nav,
            },
        )

        return HoldingMutation(holding=updated, units=units, amount=amount)

    async def apply_sell(
        self,
        portfolio_id: str,
        fund_id: str,
        units: float,
        nav: float,
    ) -> HoldingMutation:
        """
        Remove units sold at nav from the holding.

        A full liquidation leaves a zeroed holding in place.

        Args:
            portfolio_id: Portfolio identifier
            fund_id: Fund identifier
            units: Units to sell
            nav: Price per unit

        Returns:
            HoldingMutation with the holding after the sell

        Raises:
            ValidationError: If units or nav is not positive
            NotFoundError: If the portfolio holds no position in the fund
            InsufficientUnitsError: If units exceed the units held
            ConcurrencyConflictError: If the holding changed since it was read
        """
        if nav <= 0:
            raise ValidationError("NAV must be positive", fund_id=fund_id, nav=nav)
        if units <= 0:
            raise ValidationError(
                "Units to sell must be positive", fund_id=fund_id, units=units
            )

        existing = await self.holding_repo.get_by_fund(portfolio_id, fund_id)
        if existing is None:
            raise NotFoundError(
                "No holding found for this fund",
                portfolio_id=portfolio_id,
                fund_id=fund_id,
            )

        units_before = existing.units_held
        if units > units_before + UNITS_TOLERANCE:
            raise InsufficientUnitsError(
                f"Insufficient units: requested {units}, held {units_before}",
                portfolio_id=portfolio_id,
                fund_id=fund_id,
                requested_units=units,
                units_held=units_before,
            )

        units_after = max(0.0, units_before - units)
        if units_after <= UNITS_TOLERANCE:
            units_after = 0.0
            invested_after = 0.0
        else:
            invested_after = existing.total_invested * units_after / units_before
        value_after = units_after * nav

        updated = await self._swap(
            existing,
            {
                "units_held": units_after,
                "total_invested": invested_after,
                "current_value": value_after,
                "unrealized_gain_loss": value_after - invested_after,
                "last_nav": nav,
            },
        )

        return HoldingMutation(holding=updated, units=units, amount=units * nav)

    async def revalue(self, portfolio_id: str, fund_id: str, nav: float) -> Holding:
        """
        Mark a holding to market at a new NAV.

        Only value and unrealized gain change; units and cost basis stay.

        Raises:
            ValidationError: If nav is not positive
            NotFoundError: If the holding does not exist
            ConcurrencyConflictError: If the holding changed since it was read
        """
        if nav <= 0:
            raise ValidationError("NAV must be positive", fund_id=fund_id, nav=nav)

        existing = await self.holding_repo.get_by_fund(portfolio_id, fund_id)
        if existing is None:
            raise NotFoundError(
                "No holding found for this fund",
                portfolio_id=portfolio_id,
                fund_id=fund_id,
            )

        value_after = existing.units_held * nav
        return await self._swap(
            existing,
            {
                "current_value": value_after,
                "unrealized_gain_loss": value_after - existing.total_invested,
                "last_nav": nav,
            },
        )

    async def _swap(self, existing: Holding, updates: dict) -> Holding:
        updated = await self.holding_repo.compare_and_swap(
            existing.holding_id, existing.version, updates
        )
        if updated is None:
            raise ConcurrencyConflictError(
                "Holding was modified concurrently",
                holding_id=existing.holding_id,
                expected_version=existing.version,
            )
        return updated
