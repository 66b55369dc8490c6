"""
Portfolio service.

Owns the portfolio aggregate: target allocation selection at creation,
recomputation of the derived totals and current allocation from holdings, and
the read views built on top of them.

recompute_totals() and recompute_allocation() are the only writers of the
derived fields. Each reads the portfolio version before reading holdings and
writes with a compare-and-swap on that version, so two recomputes racing on
the same portfolio cannot leave a result based on an older holding set.
"""

from collections.abc import Callable
from typing import Any

import structlog

from ..core.analysis.allocation_policy import (
    DEFAULT_ALLOCATION,
    get_recommended_allocation,
    validate_custom_allocation,
)
from ..core.config import Settings
from ..core.exceptions import AuthorizationError, ConcurrencyConflictError, NotFoundError
from ..core.utils.date_utils import utcnow
from ..core.utils.id_utils import generate_id
from ..database.repositories.holding_repository import HoldingRepository
from ..database.repositories.portfolio_repository import PortfolioRepository
from ..database.repositories.risk_assessment_repository import (
    RiskAssessmentRepository,
)
from ..database.repositories.transaction_repository import TransactionRepository
from ..models.allocation import FUND_CLASSES, Allocation, AllocationComparison
from ..models.holding import Holding
from ..models.portfolio import (
    DEFAULT_PORTFOLIO_NAME,
    AllocationBreakdown,
    AllocationBreakdownItem,
    HoldingsSummary,
    InvestmentSummary,
    Portfolio,
    PortfolioDetails,
    PortfolioTotals,
)
from .fund_catalog_service import FundCatalogService

logger = structlog.get_logger()

RECENT_TRANSACTIONS_LIMIT = 10


def calculate_totals(holdings: list[Holding]) -> PortfolioTotals:
    """Sum cost basis and market value over holdings."""
    total_invested = sum(h.total_invested for h in holdings)
    current_value = sum(h.current_value for h in holdings)
    total_return = current_value - total_invested
    return_percentage = (
        (total_return / total_invested) * 100 if total_invested > 0 else 0.0
    )

    return PortfolioTotals(
        total_invested=total_invested,
        current_value=current_value,
        total_return=total_return,
        return_percentage=return_percentage,
    )


def calculate_allocation(holdings: list[Holding]) -> tuple[Allocation, float]:
    """
    Current allocation as percentages of market value per fund class.

    Returns:
        Tuple of (allocation, total market value). All zero when the value is 0.
    """
    by_class = dict.fromkeys(FUND_CLASSES, 0.0)
    for holding in holdings:
        by_class[holding.fund_type] += holding.current_value

    total_value = sum(by_class.values())
    if total_value <= 0:
        return Allocation.zero(), 0.0

    allocation = Allocation(
        **{
            fund_class: (value / total_value) * 100
            for fund_class, value in by_class.items()
        }
    )
    return allocation, total_value


class PortfolioService:
    """Service for portfolio lifecycle and aggregate maintenance."""

    def __init__(
        self,
        portfolio_repo: PortfolioRepository,
        holding_repo: HoldingRepository,
        assessment_repo: RiskAssessmentRepository,
        transaction_repo: TransactionRepository,
        fund_catalog: FundCatalogService,
        settings: Settings,
    ):
        """
        Initialize portfolio service.

        Args:
            portfolio_repo: Repository for portfolios
            holding_repo: Repository for holdings
            assessment_repo: Repository for risk assessments (target selection)
            transaction_repo: Repository for transactions (summary view)
            fund_catalog: Fund catalog (allocation breakdown view)
            settings: Engine settings
        """
        self.portfolio_repo = portfolio_repo
        self.holding_repo = holding_repo
        self.assessment_repo = assessment_repo
        self.transaction_repo = transaction_repo
        self.fund_catalog = fund_catalog
        self.settings = settings

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create_portfolio(
        self,
        user_id: str,
        custom_allocation: Allocation | dict[str, Any] | None = None,
        portfolio_name: str | None = None,
    ) -> Portfolio:
        """
        Create a portfolio with a target allocation.

        Target selection order:
        1. custom_allocation, validated (never normalized)
        2. allocation for the user's latest risk assessment
        3. DEFAULT_ALLOCATION

        Raises:
            ValidationError: If custom_allocation is invalid
        """
        if custom_allocation is not None:
            target = validate_custom_allocation(
                custom_allocation, self.settings.allocation_tolerance
            )
            source = "custom"
        else:
            assessment = await self.assessment_repo.get_latest(user_id)
            if assessment:
                target = get_recommended_allocation(assessment.risk_category)
                source = assessment.risk_category
            else:
                target = DEFAULT_ALLOCATION.model_copy()
                source = "default"

        now = utcnow()
        portfolio = Portfolio(
            portfolio_id=generate_id("portfolio"),
            user_id=user_id,
            portfolio_name=portfolio_name or DEFAULT_PORTFOLIO_NAME,
            target_allocation=target,
            current_allocation=Allocation.zero(),
            created_at=now,
            updated_at=now,
        )

        await self.portfolio_repo.create(portfolio)

        logger.info(
            "Portfolio created",
            user_id=user_id,
            portfolio_id=portfolio.portfolio_id,
            allocation_source=source,
        )

        return portfolio

    async def get_portfolio(
        self, user_id: str, portfolio_id: str, require_active: bool = True
    ) -> Portfolio:
        """
        Get a portfolio owned by user_id.

        Raises:
            NotFoundError: If missing (or inactive when require_active)
            AuthorizationError: If owned by another user
        """
        portfolio = await self.portfolio_repo.get(portfolio_id)
        if not portfolio or (require_active and not portfolio.is_active):
            raise NotFoundError(
                f"Portfolio {portfolio_id} not found", portfolio_id=portfolio_id
            )

        if portfolio.user_id != user_id:
            logger.warning(
                "Portfolio access denied",
                user_id=user_id,
                portfolio_id=portfolio_id,
            )
            raise AuthorizationError(
                "Portfolio belongs to another user",
                user_id=user_id,
                portfolio_id=portfolio_id,
            )

        return portfolio

    async def list_portfolios(self, user_id: str) -> list[Portfolio]:
        """Active portfolios of a user, oldest first."""
        return await self.portfolio_repo.list_by_user(user_id)

    async def update_target_allocation(
        self,
        user_id: str,
        portfolio_id: str,
        allocation: Allocation | dict[str, Any],
    ) -> Portfolio:
        """
        Replace the target allocation of an owned, active portfolio.

        Raises:
            ValidationError: If the allocation is invalid
            NotFoundError: If the portfolio is missing or inactive
            AuthorizationError: If owned by another user
        """
        target = validate_custom_allocation(allocation, self.settings.allocation_tolerance)
        await self.get_portfolio(user_id, portfolio_id)

        updated = await self.portfolio_repo.update_target_allocation(portfolio_id, target)
        if not updated:
            raise NotFoundError(
                f"Portfolio {portfolio_id} not found", portfolio_id=portfolio_id
            )

        return updated

    async def deactivate_portfolio(self, user_id: str, portfolio_id: str) -> Portfolio:
        """Soft-delete an owned portfolio. Holdings and transactions are kept."""
        await self.get_portfolio(user_id, portfolio_id)

        deactivated = await self.portfolio_repo.deactivate(portfolio_id)
        if not deactivated:
            raise NotFoundError(
                f"Portfolio {portfolio_id} not found", portfolio_id=portfolio_id
            )

        return deactivated

    # =========================================================================
    # Aggregate recompute
    # =========================================================================

    async def recompute_totals(self, portfolio_id: str) -> Portfolio:
        """
        Recompute total_invested, current_value, total_return and
        return_percentage from the portfolio's holdings.

        Idempotent; never touches target_allocation.

        Raises:
            NotFoundError: If the portfolio does not exist
            ConcurrencyConflictError: If the version kept moving past the retry limit
        """

        def updates_for(holdings: list[Holding]) -> dict[str, Any]:
            return calculate_totals(holdings).model_dump()

        return await self._recompute(portfolio_id, "totals", updates_for)

    async def recompute_allocation(self, portfolio_id: str) -> Portfolio:
        """
        Recompute current_allocation (and current_value) from holding values
        grouped by fund class.

        Idempotent; never touches target_allocation.

        Raises:
            NotFoundError: If the portfolio does not exist
            ConcurrencyConflictError: If the version kept moving past the retry limit
        """

        def updates_for(holdings: list[Holding]) -> dict[str, Any]:
            allocation, total_value = calculate_allocation(holdings)
            return {
                "current_allocation": allocation.model_dump(),
                "current_value": total_value,
            }

        return await self._recompute(portfolio_id, "allocation", updates_for)

    async def _recompute(
        self,
        portfolio_id: str,
        kind: str,
        updates_for: Callable[[list[Holding]], dict[str, Any]],
    ) -> Portfolio:
        max_retries = self.settings.aggregate_max_retries

        for attempt in range(1, max_retries + 1):
            # Version first, holdings second: a holding write landing in between
            # is followed by its own recompute, which bumps the version.
            portfolio = await self.portfolio_repo.get(portfolio_id)
            if not portfolio:
                raise NotFoundError(
                    f"Portfolio {portfolio_id} not found", portfolio_id=portfolio_id
                )

            holdings = await self.holding_repo.list_by_portfolio(portfolio_id)
            updates = updates_for(holdings)

            updated = await self.portfolio_repo.compare_and_swap_aggregates(
                portfolio_id, portfolio.version, updates
            )
            if updated:
                logger.debug(
                    "Portfolio aggregates recomputed",
                    portfolio_id=portfolio_id,
                    kind=kind,
                    holdings=len(holdings),
                    version=updated.version,
                )
                return updated

            logger.info(
                "Portfolio recompute raced, retrying",
                portfolio_id=portfolio_id,
                kind=kind,
                attempt=attempt,
            )

        raise ConcurrencyConflictError(
            "Portfolio aggregates kept changing during recompute",
            portfolio_id=portfolio_id,
            attempts=max_retries,
        )

    # =========================================================================
    # Read views
    # =========================================================================

    async def get_portfolio_details(
        self, user_id: str, portfolio_id: str
    ) -> PortfolioDetails:
        """
        Portfolio with its holdings and target vs current comparison.

        drift = current - target per class. A portfolio needs rebalancing when
        it holds any value and some class drifted beyond rebalance_threshold.
        """
        portfolio = await self.get_portfolio(user_id, portfolio_id)
        holdings = await self.holding_repo.list_by_portfolio(portfolio_id)

        comparison = [
            AllocationComparison(
                fund_type=fund_class,
                target=portfolio.target_allocation.get(fund_class),
                current=portfolio.current_allocation.get(fund_class),
                drift=portfolio.current_allocation.get(fund_class)
                - portfolio.target_allocation.get(fund_class),
            )
            for fund_class in FUND_CLASSES
        ]

        needs_rebalance = portfolio.current_value > 0 and any(
            abs(item.drift) > portfolio.rebalance_threshold for item in comparison
        )

        return PortfolioDetails(
            portfolio=portfolio,
            holdings=holdings,
            allocation_comparison=comparison,
            needs_rebalance=needs_rebalance,
        )

    async def get_holdings(
        self, user_id: str, portfolio_id: str | None = None
    ) -> HoldingsSummary:
        """
        A user's holdings with value, cost basis and return totals.

        Args:
            user_id: Holding owner
            portfolio_id: Restrict to one owned portfolio (active or not)

        Raises:
            NotFoundError: If portfolio_id does not exist
            AuthorizationError: If portfolio_id belongs to another user
        """
        if portfolio_id is not None:
            await self.get_portfolio(user_id, portfolio_id, require_active=False)
            holdings = await self.holding_repo.list_by_portfolio(portfolio_id)
        else:
            holdings = await self.holding_repo.list_by_user(user_id)

        totals = calculate_totals(holdings)

        return HoldingsSummary(
            holdings=holdings,
            total_holdings=len(holdings),
            total_value=totals.current_value,
            total_invested=totals.total_invested,
            total_return=totals.total_return,
            return_percentage=totals.return_percentage,
        )

    async def get_investment_summary(self, user_id: str) -> InvestmentSummary:
        """Totals across all active portfolios plus recent transactions."""
        portfolios = await self.portfolio_repo.list_by_user(user_id)
        recent_transactions, _ = await self.transaction_repo.get_user_transactions(
            user_id, page=1, page_size=RECENT_TRANSACTIONS_LIMIT
        )

        total_invested = sum(p.total_invested for p in portfolios)
        total_value = sum(p.current_value for p in portfolios)
        total_return = total_value - total_invested
        return_percentage = (
            (total_return / total_invested) * 100 if total_invested > 0 else 0.0
        )

        return InvestmentSummary(
            portfolios=portfolios,
            recent_transactions=recent_transactions,
            total_invested=total_invested,
            total_value=total_value,
            total_return=total_return,
            return_percentage=return_percentage,
            portfolio_count=len(portfolios),
        )

    async def get_allocation_breakdown(self, user_id: str) -> AllocationBreakdown:
        """
        Recommended vs current allocation per fund class.

        The recommendation follows the latest risk assessment (default split
        without one); the current split comes from the user's first active
        portfolio.
        """
        assessment = await self.assessment_repo.get_latest(user_id)
        if assessment:
            recommended = get_recommended_allocation(assessment.risk_category)
            risk_profile = assessment.risk_category
        else:
            recommended = DEFAULT_ALLOCATION.model_copy()
            risk_profile = "conservative"

        portfolios = await self.portfolio_repo.list_by_user(user_id)
        current = (
            portfolios[0].current_allocation if portfolios else Allocation.zero()
        )

        funds = await self.fund_catalog.list_funds()
        items = {
            fund_class: AllocationBreakdownItem(
                recommended=recommended.get(fund_class),
                current=current.get(fund_class),
                funds=[f for f in funds if f.fund_type == fund_class],
            )
            for fund_class in FUND_CLASSES
        }

        return AllocationBreakdown(
            risk_profile=risk_profile,
            recommended_allocation=recommended,
            current_allocation=current,
            total_funds=len(funds),
            **items,
        )
