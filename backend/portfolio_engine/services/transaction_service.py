"""
Transaction service.

Executes buys and sells against a portfolio:
1. Validate portfolio ownership, fund availability and amounts
2. Price at the fund's current NAV and compute fees
3. Lock the (portfolio, fund) holding, record a pending transaction, mark it processing
4. Apply the holding ledger operation (on failure: transaction failed, holding untouched)
5. Recompute portfolio totals and allocation under the portfolio lock, mark the
   transaction completed

The holding lock serializes mutations of one holding across workers.
Transactions on different holdings use different holding locks and only queue
briefly on the portfolio lock for the recompute. Once the ledger write lands
the transaction completes; a contended recompute is left to the next one
rather than reported as a failure.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog

from ..core.config import Settings
from ..core.exceptions import (
    AppError,
    AuthorizationError,
    BelowMinimumInvestmentError,
    ConcurrencyConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..database.redis import RedisCache
from ..database.repositories.transaction_repository import TransactionRepository
from ..models.fund import Fund
from ..models.holding import HoldingMutation
from ..models.portfolio import Portfolio
from ..models.transaction import (
    TRANSACTION_STATUSES,
    InvestmentTransaction,
    TransactionCreate,
)
from ..models.transaction_result import TransactionResult
from .fund_catalog_service import FundCatalogService
from .holding_ledger import HoldingLedger
from .portfolio_service import PortfolioService

logger = structlog.get_logger()

MAX_PAGE_SIZE = 100


def holding_lock_key(portfolio_id: str, fund_id: str) -> str:
    """Lock key serializing mutations of one holding."""
    return f"lock:holding:{portfolio_id}:{fund_id}"


def portfolio_lock_key(portfolio_id: str) -> str:
    """Lock key serializing aggregate recomputes of one portfolio."""
    return f"lock:portfolio:{portfolio_id}"


class TransactionService:
    """Service orchestrating buy and sell transactions."""

    def __init__(
        self,
        transaction_repo: TransactionRepository,
        fund_catalog: FundCatalogService,
        holding_ledger: HoldingLedger,
        portfolio_service: PortfolioService,
        redis_cache: RedisCache,
        settings: Settings,
    ):
        """
        Initialize transaction service.

        Args:
            transaction_repo: Repository for transaction records
            fund_catalog: Fund lookups for pricing
            holding_ledger: Holding read-modify-write operations
            portfolio_service: Ownership checks and aggregate recompute
            redis_cache: Redis for holding and portfolio locks
            settings: Engine settings (fees, minimums, lock tuning)
        """
        self.transaction_repo = transaction_repo
        self.fund_catalog = fund_catalog
        self.holding_ledger = holding_ledger
        self.portfolio_service = portfolio_service
        self.redis_cache = redis_cache
        self.settings = settings

    # =========================================================================
    # Buy / Sell
    # =========================================================================

    async def buy(
        self, user_id: str, portfolio_id: str, fund_id: str, amount: float
    ) -> TransactionResult:
        """
        Invest amount into a fund.

        Args:
            user_id: Portfolio owner
            portfolio_id: Target portfolio
            fund_id: Fund to buy
            amount: Money to invest (fees are charged on top)

        Returns:
            TransactionResult with the completed transaction and resulting state

        Raises:
            ValidationError: If amount is not positive or the fund is closed
            BelowMinimumInvestmentError: If amount is below the fund minimum
            NotFoundError: If the portfolio or fund does not exist
            AuthorizationError: If the portfolio belongs to another user
            ConcurrencyConflictError: If the holding stayed contended
            PersistenceError: If storage failed
        """
        if amount <= 0:
            raise ValidationError(
                "Investment amount must be positive", fund_id=fund_id, amount=amount
            )

        await self.portfolio_service.get_portfolio(user_id, portfolio_id)
        fund = await self._get_tradable_fund(fund_id)

        minimum = fund.effective_minimum(self.settings.default_minimum_investment)
        if amount < minimum:
            raise BelowMinimumInvestmentError(
                f"Minimum investment amount is {minimum:.2f} {fund.currency}",
                minimum_investment=minimum,
                fund_id=fund_id,
                amount=amount,
            )

        nav = fund.current_nav
        units = amount / nav
        fees = amount * self.settings.fee_rate_for("buy")

        async def apply() -> HoldingMutation:
            return await self.holding_ledger.apply_buy(
                user_id, portfolio_id, fund, amount, nav
            )

        return await self._execute(
            TransactionCreate(
                user_id=user_id,
                portfolio_id=portfolio_id,
                fund_id=fund_id,
                transaction_type="buy",
                amount=amount,
                units=units,
                price_per_unit=nav,
                transaction_fees=fees,
            ),
            fund,
            apply,
        )

    async def sell(
        self, user_id: str, portfolio_id: str, fund_id: str, units: float
    ) -> TransactionResult:
        """
        Redeem units of a fund.

        Args:
            user_id: Portfolio owner
            portfolio_id: Portfolio holding the fund
            fund_id: Fund to sell
            units: Units to redeem

        Returns:
            TransactionResult with the completed transaction and resulting state

        Raises:
            ValidationError: If units is not positive or the fund is closed
            NotFoundError: If the portfolio, fund or holding does not exist
            AuthorizationError: If the portfolio belongs to another user
            InsufficientUnitsError: If units exceed the units held
            ConcurrencyConflictError: If the holding stayed contended
            PersistenceError: If storage failed
        """
        if units <= 0:
            raise ValidationError(
                "Units to sell must be positive", fund_id=fund_id, units=units
            )

        await self.portfolio_service.get_portfolio(user_id, portfolio_id)
        fund = await self._get_tradable_fund(fund_id)

        nav = fund.current_nav
        amount = units * nav
        fees = amount * self.settings.fee_rate_for("sell")

        async def apply() -> HoldingMutation:
            return await self.holding_ledger.apply_sell(portfolio_id, fund_id, units, nav)

        return await self._execute(
            TransactionCreate(
                user_id=user_id,
                portfolio_id=portfolio_id,
                fund_id=fund_id,
                transaction_type="sell",
                amount=amount,
                units=units,
                price_per_unit=nav,
                transaction_fees=fees,
            ),
            fund,
            apply,
        )

    async def _get_tradable_fund(self, fund_id: str) -> Fund:
        fund = await self.fund_catalog.get_fund_by_id(fund_id)
        if not fund.is_active:
            raise ValidationError(
                f"Fund {fund.name} is not open for transactions", fund_id=fund_id
            )
        return fund

    async def _execute(
        self,
        transaction_create: TransactionCreate,
        fund: Fund,
        apply: Callable[[], Awaitable[HoldingMutation]],
    ) -> TransactionResult:
        portfolio_id = transaction_create.portfolio_id

        async with self._holding_lock(portfolio_id, transaction_create.fund_id):
            transaction = await self.transaction_repo.create_pending(transaction_create)
            transaction_id = transaction.transaction_id

            try:
                processing = await self.transaction_repo.mark_processing(transaction_id)
                if processing is None:
                    raise PersistenceError(
                        "Transaction left pending state unexpectedly",
                        transaction_id=transaction_id,
                    )
                mutation = await self._apply_with_retry(apply, transaction_id)
            except AppError as e:
                await self._mark_failed(transaction_id, e.message)
                raise
            except Exception as e:
                await self._mark_failed(transaction_id, str(e))
                raise PersistenceError(
                    f"Transaction processing failed: {str(e)}",
                    transaction_id=transaction_id,
                    original_error=type(e).__name__,
                ) from e

            # The holding write has landed; from here the transaction completes
            # whatever happens to the aggregate refresh (recompute is idempotent
            # and can be re-run).
            portfolio: Portfolio | None = None
            refresh_error: AppError | None = None
            try:
                portfolio = await self._refresh_aggregates(portfolio_id)
            except ConcurrencyConflictError as e:
                logger.warning(
                    "Portfolio refresh deferred to the next recompute",
                    transaction_id=transaction_id,
                    portfolio_id=portfolio_id,
                    error=e.message,
                )
            except AppError as e:
                logger.error(
                    "Portfolio refresh failed after ledger write",
                    transaction_id=transaction_id,
                    portfolio_id=portfolio_id,
                    error=e.message,
                    error_type=e.error_type,
                )
                refresh_error = e

            completed = await self.transaction_repo.complete_transaction(
                transaction_id, mutation.holding.version
            )
            if completed is None:
                raise PersistenceError(
                    "Transaction was resolved by another process before completion",
                    transaction_id=transaction_id,
                )

        if refresh_error is not None:
            raise refresh_error

        if portfolio is None:
            portfolio = await self.portfolio_service.portfolio_repo.get(portfolio_id)

        logger.info(
            "Transaction completed",
            transaction_id=transaction_id,
            reference_number=completed.reference_number,
            transaction_type=completed.transaction_type,
            portfolio_id=portfolio_id,
            fund_id=completed.fund_id,
            units=mutation.units,
            amount=completed.amount,
            fees=completed.transaction_fees,
            holding_version=mutation.holding.version,
        )

        return TransactionResult(
            transaction=completed,
            fund=fund,
            units=mutation.units,
            fees=completed.transaction_fees,
            holding=mutation.holding,
            portfolio=portfolio,
        )

    async def _apply_with_retry(
        self,
        apply: Callable[[], Awaitable[HoldingMutation]],
        transaction_id: str,
    ) -> HoldingMutation:
        max_retries = self.settings.aggregate_max_retries

        for attempt in range(1, max_retries + 1):
            try:
                return await apply()
            except ConcurrencyConflictError:
                if attempt == max_retries:
                    raise
                logger.warning(
                    "Holding version conflict, retrying ledger write",
                    transaction_id=transaction_id,
                    attempt=attempt,
                )

        raise ConcurrencyConflictError(
            "Holding stayed contended", transaction_id=transaction_id
        )

    async def _refresh_aggregates(self, portfolio_id: str) -> Portfolio:
        # One recompute per portfolio at a time, each reading holdings after
        # its own ledger write landed, so the last one sees every write.
        async with self._lock(
            portfolio_lock_key(portfolio_id),
            "Portfolio is busy with another recompute",
            portfolio_id=portfolio_id,
        ):
            await self.portfolio_service.recompute_totals(portfolio_id)
            return await self.portfolio_service.recompute_allocation(portfolio_id)

    async def _mark_failed(self, transaction_id: str, reason: str) -> None:
        try:
            await self.transaction_repo.fail_transaction(transaction_id, reason)
        except AppError as mark_error:
            # Left open; the stuck-transaction query picks it up
            logger.error(
                "Could not mark transaction failed",
                transaction_id=transaction_id,
                reason=reason,
                error=mark_error.message,
            )

    def _holding_lock(
        self, portfolio_id: str, fund_id: str
    ) -> AbstractAsyncContextManager[None]:
        return self._lock(
            holding_lock_key(portfolio_id, fund_id),
            "Holding is busy with another transaction, try again",
            portfolio_id=portfolio_id,
            fund_id=fund_id,
        )

    @asynccontextmanager
    async def _lock(
        self, lock_key: str, busy_message: str, **context: str
    ) -> AsyncIterator[None]:
        max_attempts = self.settings.lock_max_attempts

        token = None
        for attempt in range(1, max_attempts + 1):
            token = await self.redis_cache.acquire_lock(
                lock_key, lock_ttl_seconds=self.settings.lock_ttl_seconds
            )
            if token:
                break
            if attempt < max_attempts:
                await asyncio.sleep(self.settings.lock_retry_delay_seconds)

        if not token:
            logger.warning("Lock contended", lock_key=lock_key, attempts=max_attempts)
            raise ConcurrencyConflictError(
                busy_message, attempts=max_attempts, **context
            )

        try:
            yield
        finally:
            await self.redis_cache.release_lock(lock_key, token)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_transaction(
        self, user_id: str, transaction_id: str
    ) -> InvestmentTransaction:
        """
        Get one of the user's transactions.

        Raises:
            NotFoundError: If the transaction does not exist
            AuthorizationError: If it belongs to another user
        """
        transaction = await self.transaction_repo.get_by_id(transaction_id)
        if not transaction:
            raise NotFoundError(
                f"Transaction {transaction_id} not found", transaction_id=transaction_id
            )
        if transaction.user_id != user_id:
            raise AuthorizationError(
                "Transaction belongs to another user",
                user_id=user_id,
                transaction_id=transaction_id,
            )
        return transaction

    async def get_by_reference(self, reference_number: str) -> InvestmentTransaction:
        """
        Look up a transaction by its external reference number.

        Raises:
            NotFoundError: If no transaction carries the reference
        """
        transaction = await self.transaction_repo.get_by_reference(reference_number)
        if not transaction:
            raise NotFoundError(
                f"Transaction {reference_number} not found",
                reference_number=reference_number,
            )
        return transaction

    async def get_user_transactions(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        portfolio_id: str | None = None,
    ) -> tuple[list[InvestmentTransaction], int]:
        """
        Paginated transaction history, newest first.

        Raises:
            ValidationError: On page < 1, page_size outside 1-100, or unknown status
        """
        if page < 1:
            raise ValidationError("Page must be >= 1", page=page)
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(
                f"Page size must be between 1 and {MAX_PAGE_SIZE}", page_size=page_size
            )
        if status is not None and status not in TRANSACTION_STATUSES:
            raise ValidationError(
                f"Unknown transaction status: {status}",
                status=status,
                allowed=list(TRANSACTION_STATUSES),
            )

        return await self.transaction_repo.get_user_transactions(
            user_id,
            page=page,
            page_size=page_size,
            status=status,
            portfolio_id=portfolio_id,
        )

    async def get_stuck_transactions(
        self, age_minutes: int | None = None
    ) -> list[InvestmentTransaction]:
        """
        Transactions still pending or processing after age_minutes
        (settings.stuck_transaction_age_minutes by default).

        A reconciliation job resolves them with fail_transaction().
        """
        if age_minutes is None:
            age_minutes = self.settings.stuck_transaction_age_minutes
        if age_minutes < 0:
            raise ValidationError(
                "Age must be >= 0 minutes", age_minutes=age_minutes
            )

        return await self.transaction_repo.find_stuck_transactions(
            age_minutes=age_minutes
        )
