"""
Unit tests for the holding ledger.

Tests:
- First buy creates the holding
- Weighted-average cost basis across buys at different NAVs
- Proportional cost basis reduction on sells
- Insufficient units leave the holding unchanged
- Full liquidation leaves a zeroed holding
- Stale writes are rejected by the version check
"""

import asyncio

import pytest
import pytest_asyncio

from portfolio_engine.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientUnitsError,
    NotFoundError,
    ValidationError,
)

PORTFOLIO_ID = "portfolio_test"
USER_ID = "user_123"


@pytest.fixture
def gold_fund(make_fund):
    return make_fund("fund_gold", fund_type="gold", nav=10.0)


class TestApplyBuy:
    """Test buys"""

    @pytest.mark.asyncio
    async def test_first_buy_creates_holding(self, engine, gold_fund):
        mutation = await engine.holding_ledger.apply_buy(
            USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0
        )

        holding = mutation.holding
        assert mutation.created is True
        assert mutation.units == pytest.approx(100.0)
        assert holding.units_held == pytest.approx(100.0)
        assert holding.average_buy_price == pytest.approx(10.0)
        assert holding.total_invested == pytest.approx(1000.0)
        assert holding.current_value == pytest.approx(1000.0)
        assert holding.unrealized_gain_loss == pytest.approx(0.0)
        assert holding.fund_type == "gold"
        assert holding.version == 1

    @pytest.mark.asyncio
    async def test_second_buy_moves_weighted_average(self, engine, gold_fund):
        await engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0)

        mutation = await engine.holding_ledger.apply_buy(
            USER_ID, PORTFOLIO_ID, gold_fund, 500.0, 20.0
        )

        holding = mutation.holding
        assert mutation.created is False
        assert mutation.units == pytest.approx(25.0)
        assert holding.units_held == pytest.approx(125.0)
        assert holding.total_invested == pytest.approx(1500.0)
        assert holding.average_buy_price == pytest.approx(12.0)
        assert holding.current_value == pytest.approx(2500.0)
        assert holding.unrealized_gain_loss == pytest.approx(1000.0)
        assert holding.version == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("navs", [(10.0, 12.5, 8.0, 31.0), (1.0, 1.0, 1.0, 1.0)])
    async def test_average_price_is_invested_over_units(self, engine, gold_fund, navs):
        for nav in navs:
            mutation = await engine.holding_ledger.apply_buy(
                USER_ID, PORTFOLIO_ID, gold_fund, 700.0, nav
            )

        holding = mutation.holding
        assert holding.average_buy_price == pytest.approx(
            holding.total_invested / holding.units_held
        )
        assert holding.total_invested == pytest.approx(700.0 * len(navs))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount,nav", [(0.0, 10.0), (-5.0, 10.0), (100.0, 0.0)])
    async def test_rejects_non_positive_inputs(self, engine, gold_fund, amount, nav):
        with pytest.raises(ValidationError):
            await engine.holding_ledger.apply_buy(
                USER_ID, PORTFOLIO_ID, gold_fund, amount, nav
            )

        assert await engine.holding_repo.get_by_fund(PORTFOLIO_ID, "fund_gold") is None


class TestApplySell:
    """Test sells"""

    @pytest_asyncio.fixture
    async def bought(self, engine, gold_fund):
        await engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0)
        await engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 500.0, 20.0)

    @pytest.mark.asyncio
    async def test_sell_reduces_cost_basis_proportionally(self, engine, bought):
        mutation = await engine.holding_ledger.apply_sell(
            PORTFOLIO_ID, "fund_gold", 50.0, 15.0
        )

        holding = mutation.holding
        assert holding.units_held == pytest.approx(75.0)
        assert holding.total_invested == pytest.approx(900.0)
        assert holding.average_buy_price == pytest.approx(12.0)
        assert holding.current_value == pytest.approx(1125.0)
        assert holding.unrealized_gain_loss == pytest.approx(225.0)
        assert mutation.amount == pytest.approx(750.0)

    @pytest.mark.asyncio
    async def test_insufficient_units_leaves_holding_unchanged(self, engine, bought):
        before = await engine.holding_repo.get_by_fund(PORTFOLIO_ID, "fund_gold")

        with pytest.raises(InsufficientUnitsError) as exc_info:
            await engine.holding_ledger.apply_sell(PORTFOLIO_ID, "fund_gold", 126.0, 15.0)

        after = await engine.holding_repo.get_by_fund(PORTFOLIO_ID, "fund_gold")
        assert after == before
        assert exc_info.value.context["units_held"] == pytest.approx(125.0)

    @pytest.mark.asyncio
    async def test_full_liquidation_zeroes_holding(self, engine, bought):
        mutation = await engine.holding_ledger.apply_sell(
            PORTFOLIO_ID, "fund_gold", 125.0, 15.0
        )

        holding = mutation.holding
        assert holding.units_held == 0.0
        assert holding.total_invested == 0.0
        assert holding.current_value == 0.0
        assert holding.average_buy_price == pytest.approx(12.0)
        assert await engine.holding_repo.get(holding.holding_id) is not None

    @pytest.mark.asyncio
    async def test_sell_without_holding(self, engine):
        with pytest.raises(NotFoundError):
            await engine.holding_ledger.apply_sell(PORTFOLIO_ID, "fund_none", 1.0, 10.0)


class TestRevalue:
    """Test mark-to-market"""

    @pytest.mark.asyncio
    async def test_revalue_changes_value_only(self, engine, gold_fund):
        await engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0)

        holding = await engine.holding_ledger.revalue(PORTFOLIO_ID, "fund_gold", 11.0)

        assert holding.units_held == pytest.approx(100.0)
        assert holding.total_invested == pytest.approx(1000.0)
        assert holding.current_value == pytest.approx(1100.0)
        assert holding.unrealized_gain_loss == pytest.approx(100.0)
        assert holding.unrealized_gain_loss_pct == pytest.approx(10.0)
        assert holding.last_nav == 11.0


class TestVersionCheck:
    """Test stale writes are rejected without the holding lock"""

    @pytest.mark.asyncio
    async def test_concurrent_unlocked_buys_conflict_instead_of_losing_update(
        self, engine, gold_fund
    ):
        await engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0)

        results = await asyncio.gather(
            engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0),
            engine.holding_ledger.apply_buy(USER_ID, PORTFOLIO_ID, gold_fund, 1000.0, 10.0),
            return_exceptions=True,
        )

        conflicts = [r for r in results if isinstance(r, ConcurrencyConflictError)]
        successes = [r for r in results if not isinstance(r, Exception)]
        holding = await engine.holding_repo.get_by_fund(PORTFOLIO_ID, "fund_gold")

        # Every landed write is reflected; nothing is silently overwritten
        assert len(successes) + len(conflicts) == 2
        assert holding.units_held == pytest.approx(100.0 * (1 + len(successes)))
        assert holding.version == 1 + len(successes)
