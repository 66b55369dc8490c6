"""
Engine wiring.

Builds repositories and services from connected MongoDB and Redis managers.
Callers (an HTTP layer, a worker, a script) use lifespan() to get a ready
engine and release its connections on exit:

    async with lifespan() as engine:
        result = await engine.transactions.buy(user_id, portfolio_id, fund_id, 1000)
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .database.mongodb import MongoDB
from .database.redis import RedisCache
from .database.repositories.fund_repository import FundRepository
from .database.repositories.holding_repository import HoldingRepository
from .database.repositories.portfolio_repository import PortfolioRepository
from .database.repositories.recommendation_repository import (
    RecommendationRepository,
)
from .database.repositories.risk_assessment_repository import (
    RiskAssessmentRepository,
)
from .database.repositories.transaction_repository import TransactionRepository
from .services.fund_catalog_service import FundCatalogService
from .services.holding_ledger import HoldingLedger
from .services.portfolio_service import PortfolioService
from .services.recommendation_service import RecommendationService
from .services.risk_assessment_service import RiskAssessmentService
from .services.transaction_service import TransactionService

logger = structlog.get_logger()


class Collections:
    """MongoDB collection names."""

    FUNDS = "investment_funds"
    RISK_ASSESSMENTS = "risk_assessments"
    PORTFOLIOS = "portfolios"
    HOLDINGS = "portfolio_holdings"
    TRANSACTIONS = "investment_transactions"
    RECOMMENDATIONS = "investment_recommendations"


class PortfolioEngine:
    """Repositories and services sharing one MongoDB and one Redis connection."""

    def __init__(self, mongodb: MongoDB, redis_cache: RedisCache, settings: Settings):
        self.mongodb = mongodb
        self.redis_cache = redis_cache
        self.settings = settings

        # Repositories
        self.fund_repo = FundRepository(mongodb.get_collection(Collections.FUNDS))
        self.assessment_repo = RiskAssessmentRepository(
            mongodb.get_collection(Collections.RISK_ASSESSMENTS)
        )
        self.portfolio_repo = PortfolioRepository(
            mongodb.get_collection(Collections.PORTFOLIOS)
        )
        self.holding_repo = HoldingRepository(
            mongodb.get_collection(Collections.HOLDINGS)
        )
        self.transaction_repo = TransactionRepository(
            mongodb.get_collection(Collections.TRANSACTIONS)
        )
        self.recommendation_repo = RecommendationRepository(
            mongodb.get_collection(Collections.RECOMMENDATIONS)
        )

        # Services
        self.funds = FundCatalogService(self.fund_repo, redis_cache, settings)
        self.risk_assessments = RiskAssessmentService(self.assessment_repo)
        self.holding_ledger = HoldingLedger(self.holding_repo)
        self.portfolios = PortfolioService(
            portfolio_repo=self.portfolio_repo,
            holding_repo=self.holding_repo,
            assessment_repo=self.assessment_repo,
            transaction_repo=self.transaction_repo,
            fund_catalog=self.funds,
            settings=settings,
        )
        self.transactions = TransactionService(
            transaction_repo=self.transaction_repo,
            fund_catalog=self.funds,
            holding_ledger=self.holding_ledger,
            portfolio_service=self.portfolios,
            redis_cache=redis_cache,
            settings=settings,
        )
        self.recommendations = RecommendationService(
            recommendation_repo=self.recommendation_repo,
            assessment_repo=self.assessment_repo,
            fund_catalog=self.funds,
            settings=settings,
        )

    async def ensure_indexes(self) -> None:
        """Create indexes for every collection the engine owns."""
        for repo in (
            self.fund_repo,
            self.assessment_repo,
            self.portfolio_repo,
            self.holding_repo,
            self.transaction_repo,
            self.recommendation_repo,
        ):
            await repo.ensure_indexes()

        logger.info("Engine indexes ensured")

    async def health_check(self) -> dict[str, Any]:
        """Connection status of MongoDB and Redis."""
        return {
            "mongodb": await self.mongodb.health_check(),
            "redis": await self.redis_cache.health_check(),
        }


@asynccontextmanager
async def lifespan(
    settings: Settings | None = None,
) -> AsyncGenerator[PortfolioEngine, None]:
    """Connect, ensure indexes, yield the engine, disconnect."""
    settings = settings or get_settings()
    configure_logging(settings)

    logger.info("Starting portfolio engine", environment=settings.environment)

    mongodb = MongoDB()
    redis_cache = RedisCache()

    try:
        await mongodb.connect(settings.mongodb_url, settings.database_name)
        await redis_cache.connect(settings.redis_url)

        engine = PortfolioEngine(mongodb, redis_cache, settings)
        await engine.ensure_indexes()

        yield engine

    finally:
        await redis_cache.disconnect()
        await mongodb.disconnect()
        logger.info("Portfolio engine stopped")
