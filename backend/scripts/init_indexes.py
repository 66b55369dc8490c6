"""
Initialize MongoDB indexes for the portfolio engine.
Run with: python -m scripts.init_indexes
"""

import asyncio

import structlog

from portfolio_engine.core.config import get_settings
from portfolio_engine.core.logging import configure_logging
from portfolio_engine.database.mongodb import MongoDB
from portfolio_engine.engine import Collections
from portfolio_engine.database.repositories import (
    FundRepository,
    HoldingRepository,
    PortfolioRepository,
    RecommendationRepository,
    RiskAssessmentRepository,
    TransactionRepository,
)

logger = structlog.get_logger()

REPOSITORIES = [
    (Collections.FUNDS, FundRepository),
    (Collections.RISK_ASSESSMENTS, RiskAssessmentRepository),
    (Collections.PORTFOLIOS, PortfolioRepository),
    (Collections.HOLDINGS, HoldingRepository),
    (Collections.TRANSACTIONS, TransactionRepository),
    (Collections.RECOMMENDATIONS, RecommendationRepository),
]


async def create_indexes() -> None:
    """Create all required indexes for the engine."""
    settings = get_settings()
    configure_logging(settings)

    mongodb = MongoDB()
    await mongodb.connect(settings.mongodb_url, settings.database_name)

    print("🔧 Initializing MongoDB Indexes\n")

    try:
        for collection_name, repository_cls in REPOSITORIES:
            print(f"📝 Creating indexes for '{collection_name}' collection...")
            repository = repository_cls(mongodb.get_collection(collection_name))
            await repository.ensure_indexes()
            print("  ✅ done")
    finally:
        await mongodb.disconnect()

    print("\n✅ All indexes created successfully!")


if __name__ == "__main__":
    asyncio.run(create_indexes())
