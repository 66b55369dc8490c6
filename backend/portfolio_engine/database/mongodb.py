"""
MongoDB connection manager.

One motor client per process; repositories receive their collection from
get_collection() at wiring time.
"""

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from ..core.exceptions import PersistenceError

logger = structlog.get_logger()

SERVER_SELECTION_TIMEOUT_MS = 5000


class MongoDB:
    """Holds the motor client and the engine database."""

    def __init__(self) -> None:
        self.client: AsyncIOMotorClient | None = None
        self.database: AsyncIOMotorDatabase | None = None

    async def connect(self, mongodb_url: str, database_name: str) -> None:
        """
        Open the client and verify the server answers.

        Args:
            mongodb_url: Connection string
            database_name: Database holding the engine collections
                (Settings.database_name, already validated)

        Raises:
            PersistenceError: If the server cannot be reached
        """
        # tz_aware keeps stored UTC timestamps comparable with utcnow()
        self.client = AsyncIOMotorClient(
            mongodb_url,
            tz_aware=True,
            serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
        )
        self.database = self.client[database_name]

        try:
            await self.client.admin.command("ping")
        except Exception as e:
            logger.error(
                "Failed to connect to MongoDB",
                database=database_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.client.close()
            self.client = None
            self.database = None
            raise PersistenceError(
                f"MongoDB connection failed: {str(e)}",
                database=database_name,
                original_error=type(e).__name__,
            ) from e

        logger.info("MongoDB connection established", database=database_name)

    async def disconnect(self) -> None:
        """Close the client."""
        if self.client:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("MongoDB connection closed")

    async def health_check(self) -> dict[str, bool | str]:
        """Ping the server; never raises."""
        if self.client is None or self.database is None:
            return {"connected": False, "error": "No client connection"}

        try:
            await self.client.admin.command("ping")
            server_info = await self.client.server_info()
        except Exception as e:
            logger.error("MongoDB health check failed", error=str(e))
            return {"connected": False, "error": str(e)}

        return {
            "connected": True,
            "version": server_info.get("version", "unknown"),
            "database": self.database.name,
        }

    def get_collection(self, collection_name: str) -> AsyncIOMotorCollection:
        """
        Collection in the engine database.

        Raises:
            PersistenceError: If connect() has not run
        """
        if self.database is None:
            raise PersistenceError(
                "Cannot get collection: database connection not established",
                collection_name=collection_name,
            )
        return self.database[collection_name]
