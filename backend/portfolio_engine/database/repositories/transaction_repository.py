"""
Investment transaction repository.
Append-only ledger: rows are inserted pending and only their status moves.
"""

from typing import Any

import structlog
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ...core.exceptions import PersistenceError
from ...core.utils.date_utils import minutes_ago, utcnow
from ...core.utils.id_utils import generate_id, generate_reference_number
from ...models.transaction import (
    OPEN_STATUSES,
    InvestmentTransaction,
    TransactionCreate,
)
from ..errors import translate_driver_errors

logger = structlog.get_logger()

# Reference numbers are random; a collision is retried with a fresh one
MAX_REFERENCE_ATTEMPTS = 3


class TransactionRepository:
    """Repository for investment transaction data access operations."""

    def __init__(self, collection: AsyncIOMotorCollection):
        """
        Initialize transaction repository.

        Args:
            collection: MongoDB collection for transactions
        """
        self.collection = collection

    async def ensure_indexes(self) -> None:
        """
        Create indexes for optimal query performance.
        Called during engine startup.
        """
        await self.collection.create_index("transaction_id", unique=True)
        await self.collection.create_index("reference_number", unique=True)
        await self.collection.create_index([("user_id", 1), ("created_at", -1)])
        await self.collection.create_index([("portfolio_id", 1), ("created_at", -1)])
        await self.collection.create_index([("status", 1), ("created_at", 1)])

        logger.info("Transaction indexes created")

    @staticmethod
    def _to_model(transaction_dict: dict[str, Any]) -> InvestmentTransaction:
        transaction_dict.pop("_id", None)
        return InvestmentTransaction(**transaction_dict)

    @translate_driver_errors
    async def create_pending(
        self, transaction_create: TransactionCreate
    ) -> InvestmentTransaction:
        """
        Create a new pending transaction with a unique reference number.

        Args:
            transaction_create: Transaction creation data

        Returns:
            Created transaction with pending status
        """
        for attempt in range(1, MAX_REFERENCE_ATTEMPTS + 1):
            now = utcnow()
            transaction = InvestmentTransaction(
                transaction_id=generate_id("txn"),
                reference_number=generate_reference_number(),
                status="pending",
                transaction_date=now,
                created_at=now,
                updated_at=now,
                **transaction_create.model_dump(),
            )

            try:
                await self.collection.insert_one(transaction.model_dump())
            except DuplicateKeyError:
                logger.warning(
                    "Reference number collision, regenerating",
                    reference_number=transaction.reference_number,
                    attempt=attempt,
                )
                continue

            logger.info(
                "Transaction created",
                transaction_id=transaction.transaction_id,
                reference_number=transaction.reference_number,
                user_id=transaction.user_id,
                transaction_type=transaction.transaction_type,
                amount=transaction.amount,
            )

            return transaction

        raise PersistenceError(
            "Could not allocate a unique transaction reference number",
            attempts=MAX_REFERENCE_ATTEMPTS,
        )

    @translate_driver_errors
    async def get_by_id(self, transaction_id: str) -> InvestmentTransaction | None:
        """
        Get transaction by ID.

        Args:
            transaction_id: Transaction identifier

        Returns:
            Transaction if found, None otherwise
        """
        transaction_dict = await self.collection.find_one(
            {"transaction_id": transaction_id}
        )

        if not transaction_dict:
            return None

        return self._to_model(transaction_dict)

    @translate_driver_errors
    async def get_by_reference(
        self, reference_number: str
    ) -> InvestmentTransaction | None:
        """
        Get transaction by reference number.

        Args:
            reference_number: External reference (TXN-...)

        Returns:
            Transaction if found, None otherwise
        """
        transaction_dict = await self.collection.find_one(
            {"reference_number": reference_number}
        )

        if not transaction_dict:
            return None

        return self._to_model(transaction_dict)

    @translate_driver_errors
    async def mark_processing(
        self, transaction_id: str
    ) -> InvestmentTransaction | None:
        """
        Move a pending transaction to processing.

        Args:
            transaction_id: Transaction identifier

        Returns:
            Updated transaction if it was pending, None otherwise
        """
        result = await self.collection.find_one_and_update(
            {"transaction_id": transaction_id, "status": "pending"},
            {"$set": {"status": "processing", "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            logger.warning(
                "Transaction not pending - cannot start processing",
                transaction_id=transaction_id,
            )
            return None

        return self._to_model(result)

    @translate_driver_errors
    async def complete_transaction(
        self, transaction_id: str, holding_version: int
    ) -> InvestmentTransaction | None:
        """
        Mark transaction as completed.
        Uses atomic update with status condition so a failed row is never resurrected.

        Args:
            transaction_id: Transaction identifier
            holding_version: Holding version this transaction produced

        Returns:
            Updated transaction if it was still open, None otherwise
        """
        now = utcnow()
        result = await self.collection.find_one_and_update(
            {"transaction_id": transaction_id, "status": {"$in": list(OPEN_STATUSES)}},
            {
                "$set": {
                    "status": "completed",
                    "holding_version": holding_version,
                    "settlement_date": now,
                    "updated_at": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            logger.warning(
                "Transaction completion failed - not found or not open",
                transaction_id=transaction_id,
            )
            return None

        logger.info(
            "Transaction completed",
            transaction_id=transaction_id,
            holding_version=holding_version,
        )

        return self._to_model(result)

    @translate_driver_errors
    async def fail_transaction(
        self, transaction_id: str, reason: str
    ) -> InvestmentTransaction | None:
        """
        Mark transaction as failed.

        Args:
            transaction_id: Transaction identifier
            reason: Failure reason for the audit trail

        Returns:
            Updated transaction if it was still open, None otherwise
        """
        result = await self.collection.find_one_and_update(
            {"transaction_id": transaction_id, "status": {"$in": list(OPEN_STATUSES)}},
            {
                "$set": {
                    "status": "failed",
                    "failure_reason": reason,
                    "updated_at": utcnow(),
                }
            },
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            logger.warning(
                "Transaction failure marking failed - not found or not open",
                transaction_id=transaction_id,
            )
            return None

        logger.info(
            "Transaction marked as failed", transaction_id=transaction_id, reason=reason
        )

        return self._to_model(result)

    @translate_driver_errors
    async def find_stuck_transactions(
        self, age_minutes: int
    ) -> list[InvestmentTransaction]:
        """
        Find transactions stuck in pending/processing for reconciliation.

        Args:
            age_minutes: Minimum age in minutes to consider stuck

        Returns:
            List of stuck transactions, oldest first
        """
        cutoff_time = minutes_ago(age_minutes)

        cursor = self.collection.find(
            {"status": {"$in": list(OPEN_STATUSES)}, "created_at": {"$lt": cutoff_time}}
        ).sort("created_at", 1)

        transactions = []
        async for transaction_dict in cursor:
            transactions.append(self._to_model(transaction_dict))

        if transactions:
            logger.info(
                "Found stuck transactions",
                count=len(transactions),
                age_minutes=age_minutes,
            )

        return transactions

    @translate_driver_errors
    async def get_user_transactions(
        self,
        user_id: str,
        page: int = 1,
        page_size: int = 20,
        status: str | None = None,
        portfolio_id: str | None = None,
    ) -> tuple[list[InvestmentTransaction], int]:
        """
        Get paginated transaction history for a user.

        Args:
            user_id: User identifier
            page: Page number (1-indexed)
            page_size: Number of transactions per page
            status: Optional status filter
            portfolio_id: Optional portfolio filter

        Returns:
            Tuple of (transactions list, total count)
        """
        query_filter: dict[str, Any] = {"user_id": user_id}
        if status:
            query_filter["status"] = status
        if portfolio_id:
            query_filter["portfolio_id"] = portfolio_id

        total = await self.collection.count_documents(query_filter)

        skip = (page - 1) * page_size
        cursor = (
            self.collection.find(query_filter)
            .sort("created_at", -1)  # Newest first
            .skip(skip)
            .limit(page_size)
        )

        transactions = []
        async for transaction_dict in cursor:
            transactions.append(self._to_model(transaction_dict))

        logger.info(
            "Fetched user transactions",
            user_id=user_id,
            page=page,
            page_size=page_size,
            count=len(transactions),
            total=total,
        )

        return transactions, total
