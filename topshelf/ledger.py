"""Loan ledger: one document per active loan."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import DuplicateKeyError

from topshelf.database import parse_object_id, serialize_document, store_errors
from topshelf.loan import BOOK_FIELD, BORROWER_FIELD, Loan

logger = logging.getLogger(__name__)

INVALID_LOAN_ID = "Invalid loan ID"
UNIQUE_LOAN_INDEX = "unique_active_loan"


class LoanLedger:
    """Persists loans. Rows are inserted on borrow and deleted on return, never updated."""

    def __init__(self, collection: AsyncCollection) -> None:
        self._collection = collection

    async def ensure_indexes(self) -> Optional[str]:
        """Create the unique (email, book_id) index that makes double borrowing impossible.

        Returns None when the ledger already holds duplicate loans; the index
        cannot be built until those rows are removed.
        """
        try:
            with store_errors("ledger.ensure_indexes"):
                name = await self._collection.create_index(
                    [(BORROWER_FIELD, ASCENDING), (BOOK_FIELD, ASCENDING)],
                    unique=True,
                    name=UNIQUE_LOAN_INDEX,
                )
        except DuplicateKeyError as e:
            logger.error(
                "Cannot build index %s: ledger holds duplicate (%s, %s) loans. "
                "Delete the extra rows and restart. %s",
                UNIQUE_LOAN_INDEX, BORROWER_FIELD, BOOK_FIELD, e,
            )
            return None
        logger.info("Ledger index %s ready", name)
        return name

    async def list_all(self) -> List[Dict[str, Any]]:
        """Every loan document as stored."""
        with store_errors("ledger.list_all"):
            docs = await self._collection.find({}).to_list(length=None)
        return [serialize_document(doc) for doc in docs]

    async def find_by_borrower(self, email: str) -> List[Loan]:
        with store_errors("ledger.find_by_borrower"):
            docs = await self._collection.find({BORROWER_FIELD: email}).to_list(length=None)
        return [Loan.from_document(doc) for doc in docs]

    async def find_active(self, email: str, book_id: str) -> Optional[Loan]:
        with store_errors("ledger.find_active"):
            doc = await self._collection.find_one({BORROWER_FIELD: email, BOOK_FIELD: book_id})
        return Loan.from_document(doc) if doc else None

    async def insert(self, loan: Loan) -> str:
        """Insert a loan. DuplicateKeyError from the unique index propagates to the caller."""
        with store_errors("ledger.insert"):
            result = await self._collection.insert_one(loan.to_document())
        loan.id = str(result.inserted_id)
        return loan.id

    async def delete(self, loan_id: str) -> int:
        """Delete by id and return the number of removed rows (0 when already gone)."""
        oid = parse_object_id(loan_id, INVALID_LOAN_ID)
        with store_errors("ledger.delete"):
            result = await self._collection.delete_one({"_id": oid})
        return result.deleted_count
