"""Borrowing workflow: create, list and release loans against the ledger."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List

from pymongo.errors import DuplicateKeyError

from topshelf.catalog import INVALID_BOOK_ID
from topshelf.database import is_valid_id
from topshelf.errors import AlreadyBorrowed, DependencyUnavailable, InvalidIdentifier
from topshelf.ledger import INVALID_LOAN_ID, LoanLedger
from topshelf.loan import Loan
from topshelf.services.catalog_client import CatalogClient

logger = logging.getLogger(__name__)


class BorrowingService:
    """Enforces one active loan per (borrower, book) and joins loans with catalog data on read."""

    def __init__(self, ledger: LoanLedger, catalog_client: CatalogClient) -> None:
        self.ledger = ledger
        self.catalog_client = catalog_client

    # ------------------------- Reads ------------------------- #
    async def list_all(self) -> List[Dict[str, Any]]:
        """Administrative view: every loan as stored, no enrichment."""
        return await self.ledger.list_all()

    async def list_by_borrower(self, email: str) -> List[Dict[str, Any]]:
        """Loans of ``email`` merged with live catalog fields, in ledger order.

        Lookups run concurrently and the batch is joined as a whole. A loan
        whose book cannot be resolved is dropped from the result; it never
        fails the response or cancels the other lookups.
        """
        loans = await self.ledger.find_by_borrower(email)
        if not loans:
            return []

        lookups = await asyncio.gather(
            *(self.catalog_client.fetch_book(loan.book_id) for loan in loans),
            return_exceptions=True,
        )

        enriched: List[Dict[str, Any]] = []
        for loan, lookup in zip(loans, lookups):
            if isinstance(lookup, BaseException):
                logger.warning("Dropping loan %s: lookup raised %r", loan.id, lookup)
                continue
            try:
                fields = lookup.raise_for_unavailable()
            except DependencyUnavailable as e:
                logger.warning("Dropping loan %s from %s's list: %s", loan.id, email, e.message)
                continue
            enriched.append(loan.enrich(fields))
        return enriched

    # ------------------------- Writes ------------------------- #
    async def borrow(self, email: str, book_id: str, loan_fields: Dict[str, Any] | None = None) -> str:
        """Record a new loan and return its id.

        Raises InvalidIdentifier before touching the store when ``book_id`` is
        malformed, and AlreadyBorrowed when an active loan exists. The
        pre-check and the insert are separate awaits; the ledger's unique
        index turns a racing second insert into the same AlreadyBorrowed.
        """
        if not is_valid_id(book_id):
            raise InvalidIdentifier(INVALID_BOOK_ID)

        fields = dict(loan_fields or {})
        # Loan ids are assigned by the store
        if fields.pop("_id", None) is not None:
            logger.info("Ignoring client-supplied _id on borrow by %s", email)
        loan = Loan(
            email=email,
            book_id=book_id,
            borrowed_date=fields.pop("borrowed_date", None),
            return_date=fields.pop("return_date", None),
            extra=fields,
        )

        if await self.ledger.find_active(loan.email, loan.book_id):
            logger.info("Rejected borrow: %s already holds %s", loan.email, loan.book_id)
            raise AlreadyBorrowed()

        try:
            loan_id = await self.ledger.insert(loan)
        except DuplicateKeyError as e:
            logger.info("Rejected borrow by unique index: %s already holds %s", loan.email, loan.book_id)
            raise AlreadyBorrowed() from e

        logger.info("Loan %s created: %s borrowed %s", loan_id, loan.email, loan.book_id)
        return loan_id

    async def return_book(self, loan_id: str) -> int:
        """Delete a loan. Returns 0 when it was already gone."""
        if not is_valid_id(loan_id):
            raise InvalidIdentifier(INVALID_LOAN_ID)
        deleted = await self.ledger.delete(loan_id)
        if deleted:
            logger.info("Loan %s returned", loan_id)
        else:
            logger.info("Loan %s was not in the ledger", loan_id)
        return deleted

