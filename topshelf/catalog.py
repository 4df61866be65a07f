"""Catalog store: persistent book records keyed by ObjectId."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pymongo.asynchronous.collection import AsyncCollection

from topshelf.book import QUANTITY_FIELD, Book
from topshelf.database import parse_object_id, serialize_document, store_errors
from topshelf.errors import NotFound

logger = logging.getLogger(__name__)

INVALID_BOOK_ID = "Invalid product ID"
BOOK_NOT_FOUND = "Book not found"


class CatalogStore:
    """Reads and writes book documents in the catalog collection."""

    def __init__(self, collection: AsyncCollection) -> None:
        self._collection = collection

    async def insert(self, book: Book) -> str:
        with store_errors("catalog.insert"):
            result = await self._collection.insert_one(book.to_document())
        book.id = str(result.inserted_id)
        logger.info("Catalog record %s created in category %s", book.id, book.category)
        return book.id

    async def find(self, filter: Optional[Dict[str, Any]] = None) -> List[Book]:
        """Books matching ``filter`` in storage order."""
        with store_errors("catalog.find"):
            docs = await self._collection.find(filter or {}).to_list(length=None)
        return [Book.from_document(doc) for doc in docs]

    async def get_document(self, book_id: str) -> Dict[str, Any]:
        """The stored record for ``book_id``, JSON-safe but otherwise untouched."""
        oid = parse_object_id(book_id, INVALID_BOOK_ID)
        with store_errors("catalog.get_document"):
            doc = await self._collection.find_one({"_id": oid})
        if doc is None:
            raise NotFound(BOOK_NOT_FOUND)
        return serialize_document(doc)

    async def find_by_id(self, book_id: str) -> Book:
        return Book.from_document(await self.get_document(book_id))

    async def update_quantity(self, book_id: str, quantity: int, upsert: bool = False) -> Dict[str, Any]:
        """Set ``book_quantity``. Without ``upsert`` a missing record is NotFound, never created."""
        oid = parse_object_id(book_id, INVALID_BOOK_ID)
        if quantity is None or quantity < 0:
            raise ValueError("Book quantity cannot be negative.")

        with store_errors("catalog.update_quantity"):
            result = await self._collection.update_one(
                {"_id": oid},
                {"$set": {QUANTITY_FIELD: quantity}},
                upsert=upsert,
            )
        if result.matched_count == 0 and result.upserted_id is None:
            raise NotFound(BOOK_NOT_FOUND)
        if result.upserted_id is not None:
            logger.warning("Quantity update created catalog record %s (upsert)", result.upserted_id)

        return {
            "acknowledged": result.acknowledged,
            "matched_count": result.matched_count,
            "modified_count": result.modified_count,
            "upserted_id": str(result.upserted_id) if result.upserted_id is not None else None,
        }
