from __future__ import annotations

from typing import Any, Dict

from topshelf.database import serialize_document

CATEGORY_FIELD = "book_category"
QUANTITY_FIELD = "book_quantity"


class Book:
    """A single catalog record: id, category, quantity and descriptive payload."""

    def __init__(self, category: str, quantity: int = 0, id: str | None = None,
                 details: Dict[str, Any] | None = None) -> None:
        if quantity is None or int(quantity) < 0:
            raise ValueError("Book quantity cannot be negative.")
        self.id = id
        self.category = category.strip() if isinstance(category, str) else category
        self.quantity = int(quantity)
        # Name, author, image, rating... stored as submitted
        self.details = dict(details or {})

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.details.get('book_name', self.id)} [{self.category}] x{self.quantity}"

    def to_document(self) -> Dict[str, Any]:
        """Fields to persist; ``_id`` is assigned by the store."""
        doc = dict(self.details)
        doc[CATEGORY_FIELD] = self.category
        doc[QUANTITY_FIELD] = self.quantity
        return doc

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_document()
        if self.id is not None:
            data["_id"] = self.id
        return data

    @staticmethod
    def from_document(doc: Dict[str, Any]) -> "Book":
        data = serialize_document(doc)
        book_id = data.pop("_id", None)
        category = data.pop(CATEGORY_FIELD, None)
        quantity = data.pop(QUANTITY_FIELD, 0)
        # Phantom records created by an upsert may carry only a quantity
        if quantity is None:
            quantity = 0
        return Book(category=category, quantity=quantity, id=book_id, details=data)
