from __future__ import annotations

from typing import Any, Dict

from topshelf.database import serialize_document

BORROWER_FIELD = "email"
BOOK_FIELD = "book_id"


class Loan:
    """An active borrow record. Its presence in the ledger means "currently borrowed"."""

    def __init__(self, email: str, book_id: str, borrowed_date: str | None = None,
                 return_date: str | None = None, id: str | None = None,
                 extra: Dict[str, Any] | None = None) -> None:
        self.email = email.strip()
        self.book_id = book_id.strip()
        self.borrowed_date = borrowed_date
        self.return_date = return_date
        self.id = id
        # Any other loan fields the client submitted
        self.extra = dict(extra or {})

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.email} holds {self.book_id} until {self.return_date}"

    def to_document(self) -> Dict[str, Any]:
        doc = dict(self.extra)
        doc.update({
            BORROWER_FIELD: self.email,
            BOOK_FIELD: self.book_id,
            "borrowed_date": self.borrowed_date,
            "return_date": self.return_date,
        })
        return doc

    def enrich(self, book_fields: Dict[str, Any]) -> Dict[str, Any]:
        """Merge loan metadata with catalog fields; catalog keys win on collision."""
        return {
            "return_date": self.return_date,
            "borrowed_date": self.borrowed_date,
            "borrowed_id": self.id,
            **book_fields,
        }

    @staticmethod
    def from_document(doc: Dict[str, Any]) -> "Loan":
        data = serialize_document(doc)
        return Loan(
            email=data.pop(BORROWER_FIELD, ""),
            book_id=data.pop(BOOK_FIELD, ""),
            borrowed_date=data.pop("borrowed_date", None),
            return_date=data.pop("return_date", None),
            id=data.pop("_id", None),
            extra=data,
        )
