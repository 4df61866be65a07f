"""Error taxonomy for the lending core.

Every error carries the HTTP status and the client-facing message the API
renders as ``{"error": message}``.
"""

from __future__ import annotations


class LendingError(Exception):
    """Base class for errors raised by the catalog, ledger and workflow."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidIdentifier(LendingError):
    """An id-keyed operation received a malformed identifier."""

    status_code = 400
    default_message = "Invalid ID"


class NotFound(LendingError):
    """The identifier is well formed but no record matches it."""

    status_code = 404
    default_message = "Not found"


class AlreadyBorrowed(LendingError):
    """The borrower already holds an active loan for this book."""

    status_code = 400
    default_message = "Book Already Borrowed."


class DependencyUnavailable(LendingError):
    """The catalog lookup service could not resolve a book."""

    status_code = 502
    default_message = "Catalog service unavailable"


class StoreError(LendingError):
    """Unexpected persistence failure."""

    status_code = 500
    default_message = "Internal server error"
