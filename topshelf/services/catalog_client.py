"""Catalog lookup over HTTP.

The lending workflow runs outside the catalog service's process boundary, so
it resolves book ids through ``GET {API_URL}/book/{id}`` instead of reading
the catalog collection directly.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from topshelf.config import Settings, settings as default_settings
from topshelf.errors import DependencyUnavailable
from topshelf.services.http_client import PooledHTTPClient

logger = logging.getLogger(__name__)


@dataclass
class BookLookup:
    """Outcome of a catalog lookup: either the book's fields or the reason it is unavailable"""
    book_id: str
    fields: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.error is None

    @classmethod
    def unavailable(cls, book_id: str, reason: str) -> "BookLookup":
        return cls(book_id=book_id, error=reason)

    def raise_for_unavailable(self) -> Dict[str, Any]:
        if not self.available:
            raise DependencyUnavailable(f"Book {self.book_id} unavailable: {self.error}")
        return self.fields


class CatalogClient:
    """Resolves book ids against the catalog service. Never raises to its caller."""

    def __init__(self, http_client: PooledHTTPClient, base_url: Optional[str] = None,
                 config: Optional[Settings] = None):
        config = config or default_settings
        self.http_client = http_client
        self.base_url = (base_url or config.catalog_api_url).rstrip("/")

    def book_url(self, book_id: str) -> str:
        return f"{self.base_url}/book/{quote(str(book_id), safe='')}"

    async def fetch_book(self, book_id: str) -> BookLookup:
        url = self.book_url(book_id)
        try:
            response = await self.http_client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Catalog lookup for %s failed: %r", book_id, e)
            return BookLookup.unavailable(book_id, f"request failed: {e.__class__.__name__}")

        if response.status_code != 200:
            logger.warning("Catalog lookup for %s returned HTTP %s", book_id, response.status_code)
            return BookLookup.unavailable(book_id, f"HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Catalog lookup for %s returned a non-JSON body", book_id)
            return BookLookup.unavailable(book_id, "invalid JSON")

        if not isinstance(data, dict):
            return BookLookup.unavailable(book_id, "unexpected payload")

        return BookLookup(book_id=book_id, fields=data)
