"""MongoDB bootstrap and document helpers.

One ``AsyncMongoClient`` is created at startup and shared for the lifetime of
the process; collection handles are handed to the catalog and ledger stores.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, Optional

from bson import ObjectId
from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from topshelf.config import Settings, settings as default_settings
from topshelf.errors import InvalidIdentifier, StoreError

logger = logging.getLogger(__name__)


class Database:
    """Owns the Mongo client and exposes the book and loan collections."""

    def __init__(self, client: AsyncMongoClient, config: Optional[Settings] = None) -> None:
        self.settings = config or default_settings
        self._client = client
        self._database: AsyncDatabase = client[self.settings.database_name]

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "Database":
        config = config or default_settings
        client = AsyncMongoClient(
            config.mongo_uri,
            serverSelectionTimeoutMS=config.mongo_timeout_ms,
        )
        logger.info("MongoDB client created for database %s", config.database_name)
        return cls(client, config)

    @property
    def books(self) -> AsyncCollection:
        return self._database[self.settings.books_collection]

    @property
    def loans(self) -> AsyncCollection:
        return self._database[self.settings.loans_collection]

    async def ping(self) -> bool:
        """Return True when the deployment answers an admin ping."""
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as exc:
            logger.warning("MongoDB ping failed: %s", exc)
            return False

    async def close(self) -> None:
        await self._client.close()
        logger.info("MongoDB client closed")


def is_valid_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def parse_object_id(value: Any, message: str = "Invalid ID") -> ObjectId:
    """Convert an externally supplied id, raising InvalidIdentifier when malformed."""
    if not is_valid_id(value):
        raise InvalidIdentifier(message)
    return ObjectId(value)


def serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_value(v) for v in value]
    return value


def serialize_document(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON-safe; ``_id`` is kept under its own key."""
    if doc is None:
        return None
    return serialize_value(dict(doc))


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as StoreError. DuplicateKeyError passes through."""
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as exc:
        logger.exception("Store operation %s failed", operation)
        raise StoreError() from exc
