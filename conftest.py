import pytest
from fastapi.testclient import TestClient

from topshelf.api import create_app
from topshelf.config import Settings
from topshelf.ledger import LoanLedger
from topshelf.lending import BorrowingService
from topshelf.services.catalog_client import CatalogClient
from topshelf.services.http_client import PooledHTTPClient
from tests.fakes import DOWN_BOOK_ID, KNOWN_BOOK_ID, FakeDatabase, catalog_transport


@pytest.fixture
def test_settings():
    return Settings(
        catalog_api_url="http://catalog.test",
        catalog_timeout=2.0,
        enforce_unique_loans=True,
        cors_origins=["http://localhost:5173"],
    )


@pytest.fixture
def catalog_books():
    return {
        KNOWN_BOOK_ID: {
            "_id": KNOWN_BOOK_ID,
            "book_name": "The Hobbit",
            "author_name": "J. R. R. Tolkien",
            "book_category": "fantasy",
            "book_quantity": 3,
        },
    }


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def http_client(test_settings, catalog_books):
    transport = catalog_transport(catalog_books, down={DOWN_BOOK_ID})
    return PooledHTTPClient(test_settings, transport=transport)


@pytest.fixture
def ledger(fake_db):
    return LoanLedger(fake_db.loans)


@pytest.fixture
def service(ledger, http_client, test_settings):
    return BorrowingService(ledger, CatalogClient(http_client, config=test_settings))


@pytest.fixture
def client(test_settings, fake_db, http_client):
    app = create_app(test_settings, database=fake_db, http_client=http_client)
    with TestClient(app) as test_client:
        yield test_client
