import logging

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from topshelf.api import create_app
from topshelf.catalog import CatalogStore
from tests.fakes import DOWN_BOOK_ID, KNOWN_BOOK_ID, MISSING_BOOK_ID

EMAIL = "alice@x.com"


def _borrow(client, book_id=KNOWN_BOOK_ID, email=EMAIL, **extra):
    payload = {"email": email, "book_id": book_id,
               "borrowed_date": "2026-10-19", "return_date": "2026-11-02", **extra}
    return client.post("/borrowed", json=payload)


def test_root_and_health(client, fake_db):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Server is running."

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["db"] is True

    fake_db.reachable = False
    assert client.get("/health").json()["status"] == "degraded"


def test_startup_creates_unique_loan_index(client, fake_db):
    assert fake_db.loans.unique_keys == [["email", "book_id"]]


def test_borrow_return_borrow_scenario(client):
    response = _borrow(client)
    assert response.status_code == 200
    loan_id = response.json()["inserted_id"]
    assert ObjectId.is_valid(loan_id)

    response = _borrow(client)
    assert response.status_code == 400
    assert response.json() == {"error": "Book Already Borrowed."}

    response = client.delete(f"/borrowed/{loan_id}")
    assert response.status_code == 200
    assert response.json() == {"acknowledged": True, "deleted_count": 1}

    response = _borrow(client)
    assert response.status_code == 200


def test_delete_twice_is_harmless(client):
    loan_id = _borrow(client).json()["inserted_id"]
    assert client.delete(f"/borrowed/{loan_id}").json()["deleted_count"] == 1

    response = client.delete(f"/borrowed/{loan_id}")
    assert response.status_code == 200
    assert response.json()["deleted_count"] == 0
    assert client.get("/borrowed").json() == []


def test_malformed_ids_are_rejected_before_the_store(client, fake_db):
    calls_before = list(fake_db.loans.calls)

    response = _borrow(client, book_id="book-1")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid product ID"}

    response = client.delete("/borrowed/not-an-id")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid loan ID"}

    assert fake_db.loans.calls == calls_before


def test_borrow_requires_email(client):
    response = client.post("/borrowed", json={"book_id": KNOWN_BOOK_ID})
    assert response.status_code == 422


def test_list_all_loans(client):
    _borrow(client, user_name="Alice")
    _borrow(client, book_id=MISSING_BOOK_ID, email="bob@x.com")

    loans = client.get("/borrowed").json()
    assert [loan["email"] for loan in loans] == [EMAIL, "bob@x.com"]
    assert loans[0]["user_name"] == "Alice"
    assert "book_name" not in loans[0]


def test_enriched_loans_drop_unavailable_books(client):
    loan_id = _borrow(client).json()["inserted_id"]
    _borrow(client, book_id=MISSING_BOOK_ID)
    _borrow(client, book_id=DOWN_BOOK_ID)

    response = client.get(f"/borrowed/{EMAIL}")
    assert response.status_code == 200
    records = response.json()
    assert len(records) == 1
    assert records[0]["borrowed_id"] == loan_id
    assert records[0]["return_date"] == "2026-11-02"
    assert records[0]["borrowed_date"] == "2026-10-19"
    assert records[0]["book_name"] == "The Hobbit"


def test_enriched_loans_store_failure_is_500(client, fake_db):
    fake_db.loans.fail_with = PyMongoError("connection reset")
    response = client.get(f"/borrowed/{EMAIL}")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_book_lookup_by_id(client):
    created = client.post("/books", json={
        "book_category": "fantasy",
        "book_quantity": 2,
        "book_name": "The Hobbit",
    })
    assert created.status_code == 200
    book_id = created.json()["inserted_id"]

    response = client.get(f"/book/{book_id}")
    assert response.status_code == 200
    assert response.json() == {
        "_id": book_id,
        "book_category": "fantasy",
        "book_quantity": 2,
        "book_name": "The Hobbit",
    }

    response = client.get("/book/book-1")
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid product ID"}

    response = client.get(f"/book/{ObjectId()}")
    assert response.status_code == 404
    assert response.json() == {"error": "Book not found"}


def test_book_lookup_store_failure_is_500(client, fake_db):
    fake_db.books.fail_with = PyMongoError("boom")
    response = client.get(f"/book/{ObjectId()}")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_update_quantity(client, fake_db):
    book_id = client.post("/books", json={"book_category": "fantasy", "book_quantity": 2}).json()["inserted_id"]

    response = client.put(f"/book/{book_id}", json={"book_quantity": 1})
    assert response.status_code == 200
    assert response.json() == {"acknowledged": True, "matched_count": 1, "modified_count": 1, "upserted_id": None}
    assert client.get(f"/book/{book_id}").json()["book_quantity"] == 1


def test_update_quantity_strict_and_upsert(client, fake_db):
    phantom = str(ObjectId())

    response = client.put(f"/book/{phantom}", json={"book_quantity": 5})
    assert response.status_code == 404
    assert fake_db.books.docs == []

    response = client.put(f"/book/{phantom}?upsert=true", json={"book_quantity": 5})
    assert response.status_code == 200
    assert response.json()["upserted_id"] == phantom


def test_negative_quantity_is_rejected(client):
    assert client.post("/books", json={"book_category": "fantasy", "book_quantity": -1}).status_code == 422
    assert client.put(f"/book/{ObjectId()}", json={"book_quantity": -1}).status_code == 422


def test_update_quantity_malformed_id(client):
    response = client.put("/book/xyz", json={"book_quantity": 1})
    assert response.status_code == 400


def test_borrow_ignores_client_supplied_id(client):
    response = _borrow(client, _id="a" * 24)
    assert response.status_code == 200
    loan_id = response.json()["inserted_id"]
    assert loan_id != "a" * 24

    assert client.delete(f"/borrowed/{loan_id}").json()["deleted_count"] == 1
    assert _borrow(client).status_code == 200


@pytest.mark.parametrize("stored", [
    {"book_quantity": "ten", "book_category": "fantasy"},
    {"book_quantity": -1, "book_category": "fantasy"},
    {"book_quantity": 2.5, "book_category": 7},
    {"book_quantity": 4},
])
def test_book_lookup_returns_stored_record_verbatim(client, fake_db, stored):
    oid = ObjectId()
    fake_db.books.docs.append({"_id": oid, **stored})

    response = client.get(f"/book/{oid}")
    assert response.status_code == 200
    assert response.json() == {"_id": str(oid), **stored}


def test_unexpected_error_renders_json_500(test_settings, fake_db, http_client, monkeypatch):
    async def explode(self, book_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(CatalogStore, "get_document", explode)
    app = create_app(test_settings, database=fake_db, http_client=http_client)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get(f"/book/{ObjectId()}")
    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


def test_startup_survives_duplicate_loans(test_settings, fake_db, http_client, caplog):
    fake_db.loans.docs = [
        {"_id": ObjectId(), "email": EMAIL, "book_id": KNOWN_BOOK_ID},
        {"_id": ObjectId(), "email": EMAIL, "book_id": KNOWN_BOOK_ID},
    ]
    app = create_app(test_settings, database=fake_db, http_client=http_client)
    with caplog.at_level(logging.WARNING), TestClient(app) as test_client:
        assert test_client.get("/health").status_code == 200
        assert len(test_client.get("/borrowed").json()) == 2

    assert fake_db.loans.unique_keys == []
    assert "unique_active_loan" in caplog.text
    assert "concurrent borrows may create duplicates" in caplog.text


def test_unique_index_can_be_disabled(test_settings, fake_db, http_client, caplog):
    test_settings.enforce_unique_loans = False
    app = create_app(test_settings, database=fake_db, http_client=http_client)
    with caplog.at_level(logging.WARNING), TestClient(app) as test_client:
        assert _borrow(test_client).status_code == 200

    assert "create_index" not in fake_db.loans.calls
    assert "concurrent borrows may create duplicates" in caplog.text
