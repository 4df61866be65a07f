import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field

from topshelf.book import Book
from topshelf.catalog import CatalogStore
from topshelf.config import Settings, settings as default_settings
from topshelf.database import Database
from topshelf.errors import LendingError
from topshelf.ledger import LoanLedger
from topshelf.lending import BorrowingService
from topshelf.services.catalog_client import CatalogClient
from topshelf.services.http_client import PooledHTTPClient

logger = logging.getLogger(__name__)


# --- Models ---
class BorrowRequest(BaseModel):
    """Loan submitted by the client; unknown keys are stored with the loan"""
    model_config = ConfigDict(extra="allow")

    email: str = Field(min_length=1)
    book_id: str
    borrowed_date: str | None = None
    return_date: str | None = None


class BookCreateModel(BaseModel):
    """Catalog record; descriptive fields (name, author, image...) pass through untyped"""
    model_config = ConfigDict(extra="allow")

    book_category: str = Field(min_length=1)
    book_quantity: int = Field(default=0, ge=0)


class QuantityUpdateModel(BaseModel):
    book_quantity: int = Field(ge=0)


class InsertResultModel(BaseModel):
    acknowledged: bool = True
    inserted_id: str


class DeleteResultModel(BaseModel):
    acknowledged: bool = True
    deleted_count: int


class UpdateResultModel(BaseModel):
    acknowledged: bool = True
    matched_count: int
    modified_count: int
    upserted_id: str | None = None


# --- Dependencies ---
def get_catalog_store(request: Request) -> CatalogStore:
    return request.app.state.catalog_store


def get_borrowing_service(request: Request) -> BorrowingService:
    return request.app.state.borrowing


def _wire_services(app: FastAPI, database: Database, http_client: PooledHTTPClient, config: Settings) -> None:
    """Build the stores and the workflow around the shared handles."""
    app.state.database = database
    app.state.http_client = http_client
    app.state.catalog_store = CatalogStore(database.books)
    app.state.ledger = LoanLedger(database.loans)
    app.state.borrowing = BorrowingService(
        app.state.ledger,
        CatalogClient(http_client, config=config),
    )


def create_app(config: Optional[Settings] = None,
               database: Optional[Database] = None,
               http_client: Optional[PooledHTTPClient] = None) -> FastAPI:
    """Create the lending API.

    ``database`` and ``http_client`` are created in the lifespan when not
    supplied, and only resources created there are closed at shutdown.
    """
    config = config or default_settings
    logging.basicConfig(level=config.log_level.upper())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_db = database is None
        owned_http = http_client is None
        db = database or Database.from_settings(config)
        http = http_client or PooledHTTPClient(config)
        _wire_services(app, db, http, config)

        index = await app.state.ledger.ensure_indexes() if config.enforce_unique_loans else None
        if index is None:
            logger.warning("Unique loan index not in place; concurrent borrows may create duplicates")

        try:
            yield
        finally:
            if owned_http:
                await http.close()
            if owned_db:
                await db.close()

    app = FastAPI(title=config.app_name, version=config.app_version, debug=config.debug, lifespan=lifespan)

    # --- CORS ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(LendingError)
    async def lending_error_handler(request: Request, exc: LendingError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": LendingError.default_message})

    # --- Health ---
    @app.get("/", response_class=PlainTextResponse)
    async def root():
        return "Server is running."

    @app.get("/health")
    async def health(request: Request):
        """Lightweight health endpoint with a store ping."""
        db_ok = await request.app.state.database.ping()
        return {
            "status": "healthy" if db_ok else "degraded",
            "db": db_ok,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # --- Catalog ---
    @app.post("/books", response_model=InsertResultModel)
    async def create_book(payload: BookCreateModel, store: CatalogStore = Depends(get_catalog_store)):
        details = payload.model_dump(exclude={"book_category", "book_quantity"})
        book = Book(category=payload.book_category, quantity=payload.book_quantity, details=details)
        return InsertResultModel(inserted_id=await store.insert(book))

    @app.get("/book/{book_id}")
    async def get_book(book_id: str, store: CatalogStore = Depends(get_catalog_store)) -> Dict[str, Any]:
        return await store.get_document(book_id)

    @app.put("/book/{book_id}", response_model=UpdateResultModel)
    async def update_book_quantity(
        book_id: str,
        payload: QuantityUpdateModel,
        upsert: bool = Query(False, description="Create the record when the id does not exist"),
        store: CatalogStore = Depends(get_catalog_store),
    ):
        result = await store.update_quantity(book_id, payload.book_quantity, upsert=upsert)
        return UpdateResultModel(**result)

    # --- Loans ---
    @app.get("/borrowed")
    async def list_borrowed(service: BorrowingService = Depends(get_borrowing_service)) -> List[Dict[str, Any]]:
        return await service.list_all()

    @app.get("/borrowed/{email}")
    async def list_borrowed_by_email(
        email: str, service: BorrowingService = Depends(get_borrowing_service)
    ) -> List[Dict[str, Any]]:
        return await service.list_by_borrower(email)

    @app.post("/borrowed", response_model=InsertResultModel)
    async def borrow_book(payload: BorrowRequest, service: BorrowingService = Depends(get_borrowing_service)):
        loan_fields = payload.model_dump(exclude={"email", "book_id"})
        loan_id = await service.borrow(payload.email, payload.book_id, loan_fields)
        return InsertResultModel(inserted_id=loan_id)

    @app.delete("/borrowed/{loan_id}", response_model=DeleteResultModel)
    async def return_borrowed(loan_id: str, service: BorrowingService = Depends(get_borrowing_service)):
        return DeleteResultModel(deleted_count=await service.return_book(loan_id))

    return app


app = create_app()
