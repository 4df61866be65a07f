import os
from dataclasses import dataclass, field
from typing import List
from urllib.parse import quote_plus

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _default_mongo_uri() -> str:
    """MONGO_URI wins; otherwise build an Atlas-style URI from DB_USER/DB_PASS/DB_HOST."""
    uri = os.getenv("MONGO_URI")
    if uri:
        return uri
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASS")
    host = os.getenv("DB_HOST")
    if user and password and host:
        return (
            f"mongodb+srv://{quote_plus(user)}:{quote_plus(password)}@{host}/"
            "?retryWrites=true&w=majority"
        )
    return "mongodb://localhost:27017"


def _default_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("PORT", "5000"))

    # Database settings
    mongo_uri: str = _default_mongo_uri()
    database_name: str = os.getenv("DB_NAME", "TopShelfDB")
    books_collection: str = os.getenv("BOOKS_COLLECTION", "bookCollection")
    loans_collection: str = os.getenv("LOANS_COLLECTION", "borrowedCollection")
    mongo_timeout_ms: int = int(os.getenv("MONGO_TIMEOUT_MS", "5000"))
    # Unique (email, book_id) index on the ledger; closes the borrow race
    enforce_unique_loans: bool = _env_flag("ENFORCE_UNIQUE_LOANS", "true")

    # Catalog lookup service
    catalog_api_url: str = os.getenv("API_URL", "http://127.0.0.1:5000")
    catalog_timeout: float = float(os.getenv("CATALOG_TIMEOUT", "10"))
    catalog_max_connections: int = int(os.getenv("CATALOG_MAX_CONNECTIONS", "100"))

    # CORS
    cors_origins: List[str] = field(default_factory=_default_cors_origins)

    # Application settings
    app_name: str = os.getenv("APP_NAME", "TopShelf Lending API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG", "False")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


settings = Settings()
