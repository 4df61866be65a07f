"""TopShelf - Lending Service Package

This package contains the book-lending backend:
- HTTP API (api.py)
- Borrowing workflow (lending.py)
- Catalog store and loan ledger (catalog.py, ledger.py)
- Data models (book.py, loan.py)
- MongoDB bootstrap (database.py)
- Admin CLI (main.py)
"""
