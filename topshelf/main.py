import asyncio
import logging
import subprocess
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Tuple

import typer
from rich.console import Console

from topshelf.config import settings
from topshelf.database import Database
from topshelf.errors import LendingError
from topshelf.ledger import LoanLedger
from topshelf.lending import BorrowingService
from topshelf.services.catalog_client import CatalogClient
from topshelf.services.http_client import PooledHTTPClient
from topshelf.ui_helpers import print_loans_result, set_output_mode

APP_NAME = "TopShelf CLI"

console = Console()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_lending() -> AsyncIterator[Tuple[Database, BorrowingService]]:
    """Open the store and the catalog client for one CLI command."""
    database = Database.from_settings(settings)
    http_client = PooledHTTPClient(settings)
    try:
        service = BorrowingService(LoanLedger(database.loans), CatalogClient(http_client))
        yield database, service
    finally:
        await http_client.close()
        await database.close()


# --- Typer CLI app ---
app = typer.Typer(help=APP_NAME)


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level"),
):
    """Global options for the CLI (output mode, verbosity)."""
    logging.basicConfig(level=logging.DEBUG if verbose else settings.log_level.upper())
    if output:
        set_output_mode(output)


@app.command("loans")
def cli_loans(email: Optional[str] = typer.Option(None, "--email", "-e", help="Only this borrower's loans, with catalog details")):
    """List active loans."""
    async def _run():
        async with open_lending() as (_, service):
            if email:
                return await service.list_by_borrower(email)
            return await service.list_all()

    try:
        loans = asyncio.run(_run())
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    print_loans_result(loans)


@app.command("return")
def cli_return(loan_id: str):
    """Return a borrowed book by deleting its loan."""
    async def _run():
        async with open_lending() as (_, service):
            return await service.return_book(loan_id)

    try:
        deleted = asyncio.run(_run())
    except LendingError as e:
        print(f"Error: {e.message}")
        raise typer.Exit(code=1)
    if deleted:
        print(f"Loan {loan_id} has been returned.")
    else:
        print(f"Loan {loan_id} not found.")


@app.command("ping")
def cli_ping():
    """Check that the database answers."""
    async def _run():
        async with open_lending() as (database, _):
            return await database.ping()

    if asyncio.run(_run()):
        print(f"Connected to {settings.database_name}.")
    else:
        print(f"Could not reach {settings.database_name}.")
        raise typer.Exit(code=1)


@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host", help="Bind address"),
    port: int = typer.Option(settings.api_port, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the HTTP API with uvicorn."""
    console.print(f"[bold green]Starting API on http://{host}:{port}[/]")
    cmd = [sys.executable, "-m", "uvicorn", "topshelf.api:app", "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")
    subprocess.run(cmd, check=False)


if __name__ == "__main__":
    app()
