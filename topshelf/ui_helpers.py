import os
import json
from typing import Any, Dict, List
from rich.console import Console
from rich.table import Table

# Environment variable controlling CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "TOPSHELF_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _title(record: Dict[str, Any]) -> str:
    return str(record.get("book_name") or record.get("book_id") or record.get("_id", ""))

def print_loans_result(loans: List[Dict[str, Any]]) -> None:
    """Print loans in the current output mode.
    - plain: 'LOAN_ID - EMAIL - BOOK (due RETURN_DATE)' lines, or 'No active loans.'
    - json: the records as a JSON array
    - rich: Rich table
    """
    mode = get_output_mode()

    if not loans:
        print("No active loans.")
        return

    if mode == "json":
        print(json.dumps(loans, ensure_ascii=False, default=str))
    elif mode == "rich":
        table = Table(title="📚 Loans", show_lines=True, header_style="bold cyan")
        table.add_column("Loan", style="magenta", no_wrap=True)
        table.add_column("Borrower", style="white")
        table.add_column("Book", style="white")
        table.add_column("Due", style="white")
        for loan in loans:
            table.add_row(
                str(loan.get("borrowed_id") or loan.get("_id", "")),
                str(loan.get("email", "")),
                _title(loan),
                str(loan.get("return_date") or "-"),
            )
        _console.print(table)
    else:
        for loan in loans:
            loan_id = loan.get("borrowed_id") or loan.get("_id", "")
            borrower = loan.get("email")
            prefix = f"{loan_id} - {borrower} - " if borrower else f"{loan_id} - "
            print(f"{prefix}{_title(loan)} (due {loan.get('return_date') or '-'})")
