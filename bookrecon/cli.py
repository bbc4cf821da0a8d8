"""bookrecon CLI.

Commands:
- isbn: Validate and normalize ISBNs
- check: Classify a book submission against the catalog API
- resolve: Classify a submission and apply one resolution action
- quote: Price a quotation from a JSON file (offline)
- init: Initialize the reference catalog database
- serve: Run the reference catalog API
"""

from __future__ import annotations

import asyncio
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from bookrecon.api.client import CatalogApiClient
from bookrecon.config import get_config
from bookrecon.core.errors import BookreconError, LocalValidationError
from bookrecon.core.logging import configure_logging
from bookrecon.core.session import ApiSession
from bookrecon.db.connection import close_db, init_db
from bookrecon.identifiers import isbn as isbn_utils
from bookrecon.quotation.calculator import LineInput, calculate
from bookrecon.quotation.draft import coerce_non_negative, coerce_quantity
from bookrecon.reconciliation.models import ReconciliationResult, ResolutionAction
from bookrecon.reconciliation.workflow import BookInsertionFlow, build_submission

app = typer.Typer(
    name="bookrecon",
    help="bookrecon - Book reconciliation and quotation pricing",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    configure_logging(level="DEBUG" if verbose else None)


def _load_json(path: Path) -> dict:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]✗[/red] Cannot read {path}: {exc}")
        raise typer.Exit(1) from exc


def _session(base_url: str | None, token: str | None) -> ApiSession:
    session = ApiSession.anonymous(base_url)
    if token:
        session = ApiSession(base_url=session.base_url, auth_token=token)
    return session


def _print_result(result: ReconciliationResult, actions: list[ResolutionAction]) -> None:
    status = result.book_status.value
    if result.pricing_status is not None:
        status = f"{status} / {result.pricing_status.value}"
    color = "red" if result.book_status.is_conflict else "green"
    console.print(f"[bold {color}]{status}[/bold {color}] {result.message}")

    if result.conflict_fields:
        table = Table(title="Conflicting fields")
        table.add_column("Field", style="cyan")
        table.add_column("Catalog")
        table.add_column("Submitted", style="yellow")
        for name, change in result.conflict_fields.items():
            table.add_row(name, str(change.old or ""), str(change.new or ""))
        console.print(table)

    if result.differences:
        table = Table(title="Pricing differences")
        table.add_column("Field", style="cyan")
        table.add_column("Catalog")
        table.add_column("Submitted", style="yellow")
        for diff in result.differences:
            table.add_row(diff.field, str(diff.existing), str(diff.new))
        console.print(table)

    offered = ", ".join(a.value for a in actions) or "none"
    console.print(f"Allowed actions: {offered}")


def _read_submission(path: Path):
    data = _load_json(path)
    try:
        return build_submission(
            data.get("bookData", {}),
            data.get("pricingData", {}),
            data.get("publisherData"),
        )
    except LocalValidationError as exc:
        console.print("[red]✗ Submission is invalid:[/red]")
        for field, message in exc.errors.items():
            console.print(f"  {field}: {message}")
        raise typer.Exit(1) from exc


@app.command()
def isbn(values: list[str] = typer.Argument(..., help="ISBNs to check")):
    """Validate ISBN-10/13 values and show their normalized forms."""
    table = Table(title="ISBN check")
    table.add_column("Input", style="cyan")
    table.add_column("Normalized")
    table.add_column("Valid")
    table.add_column("ISBN-13")

    all_valid = True
    for value in values:
        valid = isbn_utils.validate(value)
        all_valid = all_valid and valid
        table.add_row(
            value,
            isbn_utils.normalize(value),
            "[green]yes[/green]" if valid else "[red]no[/red]",
            isbn_utils.to_isbn13(value) or "",
        )
    console.print(table)
    if not all_valid:
        raise typer.Exit(1)


@app.command()
def check(
    submission_file: Path = typer.Argument(..., help="JSON file with bookData/pricingData/publisherData"),
    base_url: str | None = typer.Option(None, "--api", help="Catalog API base URL"),
    token: str | None = typer.Option(None, "--token", envvar="BOOKRECON_TOKEN", help="Bearer token"),
):
    """Classify a submission without changing the catalog."""
    submission = _read_submission(submission_file)

    async def _check():
        async with CatalogApiClient(_session(base_url, token)) as client:
            flow = BookInsertionFlow(client)
            result = await flow.check(submission)
            _print_result(result, flow.actions())

    try:
        asyncio.run(_check())
    except BookreconError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command()
def resolve(
    submission_file: Path = typer.Argument(..., help="JSON file with bookData/pricingData/publisherData"),
    action: ResolutionAction = typer.Option(..., "--action", "-a", help="Resolution action"),
    base_url: str | None = typer.Option(None, "--api", help="Catalog API base URL"),
    token: str | None = typer.Option(None, "--token", envvar="BOOKRECON_TOKEN", help="Bearer token"),
):
    """Classify a submission, then apply ACTION if the classification allows it."""
    submission = _read_submission(submission_file)

    async def _resolve():
        async with CatalogApiClient(_session(base_url, token)) as client:
            flow = BookInsertionFlow(client)
            result = await flow.check(submission)
            _print_result(result, flow.actions())
            response = await flow.choose(action)
            console.print(f"[bold green]✓[/bold green] {response.action.value}: {response.message}")
            if response.book_id:
                console.print(f"  book: {response.book_id}")
            if response.pricing_id:
                console.print(f"  pricing: {response.pricing_id}")

    try:
        asyncio.run(_resolve())
    except BookreconError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command()
def quote(
    quote_file: Path = typer.Argument(..., help="JSON file with items and generalDiscount"),
    tax_rate: str | None = typer.Option(None, "--tax-rate", help="Override the configured tax rate"),
):
    """Price a quotation offline.

    The file holds ``{"items": [{"book", "price", "quantity", "discount"}],
    "generalDiscount": n}``; values are coerced like form input.
    """
    data = _load_json(quote_file)
    lines = [
        LineInput(
            book_id=str(item.get("book") or item.get("title") or f"item-{index + 1}"),
            unit_price=coerce_non_negative(item.get("price", item.get("unitPrice"))),
            quantity=coerce_quantity(item.get("quantity", 1)),
            discount_percent=coerce_non_negative(item.get("discount", 0)),
        )
        for index, item in enumerate(data.get("items", []))
    ]
    if not lines:
        console.print("[red]✗[/red] No items to price")
        raise typer.Exit(1)

    rate = get_config().quotation.tax_rate
    if tax_rate is not None:
        try:
            rate = Decimal(tax_rate)
        except InvalidOperation as exc:
            console.print(f"[red]✗[/red] --tax-rate is not a number: {tax_rate}")
            raise typer.Exit(1) from exc
    summary = calculate(lines, coerce_non_negative(data.get("generalDiscount", 0)), rate)

    table = Table(title="Quotation")
    table.add_column("Book", style="cyan")
    table.add_column("Qty", justify="right")
    table.add_column("Unit price", justify="right")
    table.add_column("Discount %", justify="right")
    table.add_column("Line total", justify="right", style="green")
    for line in summary.lines:
        table.add_row(
            line.book_id,
            str(line.quantity),
            f"{line.unit_price:.2f}",
            f"{line.discount_percent:g}",
            f"{line.line_total:.2f}",
        )
    console.print(table)

    totals = Table(show_header=False)
    totals.add_column("Metric", style="cyan")
    totals.add_column("Amount", justify="right")
    totals.add_row("Subtotal", f"{summary.subtotal:.2f}")
    totals.add_row(f"General discount ({summary.general_discount_percent:g}%)", f"-{summary.discount_amount:.2f}")
    totals.add_row("After discount", f"{summary.subtotal_after_discount:.2f}")
    totals.add_row(f"Tax ({summary.tax_rate * 100:g}%)", f"{summary.tax:.2f}")
    totals.add_row("[bold]Grand total[/bold]", f"[bold]{summary.grand_total:.2f}[/bold]")
    totals.add_row("Total discount", f"{summary.total_discount:.2f}")
    console.print(totals)


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize the reference catalog database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    if drop:
        console.print("[yellow]Dropping existing tables...[/yellow]")

    async def _init():
        try:
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Host to bind"),
    port: int = typer.Option(5050, help="Port to bind"),
    reload: bool = typer.Option(False, help="Enable autoreload (dev only)"),
):
    """Run the reference catalog API."""
    import uvicorn

    typer.echo(f"Starting catalog API on http://{host}:{port}")
    uvicorn.run("bookrecon.web.app:app", host=host, port=port, reload=reload, workers=1)


if __name__ == "__main__":
    app()
