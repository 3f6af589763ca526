"""``trustfetch scan`` / ``update`` / ``rehash`` — audited trust-record updates."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from trustfetch.audit.approvers import ConsoleApprover
from trustfetch.audit.documents import open_document
from trustfetch.errors import TrustfetchError
from trustfetch.models.policy import AuditPolicy
from trustfetch.models.results import ScanReport, UpdateOutcome, UpdateResult
from trustfetch.session import TrustSession

console = Console()


def scan_cmd(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file or .json record store."),
    cache_dir: Path = typer.Option(None, "--cache-dir", "-c", help="Content Store root."),
) -> None:
    """List trust records whose upstream content has moved."""
    with TrustSession(cache_dir=cache_dir) as session:
        try:
            report = session.auditor.scan(open_document(document))
        except TrustfetchError as exc:
            console.print(f"[bold red]Scan failed:[/bold red] {exc}")
            raise typer.Exit(code=1)
    _print_report(report)


def update_cmd(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file or .json record store."),
    skip_review: bool = typer.Option(
        False, "--skip-review", help="Scan only; leave updates pending without review."
    ),
    cache_dir: Path = typer.Option(None, "--cache-dir", "-c", help="Content Store root."),
) -> None:
    """Scan, then review each pending update and rewrite its record."""
    policy = AuditPolicy.skip() if skip_review else AuditPolicy.require_interactive()
    doc = open_document(document)
    with TrustSession(cache_dir=cache_dir) as session:
        try:
            report = session.auditor.scan(doc)
        except TrustfetchError as exc:
            console.print(f"[bold red]Scan failed:[/bold red] {exc}")
            raise typer.Exit(code=1)
        _print_report(report)
        try:
            results = session.auditor.drain(doc, policy)
        except TrustfetchError as exc:
            console.print(f"[bold red]Update stopped:[/bold red] {exc}")
            raise typer.Exit(code=1)
    _print_results(results)


def rehash_cmd(
    document: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file or .json record store."),
    cache_dir: Path = typer.Option(None, "--cache-dir", "-c", help="Content Store root."),
) -> None:
    """Review records with an UNSET or AUDIT-FAILED digest and fill them in."""
    doc = open_document(document)
    approver = ConsoleApprover(console=console, title="Review content")
    with TrustSession(cache_dir=cache_dir) as session:
        try:
            results = session.auditor.rehash(doc, approver)
        except TrustfetchError as exc:
            console.print(f"[bold red]Rehash stopped:[/bold red] {exc}")
            raise typer.Exit(code=1)
    _print_results(results)


def _print_report(report: ScanReport) -> None:
    table = Table(title=f"Scan: {report.document_id}")
    table.add_column("Site", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    for item in report.pending:
        table.add_row(item.site_id, "[yellow]PENDING[/yellow]", item.new_location)
    for site_id in report.up_to_date:
        table.add_row(site_id, "[green]UP TO DATE[/green]", "")
    for site_id, reason in report.skipped.items():
        table.add_row(site_id, "[dim]SKIPPED[/dim]", reason)
    for site_id, message in report.errors.items():
        table.add_row(site_id, "[bold red]ERROR[/bold red]", message)
    console.print(table)


def _print_results(results: list[UpdateResult]) -> None:
    if not results:
        console.print("[dim]No records rewritten.[/dim]")
        return
    for result in results:
        if result.outcome == UpdateOutcome.REWRITTEN:
            console.print(
                f"[green]REWRITTEN[/green] {result.site_id} -> "
                f"{result.new_record.expected_digest[:16]}"
            )
        else:
            console.print(f"[red]MARKED FAILED[/red] {result.site_id}")
