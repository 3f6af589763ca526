"""``trustfetch fetch`` / ``digest`` / ``cache-path`` — the verified-fetch engine from the shell."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from trustfetch.config import config
from trustfetch.core.content_store import ContentStore
from trustfetch.core.fetcher import Fetcher
from trustfetch.core.hasher import digest as compute_digest
from trustfetch.errors import TrustfetchError
from trustfetch.models.records import parse_location
from trustfetch.session import TrustSession

console = Console()


def fetch_cmd(
    algorithm: str = typer.Argument(..., help="Digest algorithm, e.g. sha256."),
    expected_digest: str = typer.Argument(..., help="Expected hex digest."),
    primary: str = typer.Argument(..., help="Primary path or URL."),
    alternates: Optional[List[str]] = typer.Argument(None, help="Fallback paths or URLs."),
    cache_dir: Path = typer.Option(None, "--cache-dir", "-c", help="Content Store root."),
) -> None:
    """Fetch and verify content; print its canonical cache path."""
    with TrustSession(cache_dir=cache_dir) as session:
        try:
            trusted = session.load(algorithm, expected_digest, primary, *(alternates or []))
        except TrustfetchError as exc:
            console.print(f"[bold red]Verification failed:[/bold red] {exc}")
            _print_failures(session)
            raise typer.Exit(code=1)

        lines = [
            "[bold green]Verified[/bold green]",
            "",
            f"[bold]Digest:[/bold]  {trusted.digest}",
            f"[bold]Source:[/bold]  {trusted.source}",
            f"[bold]Cached:[/bold]  {trusted.location}",
            f"[bold]From cache:[/bold] {'yes' if trusted.from_cache else 'no'}",
        ]
        if trusted.warnings:
            lines += ["", f"[yellow]{len(trusted.warnings)} warning(s):[/yellow]"]
            lines += [f"  [dim]- {w}[/dim]" for w in trusted.warnings]
        console.print(Panel("\n".join(lines), title="[bold]trustfetch[/bold]", border_style="green"))
        _print_failures(session)
        # Plain path for scripting
        console.print(str(trusted.location), highlight=False, soft_wrap=True)


def digest_cmd(
    location: str = typer.Argument(..., help="Path or URL to hash."),
    algorithm: str = typer.Option(config.default_algorithm, "--algorithm", "-a"),
) -> None:
    """Print the digest of a location's current content (no trust implied)."""
    target = parse_location(location)
    with Fetcher() as fetcher:
        if not fetcher.exists(target):
            console.print(f"[bold red]Not found:[/bold red] {location}")
            raise typer.Exit(code=1)
        try:
            data = fetcher.fetch(target)
            console.print(compute_digest(algorithm, data), highlight=False, soft_wrap=True)
        except TrustfetchError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            raise typer.Exit(code=1)


def cache_path_cmd(
    expected_digest: str = typer.Argument(..., help="Hex digest."),
    name: str = typer.Option(None, "--name", "-n", help="Base name of the artifact."),
    cache_dir: Path = typer.Option(None, "--cache-dir", "-c", help="Content Store root."),
) -> None:
    """Show where a digest is (or would be) cached."""
    store = ContentStore(cache_dir or config.cache_dir)
    found = store.lookup(expected_digest, name)
    if found is not None:
        console.print(str(found), highlight=False, soft_wrap=True)
        return
    if name:
        try:
            would_be = store.derive_path(expected_digest, name)
        except ValueError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            raise typer.Exit(code=1)
        console.print(f"[dim]not cached; would be[/dim] {would_be}")
    else:
        console.print("[dim]not cached[/dim]")
    raise typer.Exit(code=1)


def _print_failures(session: TrustSession) -> None:
    entries = session.failures.entries()
    if not entries:
        return
    table = Table(title="Verification failures")
    table.add_column("ID", style="cyan")
    table.add_column("Location")
    table.add_column("Bytes", justify="right")
    table.add_column("Reason", style="red")
    for entry in entries:
        table.add_row(entry.failure_id, entry.location, str(len(entry.content)), entry.reason)
    console.print(table)
