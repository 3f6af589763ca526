"""Main Typer application — imports and registers all CLI commands.

Entry point: ``trustfetch`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer

from trustfetch.cli.commands.fetch_cmd import cache_path_cmd, digest_cmd, fetch_cmd
from trustfetch.cli.commands.update_cmd import rehash_cmd, scan_cmd, update_cmd
from trustfetch.config import config

app = typer.Typer(
    name="trustfetch",
    help="trustfetch: fetch code you do not control and run only what you reviewed.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(config.log_level, "--log-level", help="Logging level."),
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )


# Register subcommands
app.command(name="fetch", help="Fetch and verify content against a digest.")(fetch_cmd)
app.command(name="digest", help="Print the digest of a path or URL.")(digest_cmd)
app.command(name="cache-path", help="Show the cache path for a digest.")(cache_path_cmd)
app.command(name="scan", help="List trust records with upstream updates.")(scan_cmd)
app.command(name="update", help="Review pending updates and rewrite trust records.")(update_cmd)
app.command(name="rehash", help="Review and fill in UNSET / AUDIT-FAILED records.")(rehash_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
