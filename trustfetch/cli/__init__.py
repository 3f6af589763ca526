"""trustfetch CLI — Typer-based command-line interface.

Provides the ``trustfetch`` command with subcommands for verified fetches,
digest computation, cache inspection, and audited updates of trust records.

All output uses Rich for formatted terminal display.
"""
