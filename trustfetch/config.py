"""Runtime configuration — env-driven via pydantic-settings.

All settings can be overridden with ``TRUSTFETCH_*`` environment variables
or a ``.env`` file in the working directory.

Examples
--------
Override via environment::

    export TRUSTFETCH_CACHE_DIR=/var/cache/trustfetch
    export TRUSTFETCH_FETCH_TIMEOUT_SECONDS=10
    export TRUSTFETCH_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class TrustfetchConfig(BaseSettings):
    """Process-wide defaults for the loader, cache and auditor."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="TRUSTFETCH_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"

    # Content Store
    cache_dir: Path = Path("~/.cache/trustfetch").expanduser()

    # Verification
    default_algorithm: str = "sha256"
    source_format: str = "python"

    # Fetching (timeout applies per attempt; a timeout counts as "not found")
    fetch_timeout_seconds: float = 30.0
    user_agent: str = "trustfetch"

    # Update auditing
    record_function: str = "require_trusted"
    github_api_url: str = "https://api.github.com"
    github_raw_url: str = "https://raw.githubusercontent.com"
    tracking_branch: str = "main"
    github_token: str = ""


# Module-level singleton — import as `from trustfetch.config import config`
config = TrustfetchConfig()
