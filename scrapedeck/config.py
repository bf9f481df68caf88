"""Centralised settings for the ScrapeDeck gateway and client.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


def _env_flag(name: str, default: str = "true") -> bool:
    """Anything but an explicit ``false`` counts as enabled."""
    return os.environ.get(name, default).strip().lower() != "false"


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Backend extraction service
    # ------------------------------------------------------------------
    backend_url: str = field(
        default_factory=lambda: os.environ.get("FIRECRAWL_API_URL", "http://firecrawl:3002")
    )
    backend_api_key: str = field(
        default_factory=lambda: os.environ.get("FIRECRAWL_API_KEY", "")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "120.0"))
    )

    # ------------------------------------------------------------------
    # Gateway server
    # ------------------------------------------------------------------
    host: str = field(default_factory=lambda: os.environ.get("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.environ.get("PORT", "3000")))
    api_prefix: str = field(
        default_factory=lambda: os.environ.get("API_PREFIX", "/api")
    )
    open_browser: bool = field(default_factory=lambda: _env_flag("OPEN_BROWSER"))
    static_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("STATIC_DIR", Path(__file__).resolve().parent / "static")
        )
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "info"))

    # ------------------------------------------------------------------
    # Crawl job polling
    # ------------------------------------------------------------------
    poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_POLL_INTERVAL", "5.0"))
    )

    @property
    def has_api_key(self) -> bool:
        """Whether a backend credential is configured (never the key itself)."""
        return bool(self.backend_api_key)

    @property
    def app_url(self) -> str:
        """Local URL a browser should open once the server is listening."""
        return f"http://localhost:{self.port}"


# Module-level singleton, import this everywhere:
#   from scrapedeck.config import settings
settings = Settings()
