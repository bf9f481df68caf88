"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single ``httpx.AsyncClient`` (shared across all
requests via ``request.app.state.gateway``).  On shutdown it closes the
client cleanly.

Routers
-------
    /api       forwarded to the backend extraction service
    /config    backend endpoint + whether a key is configured
    /*         static assets / SPA shell
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from scrapedeck.api.gateway import Gateway
from scrapedeck.api.routers import proxy as proxy_router
from scrapedeck.api.routers import site as site_router
from scrapedeck.config import Settings, settings as default_settings

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Return a fully-configured FastAPI application instance.

    *transport* replaces the outbound network transport (tests only).
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Open the outbound client on startup and close it on shutdown."""
        client = httpx.AsyncClient(timeout=settings.request_timeout, transport=transport)
        app.state.gateway = Gateway(
            settings.backend_url,
            client,
            api_key=settings.backend_api_key or None,
            strip_prefix=settings.api_prefix,
        )
        logger.info("gateway_ready", backend=settings.backend_url, key_configured=settings.has_api_key)
        try:
            yield
        finally:
            await client.aclose()

    app = FastAPI(
        title="ScrapeDeck",
        description=(
            "Browser gateway for a Firecrawl-compatible extraction service. "
            "Forwards /api calls with the configured credential and serves "
            "the single-page client."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # The browser client may be served from elsewhere during development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(proxy_router.router, prefix=settings.api_prefix, tags=["proxy"])
    # Registered last: its catch-all GET must not shadow /api or /config.
    app.include_router(site_router.router, tags=["site"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn scrapedeck.api.app:app --reload
app = create_app()
