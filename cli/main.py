"""ScrapeDeck CLI: entry-point for the gateway server and the three modes.

Usage:
    python cli/main.py --help

Commands:
    serve     → run the /api gateway and serve the browser client
    config    → show the configured backend endpoint
    scrape    → single-page extraction
    crawl     → multi-page crawl, polled until the job completes
    extract   → prompt / schema guided structured extraction
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from scrapedeck.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import webbrowser
from typing import Any, List, Optional

import typer

from scrapedeck.client import ExtractionClient
from scrapedeck.config import settings
from scrapedeck.errors import ScrapeDeckError
from scrapedeck.logging_config import configure_logging
from scrapedeck.models import CrawlJobHandle, NormalizedResult
from scrapedeck.orchestrator import JobOrchestrator
from scrapedeck.presentation import Presentation, error_text

app = typer.Typer(
    name="scrapedeck",
    help="ScrapeDeck CLI: scrape, crawl and extract through a Firecrawl-compatible API.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _print_progress(handle: CrawlJobHandle) -> None:
    line = f"[crawl] {handle.status}"
    if handle.progress is not None:
        line += f" {handle.completed}/{handle.total} ({handle.progress:.0f}%)"
    typer.echo(line)


def _show(result: NormalizedResult, as_json: bool) -> None:
    view = Presentation().render(result)
    if as_json or view.active_tab == "json":
        typer.echo(view.json_html)
    elif view.markdown_html:
        typer.echo(view.markdown_html)
    else:
        typer.echo("No content returned.")
    if view.screenshot_url:
        typer.echo(f"\nScreenshot: {view.screenshot_url}")


def _run(mode: str, raw: dict[str, Any], endpoint: Optional[str], as_json: bool,
         interval: Optional[float] = None) -> None:
    """Run one operation and report it; every error ends up here."""

    async def _go() -> NormalizedResult:
        api_key = settings.backend_api_key if endpoint is None else None
        async with ExtractionClient(endpoint, api_key=api_key) as client:
            orchestrator = JobOrchestrator(client, on_progress=_print_progress)
            if interval is not None:
                orchestrator.poller.interval = interval
            return await orchestrator.run(mode, raw)

    try:
        result = asyncio.run(_go())
    except ScrapeDeckError as exc:
        typer.echo(f"❌ {error_text(exc)}")
        raise typer.Exit(code=1)
    _show(result, as_json)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log requests and polling."),
) -> None:
    """Configure logging before any command runs."""
    configure_logging("DEBUG" if verbose else "WARNING")


_ENDPOINT_HELP = (
    "Base URL to send requests to (e.g. http://localhost:3000/api for a running "
    "gateway). Defaults to FIRECRAWL_API_URL with FIRECRAWL_API_KEY."
)


# ---------------------------------------------------------------------------
# Server commands
# ---------------------------------------------------------------------------

@app.command("serve")
def serve(
    host: str = typer.Option(settings.host, help="Interface to listen on."),
    port: int = typer.Option(settings.port, help="Port to listen on."),
    open_browser: bool = typer.Option(
        settings.open_browser, "--open/--no-open", help="Open the app in a browser."
    ),
) -> None:
    """Run the gateway: proxies /api to the backend and serves the browser client."""
    import uvicorn

    from scrapedeck.api.app import create_app

    configure_logging(settings.log_level)
    settings.host, settings.port = host, port

    typer.echo(f"[serve] Proxying API requests to {settings.backend_url}")
    typer.echo(f"[serve] Server listening on {host}:{port}")
    typer.echo(f"[serve] Application started: {settings.app_url}")
    if open_browser:
        if not webbrowser.open(settings.app_url):
            typer.echo("[serve] Failed to open browser.")
        typer.echo("[serve] Set OPEN_BROWSER=false to disable opening a browser.")

    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


@app.command("config")
def show_config() -> None:
    """Show the configured backend endpoint (never the key itself)."""
    typer.echo(f"API endpoint : {settings.backend_url}")
    typer.echo(f"API key      : {'configured' if settings.has_api_key else 'not set'}")
    typer.echo(f"Gateway      : {settings.host}:{settings.port} (prefix {settings.api_prefix})")


# ---------------------------------------------------------------------------
# Extraction commands
# ---------------------------------------------------------------------------

@app.command("scrape")
def scrape(
    url: str = typer.Argument(..., help="URL to scrape."),
    formats: List[str] = typer.Option(
        ["markdown"], "--format", "-f", help="Output format (repeatable): markdown, html, links, screenshot …"
    ),
    main_only: bool = typer.Option(True, "--main-only/--full", help="Only the main content."),
    remove_images: bool = typer.Option(False, "--remove-images", help="Strip base64 images."),
    wait_for: int = typer.Option(2000, "--wait-for", help="Milliseconds to wait before scraping."),
    timeout: int = typer.Option(30000, "--timeout", help="Backend timeout in milliseconds."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help=_ENDPOINT_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the structured result."),
) -> None:
    """Scrape a single page and print its content."""
    raw = {
        "url": url,
        "formats": formats,
        "onlyMainContent": main_only,
        "removeBase64Images": remove_images,
        "waitFor": wait_for,
        "timeout": timeout,
    }
    _run("scrape", raw, endpoint, as_json)


@app.command("crawl")
def crawl(
    url: str = typer.Argument(..., help="URL to start crawling from."),
    max_depth: int = typer.Option(2, "--max-depth", help="Maximum link depth."),
    limit: int = typer.Option(10, "--limit", help="Maximum number of pages."),
    ignore_sitemap: bool = typer.Option(False, "--ignore-sitemap"),
    allow_external: bool = typer.Option(False, "--allow-external", help="Follow external links."),
    include: str = typer.Option("", "--include", help="Comma-separated paths to include."),
    exclude: str = typer.Option("", "--exclude", help="Comma-separated paths to exclude."),
    formats: List[str] = typer.Option(["markdown"], "--format", "-f", help="Output format (repeatable)."),
    interval: float = typer.Option(settings.poll_interval, "--interval", help="Seconds between status checks."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help=_ENDPOINT_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the structured result."),
) -> None:
    """Crawl a site and print the combined content once the job completes."""
    raw = {
        "url": url,
        "maxDepth": max_depth,
        "limit": limit,
        "ignoreSitemap": ignore_sitemap,
        "allowExternalLinks": allow_external,
        "includePaths": include,
        "excludePaths": exclude,
        "formats": formats,
    }
    _run("crawl", raw, endpoint, as_json, interval=interval)


@app.command("extract")
def extract(
    url: str = typer.Argument(..., help="URL to extract structured data from."),
    prompt: str = typer.Option("", "--prompt", help="What to extract, in plain language."),
    schema: str = typer.Option("", "--schema", help="JSON schema text."),
    schema_file: Optional[Path] = typer.Option(
        None, "--schema-file", exists=True, dir_okay=False, help="Read the JSON schema from a file."
    ),
    wait_for: int = typer.Option(2000, "--wait-for", help="Milliseconds to wait before extracting."),
    endpoint: Optional[str] = typer.Option(None, "--endpoint", help=_ENDPOINT_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print the structured result."),
) -> None:
    """Extract structured data guided by a prompt and/or a JSON schema."""
    if schema_file is not None:
        schema = schema_file.read_text(encoding="utf-8")
    raw = {"url": url, "prompt": prompt, "schema": schema, "waitFor": wait_for}
    _run("extract", raw, endpoint, as_json)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
