"""Presentation adapter over opaque Markdown-rendering and highlighting callables.

The renderer and highlighter are injected; this module only decides what
gets rendered where.  With the defaults (identity / plain JSON text) it
produces terminal-friendly output for the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

from scrapedeck.errors import ScrapeDeckError, UpstreamError
from scrapedeck.models import NormalizedResult

MarkdownRenderer = Callable[[str], str]
Highlighter = Callable[[str, str], str]


def _identity(text: str) -> str:
    return text


def _plain(code: str, language: str) -> str:  # noqa: ARG001
    return code


@dataclass(frozen=True)
class RenderedView:
    markdown_html: str = ""
    json_html: str = ""
    screenshot_url: Optional[str] = None
    active_tab: Optional[str] = None
    error: Optional[str] = None


def error_text(exc: BaseException) -> str:
    """The single-line message shown in the error banner."""
    message = exc.message if isinstance(exc, ScrapeDeckError) else str(exc)
    message = message or "Unknown error occurred"
    if isinstance(exc, UpstreamError) and exc.hint:
        message = f"{message} ({exc.hint})"
    context = exc.context if isinstance(exc, ScrapeDeckError) else None
    return f"{context or 'Error'}: {message}"


class Presentation:
    def __init__(
        self,
        render_markdown: MarkdownRenderer = _identity,
        highlight: Highlighter = _plain,
    ) -> None:
        self.render_markdown = render_markdown
        self.highlight = highlight

    def render(self, result: NormalizedResult) -> RenderedView:
        view = result.preferred_view
        return RenderedView(
            markdown_html=self.render_markdown(result.document) if result.document else "",
            json_html=self.highlight(result.structured_json, "json"),
            screenshot_url=result.screenshot_url,
            active_tab="markdown" if view == "document" else view,
        )

    def render_error(self, exc: BaseException) -> RenderedView:
        """An error banner replaces the whole results view."""
        return RenderedView(error=error_text(exc))
