"""Data models for requests, crawl jobs and normalised results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

MODES = ("scrape", "crawl", "extract")

_ENDPOINTS = {
    "scrape": "/v1/scrape",
    "extract": "/v1/scrape",
    "crawl": "/v1/crawl",
}


@dataclass(frozen=True)
class ExtractionRequest:
    """A validated, mode-specific request ready to send to the backend."""

    url: str
    mode: str
    formats: tuple[str, ...] = ()
    options: dict[str, Any] = field(default_factory=dict)

    @property
    def endpoint(self) -> str:
        """Backend path the request body is POSTed to."""
        return _ENDPOINTS[self.mode]

    def to_body(self) -> dict[str, Any]:
        """Return the JSON body for the backend call.

        Crawl requests carry their formats inside ``scrapeOptions``, which
        the payload builder already placed in ``options``.
        """
        body: dict[str, Any] = {"url": self.url}
        if self.mode != "crawl":
            body["formats"] = list(self.formats)
        body.update(self.options)
        return body


@dataclass
class CrawlJobHandle:
    """The single in-flight crawl job, mutated only by the poller."""

    job_id: str
    status: str = "unknown"
    completed: Optional[int] = None
    total: Optional[int] = None

    @property
    def progress(self) -> Optional[float]:
        """Completion percentage in [0, 100], or ``None`` when unknown."""
        if self.completed is None or not self.total:
            return None
        return max(0.0, min(100.0, self.completed / self.total * 100))

    def update(self, payload: dict[str, Any]) -> None:
        """Apply one successful status response."""
        status = payload.get("status")
        if status == "completed":
            self.status = "completed"
        elif status == "failed":
            self.status = "failed"
        else:
            self.status = "processing"
        self.completed = _count(payload.get("completed"), self.completed)
        self.total = _count(payload.get("total"), self.total)


def _count(value: Any, previous: Optional[int]) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return previous
    return max(0, int(value))


# ---------------------------------------------------------------------------
# Link entries (tagged union)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HrefTextLink:
    href: str
    text: str = ""
    kind: Literal["hrefText"] = "hrefText"


@dataclass(frozen=True)
class UrlTitleLink:
    url: str
    title: str = ""
    text: str = ""
    kind: Literal["urlTitle"] = "urlTitle"


@dataclass(frozen=True)
class PlainLink:
    value: str
    kind: Literal["plain"] = "plain"


LinkEntry = Union[HrefTextLink, UrlTitleLink, PlainLink]


@dataclass(frozen=True)
class Link:
    """A resolved link, annotated with the page it was found on."""

    href: str
    text: str
    source_url: str


# ---------------------------------------------------------------------------
# Normalised result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NormalizedResult:
    """Unified view model, independent of which mode produced it."""

    document: str = ""
    structured_payload: Any = None
    screenshot_url: Optional[str] = None
    links: tuple[Link, ...] = ()

    @property
    def structured_json(self) -> str:
        """The structured payload pretty-printed as JSON."""
        return json.dumps(self.structured_payload, indent=2, ensure_ascii=False)

    @property
    def preferred_view(self) -> Optional[str]:
        """``"document"`` if there is text to show, else ``"json"`` if any."""
        if self.document:
            return "document"
        if self.structured_payload:
            return "json"
        return None
