"""Result normalizer: reconciles backend result shapes into one view model.

Link reconciliation
-------------------
A page's ``links`` field arrives in one of two forms.

Sequence
    Each element is an ``{href, text}`` object, a ``{url, title}``
    object, or a plain string.  Anything else is skipped.

Keyed mapping
    ``{text: href}`` when the value looks like a link (starts with
    ``http`` or ``/``), otherwise ``{href: text}`` when the key does.
    Pairs matching neither are skipped.

Entries are parsed once into the :data:`~scrapedeck.models.LinkEntry`
union by :func:`parse_links` and resolved by :func:`resolve_link`.
Dropping malformed entries is deliberate: losing a few links is not
worth failing the whole result over.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Any, Mapping, Optional

from scrapedeck.errors import MalformedResponseError
from scrapedeck.models import (
    HrefTextLink,
    Link,
    LinkEntry,
    NormalizedResult,
    PlainLink,
    UrlTitleLink,
)

UNTITLED = "Untitled"
UNKNOWN_URL = "Unknown URL"

_LINK_PREFIXES = ("http", "/")


# ---------------------------------------------------------------------------
# Links
# ---------------------------------------------------------------------------

def _looks_like_link(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(_LINK_PREFIXES)


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _pair_text(value: Any) -> str:
    """Display text for a mapping value; truthy scalars are shown as-is."""
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
        return str(value)
    return ""


def _parse_item(item: Any) -> Optional[LinkEntry]:
    if isinstance(item, str):
        return PlainLink(item) if item else None
    if isinstance(item, Mapping):
        if item.get("href") and isinstance(item["href"], str):
            return HrefTextLink(item["href"], _text(item.get("text")))
        if item.get("url") and isinstance(item["url"], str):
            return UrlTitleLink(item["url"], _text(item.get("title")), _text(item.get("text")))
    return None


def _parse_pair(key: Any, value: Any) -> Optional[LinkEntry]:
    if _looks_like_link(value):
        return HrefTextLink(value, _text(key))
    if _looks_like_link(key):
        return HrefTextLink(key, _pair_text(value))
    return None


def parse_links(value: Any) -> list[LinkEntry]:
    """Parse a ``links`` field of either supported shape."""
    if isinstance(value, (list, tuple)):
        entries = (_parse_item(item) for item in value)
    elif isinstance(value, Mapping):
        entries = (_parse_pair(k, v) for k, v in value.items())
    else:
        return []
    return [entry for entry in entries if entry is not None]


def resolve_link(entry: LinkEntry, source_url: str) -> Link:
    """Resolve a parsed entry into an href / display-text pair."""
    if isinstance(entry, HrefTextLink):
        return Link(entry.href, entry.text or entry.href, source_url)
    if isinstance(entry, UrlTitleLink):
        return Link(entry.url, entry.title or entry.text or entry.url, source_url)
    if isinstance(entry, PlainLink):
        return Link(entry.value, entry.value, source_url)
    raise TypeError(f"unhandled link entry {entry!r}")


def collect_links(page: Mapping[str, Any], source_url: str) -> tuple[Link, ...]:
    return tuple(resolve_link(e, source_url) for e in parse_links(page.get("links")))


# ---------------------------------------------------------------------------
# Page helpers
# ---------------------------------------------------------------------------

def _metadata(page: Mapping[str, Any]) -> Mapping[str, Any]:
    meta = page.get("metadata")
    return meta if isinstance(meta, Mapping) else {}


def page_title(page: Mapping[str, Any]) -> str:
    return _metadata(page).get("title") or UNTITLED


def page_source_url(page: Mapping[str, Any]) -> str:
    return _metadata(page).get("sourceURL") or UNKNOWN_URL


def screenshot_of(result: Mapping[str, Any]) -> Optional[str]:
    """``screenshot`` wins over ``actions.screenshots[0]``."""
    if result.get("screenshot"):
        return result["screenshot"]
    actions = result.get("actions")
    if isinstance(actions, Mapping):
        shots = actions.get("screenshots")
        if isinstance(shots, list) and shots:
            return shots[0]
    return None


def _markdown(page: Mapping[str, Any]) -> str:
    value = page.get("markdown")
    return value if isinstance(value, str) else ""


# ---------------------------------------------------------------------------
# Single-page results (scrape / extract)
# ---------------------------------------------------------------------------

def links_section(links: tuple[Link, ...]) -> str:
    if not links:
        return ""
    lines = "".join(f"- [{link.text}]({link.href})\n" for link in links)
    return f"## Links\n\n{lines}\n\n"


def normalize_single(payload: Any) -> NormalizedResult:
    result = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(result, Mapping):
        raise MalformedResponseError("Invalid response from API")

    links = collect_links(result, page_source_url(result))
    return NormalizedResult(
        document=links_section(links) + _markdown(result),
        structured_payload=result,
        screenshot_url=screenshot_of(result),
        links=links,
    )


# ---------------------------------------------------------------------------
# Batched results (crawl)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _CrawlAccumulator:
    sections: tuple[str, ...] = ()
    records: tuple[dict[str, Any], ...] = ()
    links: tuple[Link, ...] = ()
    index: int = 0


def _fold_page(acc: _CrawlAccumulator, page: Any) -> _CrawlAccumulator:
    if not isinstance(page, Mapping):
        page = {}
    title = page_title(page)
    source_url = page_source_url(page)
    markdown = _markdown(page)

    sections = acc.sections
    if markdown:
        sections += (
            f"## Page {acc.index + 1}: {title}\n\n"
            f"URL: {source_url}\n\n"
            f"{markdown}\n\n---\n\n",
        )
    return _CrawlAccumulator(
        sections=sections,
        records=acc.records + ({"url": source_url, "title": title, "data": page},),
        links=acc.links + collect_links(page, source_url),
        index=acc.index + 1,
    )


def all_links_section(links: tuple[Link, ...]) -> str:
    if not links:
        return ""
    lines = "".join(
        f"- [{link.text}]({link.href}) - from [{link.source_url}]({link.source_url})\n"
        for link in links
    )
    return f"## All Links\n\n{lines}\n\n---\n\n"


def normalize_crawl(payload: Any) -> NormalizedResult:
    pages = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(pages, list):
        raise MalformedResponseError("Invalid crawl results from API")

    acc = reduce(_fold_page, pages, _CrawlAccumulator())
    return NormalizedResult(
        document=all_links_section(acc.links) + "".join(acc.sections),
        structured_payload=list(acc.records),
        links=acc.links,
    )


def normalize(payload: Any, mode: str) -> NormalizedResult:
    """Build the :class:`NormalizedResult` for a backend *payload*.

    Raises:
        MalformedResponseError: if *payload* lacks the result shape
            expected for *mode*.
    """
    if mode == "crawl":
        return normalize_crawl(payload)
    return normalize_single(payload)
