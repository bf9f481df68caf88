"""Payload builder: turns form-like input into an :class:`ExtractionRequest`.

``raw`` is whatever a browser form or the CLI hands over: strings for
text and number inputs, booleans (or ``"on"``/``"true"`` strings) for
checkboxes and a list (or comma-separated string) for multi-selects.

Validation happens here and only here, so a request that fails to build
never reaches the network.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping

from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from scrapedeck.errors import ValidationError
from scrapedeck.models import MODES, ExtractionRequest

_HTTP_URL = TypeAdapter(HttpUrl)

_TRUTHY = {"1", "true", "on", "yes"}
_SCHEME = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_INVALID_URL = "Invalid URL format. Please enter a valid URL."

DEFAULT_WAIT_FOR = 2000
DEFAULT_TIMEOUT = 30000
DEFAULT_MAX_DEPTH = 2
DEFAULT_LIMIT = 10
DEFAULT_FORMATS = ("markdown",)


# ---------------------------------------------------------------------------
# Field coercion helpers
# ---------------------------------------------------------------------------

def normalize_url(value: Any) -> str:
    """Return *value* as an absolute http(s) URL.

    ``https://`` is prepended when the string carries no ``scheme://``
    prefix; any scheme other than http or https is rejected.

    Raises:
        ValidationError: ``invalid-url`` if the result is not an absolute
            http(s) URL with a host.
    """
    url = str(value or "").strip()
    if not url:
        raise ValidationError("invalid-url", "Please enter a URL")
    if not _SCHEME.match(url):
        url = "https://" + url
    elif not url.lower().startswith(("http://", "https://")):
        raise ValidationError("invalid-url", _INVALID_URL)
    try:
        _HTTP_URL.validate_python(url)
    except PydanticValidationError as exc:
        raise ValidationError("invalid-url", _INVALID_URL) from exc
    return url


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUTHY


def _non_negative_int(value: Any, default: int) -> int:
    """Coerce a number input; blank or non-numeric input means *default*."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return max(0, int(value))
    text = str(value or "").strip()
    if not text:
        return default
    try:
        return max(0, int(float(text)))
    except ValueError:
        return default


def _split_paths(value: Any) -> list[str]:
    """Split a comma-separated path filter into trimmed, non-empty tokens."""
    if isinstance(value, (list, tuple)):
        tokens: Iterable[Any] = value
    else:
        tokens = str(value or "").split(",")
    return [str(t).strip() for t in tokens if str(t).strip()]


def _formats(value: Any, default: tuple[str, ...] = DEFAULT_FORMATS) -> tuple[str, ...]:
    """Collect selected format tags in order, without duplicates."""
    selected = _split_paths(value)
    if not selected:
        return default
    return tuple(dict.fromkeys(selected))


# ---------------------------------------------------------------------------
# Mode builders
# ---------------------------------------------------------------------------

def _build_scrape(url: str, raw: Mapping[str, Any]) -> ExtractionRequest:
    return ExtractionRequest(
        url=url,
        mode="scrape",
        formats=_formats(raw.get("formats")),
        options={
            "onlyMainContent": _flag(raw.get("onlyMainContent")),
            "removeBase64Images": _flag(raw.get("removeBase64Images")),
            "waitFor": _non_negative_int(raw.get("waitFor"), DEFAULT_WAIT_FOR),
            "timeout": _non_negative_int(raw.get("timeout"), DEFAULT_TIMEOUT),
        },
    )


def _build_crawl(url: str, raw: Mapping[str, Any]) -> ExtractionRequest:
    formats = _formats(raw.get("formats"))
    options: dict[str, Any] = {
        "maxDepth": _non_negative_int(raw.get("maxDepth"), DEFAULT_MAX_DEPTH),
        "limit": _non_negative_int(raw.get("limit"), DEFAULT_LIMIT),
        "ignoreSitemap": _flag(raw.get("ignoreSitemap")),
        "allowExternalLinks": _flag(raw.get("allowExternalLinks")),
        "scrapeOptions": {"formats": list(formats), "onlyMainContent": True},
    }
    # The backend reads a missing key as "no filter"; an empty list is not
    # equivalent, so only non-empty filters are sent.
    include = _split_paths(raw.get("includePaths"))
    if include:
        options["includePaths"] = include
    exclude = _split_paths(raw.get("excludePaths"))
    if exclude:
        options["excludePaths"] = exclude
    return ExtractionRequest(url=url, mode="crawl", formats=formats, options=options)


def _build_extract(url: str, raw: Mapping[str, Any]) -> ExtractionRequest:
    json_options: dict[str, Any] = {}

    prompt = str(raw.get("prompt") or "").strip()
    if prompt:
        json_options["prompt"] = prompt

    schema = raw.get("schema")
    if isinstance(schema, str):
        schema_text = schema.strip()
        if schema_text:
            try:
                json_options["schema"] = json.loads(schema_text)
            except json.JSONDecodeError as exc:
                raise ValidationError("invalid-schema", "Invalid JSON schema format") from exc
    elif schema:
        json_options["schema"] = schema

    options: dict[str, Any] = {
        "waitFor": _non_negative_int(raw.get("waitFor"), DEFAULT_WAIT_FOR),
    }
    if json_options:
        options["jsonOptions"] = json_options
    return ExtractionRequest(url=url, mode="extract", formats=("json",), options=options)


_BUILDERS = {
    "scrape": _build_scrape,
    "crawl": _build_crawl,
    "extract": _build_extract,
}


def build_request(mode: str, raw: Mapping[str, Any]) -> ExtractionRequest:
    """Build a validated :class:`ExtractionRequest` for *mode*.

    Raises:
        ValidationError: ``invalid-url``, ``invalid-schema`` or
            ``invalid-mode``.
    """
    if mode not in MODES:
        raise ValidationError("invalid-mode", f"Unknown mode {mode!r}. Use: {' | '.join(MODES)}")
    url = normalize_url(raw.get("url"))
    return _BUILDERS[mode](url, raw)
