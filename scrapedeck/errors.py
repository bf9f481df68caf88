"""Error taxonomy shared by the payload builder, client, poller and gateway.

Four families of failure exist:

``validation``
    Bad URL or bad JSON schema.  Raised before any network call.
``transport``
    DNS / connect / timeout failures on an outbound call.
``upstream``
    The backend answered with a non-success status.
``malformed-response``
    The backend answered, but not with the expected result shape.

The gateway reports its own failures as :class:`ProxyError`, whose
``kind`` mirrors the same families from the proxy's point of view.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional


class ScrapeDeckError(Exception):
    """Base class for every error raised by this package.

    ``context`` names the stage that failed when it is not the submission
    itself, e.g. "Error checking crawl status".
    """

    category = "error"
    context: Optional[str] = None

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ScrapeDeckError):
    """User input rejected before an operation starts."""

    category = "validation"

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class TransportError(ScrapeDeckError):
    """The backend could not be reached at all."""

    category = "transport"


class UpstreamError(ScrapeDeckError):
    """The backend responded with a non-success HTTP status."""

    category = "upstream"

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.hint = hint


class MalformedResponseError(ScrapeDeckError):
    """The backend response does not carry the expected result shape."""

    category = "malformed-response"


class OperationSuperseded(ScrapeDeckError):
    """A newer operation (or a reset) replaced this one before it finished."""

    category = "cancelled"


class ProxyError(ScrapeDeckError):
    """A gateway-side failure, reported to the browser as JSON."""

    NETWORK = "network"
    MALFORMED_RESPONSE = "malformed-response"

    # Status the browser receives for each kind.
    STATUS = {NETWORK: 500, MALFORMED_RESPONSE: 502}

    def __init__(
        self,
        kind: str,
        message: str,
        upstream_status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.upstream_status = upstream_status

    @property
    def http_status(self) -> int:
        return self.STATUS.get(self.kind, 500)


# ---------------------------------------------------------------------------
# Upstream message classification
# ---------------------------------------------------------------------------

CRAWL_STATUS_CONTEXT = "Error checking crawl status"

SCREENSHOT_UNSUPPORTED = (
    "Screenshot functionality is not supported by this Firecrawl API instance. "
    "Please try without screenshot format."
)
POSSIBLE_SCREENSHOT_FAILURE = (
    "The Firecrawl API instance encountered an error. If you were trying to use "
    "screenshot functionality, it may not be supported by this API instance."
)

# Free-text signatures some backend builds return when a screenshot engine
# is unavailable.  "Internal server error" is generic and also matches
# unrelated failures, which is why it only ever yields a hint on its own.
_INTERNAL_FAILURE_SIGNATURES: tuple[str, ...] = (
    "All scraping engines failed",
    "Internal server error",
)


@dataclass(frozen=True)
class _Rule:
    signatures: tuple[str, ...]
    screenshot_requested: bool
    message: Optional[str]
    hint: Optional[str]


# Evaluated top to bottom; the first rule whose signature matches and whose
# screenshot condition holds wins.  ``message=None`` keeps the backend text.
UPSTREAM_MESSAGE_RULES: tuple[_Rule, ...] = (
    _Rule(_INTERNAL_FAILURE_SIGNATURES, True, SCREENSHOT_UNSUPPORTED, None),
    _Rule(_INTERNAL_FAILURE_SIGNATURES, False, None, POSSIBLE_SCREENSHOT_FAILURE),
)


def error_message_from(payload: Any, status: int) -> str:
    """Return the backend's ``error`` text, or a generic status message."""
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str) and error:
            return error
    return f"API returned status {status}"


def classify_upstream_error(
    message: str,
    status: Optional[int] = None,
    formats: Iterable[str] = (),
) -> UpstreamError:
    """Build the :class:`UpstreamError` reported for a failed backend call.

    *formats* are the output formats of the request that failed; a
    ``screenshot`` entry turns a generic internal failure into a specific
    "screenshot unsupported" message.
    """
    screenshot_requested = "screenshot" in set(formats)
    for rule in UPSTREAM_MESSAGE_RULES:
        if rule.screenshot_requested and not screenshot_requested:
            continue
        if any(sig in message for sig in rule.signatures):
            return UpstreamError(rule.message or message, status=status, hint=rule.hint)
    return UpstreamError(message, status=status)
