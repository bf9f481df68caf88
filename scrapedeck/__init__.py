"""ScrapeDeck: a browser gateway and client for Firecrawl-compatible APIs."""

from scrapedeck.models import CrawlJobHandle, ExtractionRequest, NormalizedResult
from scrapedeck.normalizer import normalize
from scrapedeck.payloads import build_request

__all__ = [
    "build_request",
    "normalize",
    "ExtractionRequest",
    "CrawlJobHandle",
    "NormalizedResult",
]
