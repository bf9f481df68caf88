"""Async HTTP client for the backend extraction service.

The client speaks to either the backend directly (``FIRECRAWL_API_URL``)
or to a running gateway's ``/api`` prefix; the wire contract is the same.

Every method raises one of:

- :class:`~scrapedeck.errors.TransportError` when the service is unreachable,
- :class:`~scrapedeck.errors.UpstreamError` on a non-2xx status,
- :class:`~scrapedeck.errors.MalformedResponseError` on a non-JSON body.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union

import httpx
import structlog

from scrapedeck.config import settings
from scrapedeck.errors import (
    MalformedResponseError,
    TransportError,
    classify_upstream_error,
    error_message_from,
)
from scrapedeck.models import CrawlJobHandle, ExtractionRequest

logger = structlog.get_logger(__name__)


class ExtractionClient:
    """Thin wrapper over :class:`httpx.AsyncClient` for the three endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout if timeout is not None else settings.request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "ExtractionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[dict[str, Any]] = None,
        formats: Iterable[str] = (),
    ) -> Any:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.RequestError as exc:
            logger.warning("backend_unreachable", method=method, path=path, error=str(exc))
            raise TransportError(str(exc) or exc.__class__.__name__) from exc

        logger.debug("backend_response", method=method, path=path, status=response.status_code)
        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.is_success:
            message = error_message_from(data, response.status_code)
            raise classify_upstream_error(message, response.status_code, formats)
        if data is None:
            raise MalformedResponseError("Invalid response from API")
        return data

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def scrape(self, request: ExtractionRequest) -> dict[str, Any]:
        """POST a scrape or extract request and return the raw payload."""
        return await self._request(
            "POST", request.endpoint, json=request.to_body(), formats=request.formats
        )

    async def start_crawl(self, request: ExtractionRequest) -> CrawlJobHandle:
        """POST a crawl request and return a handle for the accepted job."""
        data = await self._request(
            "POST", request.endpoint, json=request.to_body(), formats=request.formats
        )
        job_id = data.get("id") if isinstance(data, dict) else None
        if not job_id:
            raise MalformedResponseError("Invalid response from API: missing crawl job id")
        logger.info("crawl_started", job_id=job_id, url=request.url)
        return CrawlJobHandle(job_id=str(job_id))

    async def submit(self, request: ExtractionRequest) -> Union[dict[str, Any], CrawlJobHandle]:
        """Send *request* to its mode's endpoint.

        Crawl requests return the accepted job's handle; scrape and extract
        requests return the result payload.
        """
        if request.mode == "crawl":
            return await self.start_crawl(request)
        return await self.scrape(request)

    async def crawl_status(self, job_id: str) -> dict[str, Any]:
        """GET the current status document of crawl *job_id*."""
        data = await self._request("GET", f"/v1/crawl/{job_id}")
        if not isinstance(data, dict):
            raise MalformedResponseError("Invalid response from API")
        return data
