"""Tests for the async backend client.

``respx`` patches ``httpx`` at the transport layer so no real network calls
are made.
"""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from scrapedeck.client import ExtractionClient
from scrapedeck.errors import (
    SCREENSHOT_UNSUPPORTED,
    MalformedResponseError,
    TransportError,
    UpstreamError,
)
from scrapedeck.models import CrawlJobHandle
from scrapedeck.payloads import build_request

BACKEND = "http://backend:3002"


@pytest.fixture()
async def client():
    async with ExtractionClient(BACKEND, api_key="fc-key") as c:
        yield c


class TestScrape:
    async def test_posts_body_with_credential(self, client: ExtractionClient) -> None:
        request = build_request("scrape", {"url": "example.com"})
        with respx.mock(base_url=BACKEND) as mock:
            route = mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json={"data": {"markdown": "hi"}})
            )
            payload = await client.scrape(request)

        assert payload == {"data": {"markdown": "hi"}}
        sent = route.calls.last.request
        assert sent.headers["authorization"] == "Bearer fc-key"
        assert json.loads(sent.content) == request.to_body()

    async def test_upstream_error_message(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/scrape").mock(
                return_value=httpx.Response(400, json={"error": "Bad URL"})
            )
            with pytest.raises(UpstreamError) as info:
                await client.scrape(build_request("scrape", {"url": "example.com"}))

        assert info.value.message == "Bad URL"
        assert info.value.status == 400

    async def test_screenshot_failure_reclassified(self, client: ExtractionClient) -> None:
        request = build_request("scrape", {"url": "example.com", "formats": ["screenshot"]})
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/scrape").mock(
                return_value=httpx.Response(500, json={"error": "All scraping engines failed!"})
            )
            with pytest.raises(UpstreamError) as info:
                await client.scrape(request)

        assert info.value.message == SCREENSHOT_UNSUPPORTED

    async def test_status_only_error(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/scrape").mock(return_value=httpx.Response(502, text="Bad Gateway"))
            with pytest.raises(UpstreamError, match="API returned status 502"):
                await client.scrape(build_request("scrape", {"url": "example.com"}))

    async def test_transport_error(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/scrape").mock(side_effect=httpx.ConnectError("Connection refused"))
            with pytest.raises(TransportError, match="Connection refused"):
                await client.scrape(build_request("scrape", {"url": "example.com"}))

    async def test_non_json_success(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/scrape").mock(return_value=httpx.Response(200, text="<html>"))
            with pytest.raises(MalformedResponseError):
                await client.scrape(build_request("scrape", {"url": "example.com"}))


class TestCrawl:
    async def test_start_crawl_returns_handle(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/crawl").mock(
                return_value=httpx.Response(200, json={"success": True, "id": "job-1"})
            )
            handle = await client.start_crawl(build_request("crawl", {"url": "example.com"}))

        assert handle.job_id == "job-1"
        assert handle.status == "unknown"
        assert handle.progress is None

    async def test_start_crawl_without_id(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/crawl").mock(return_value=httpx.Response(200, json={"success": True}))
            with pytest.raises(MalformedResponseError):
                await client.start_crawl(build_request("crawl", {"url": "example.com"}))

    async def test_crawl_status(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.get("/v1/crawl/job-1").mock(
                return_value=httpx.Response(200, json={"status": "processing"})
            )
            assert await client.crawl_status("job-1") == {"status": "processing"}


class TestSubmit:
    async def test_crawl_returns_handle(self, client: ExtractionClient) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            mock.post("/v1/crawl").mock(return_value=httpx.Response(200, json={"id": "job-2"}))
            submitted = await client.submit(build_request("crawl", {"url": "example.com"}))

        assert isinstance(submitted, CrawlJobHandle)
        assert submitted.job_id == "job-2"

    @pytest.mark.parametrize("mode", ["scrape", "extract"])
    async def test_single_page_modes_return_payload(self, client: ExtractionClient, mode: str) -> None:
        with respx.mock(base_url=BACKEND) as mock:
            route = mock.post("/v1/scrape").mock(
                return_value=httpx.Response(200, json={"data": {"markdown": "hi"}})
            )
            submitted = await client.submit(build_request(mode, {"url": "example.com"}))

        assert submitted == {"data": {"markdown": "hi"}}
        assert route.call_count == 1
