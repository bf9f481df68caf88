"""End-to-end tests for JobOrchestrator: build -> submit -> poll -> normalize."""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import pytest
import respx

from scrapedeck.client import ExtractionClient
from scrapedeck.errors import OperationSuperseded, TransportError, ValidationError
from scrapedeck.models import CrawlJobHandle, ExtractionRequest
from scrapedeck.orchestrator import JobOrchestrator
from scrapedeck.poller import CrawlPoller

BACKEND = "http://backend:3002"


@pytest.fixture()
async def client():
    async with ExtractionClient(BACKEND) as c:
        yield c


async def test_scrape_operation(client: ExtractionClient) -> None:
    orchestrator = JobOrchestrator(client)
    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/scrape").mock(
            return_value=httpx.Response(
                200,
                json={"data": {"markdown": "body", "links": [{"href": "https://a", "text": "A"}]}},
            )
        )
        result = await orchestrator.run("scrape", {"url": "example.com"})

    assert result.document.startswith("## Links")
    assert result.preferred_view == "document"


async def test_crawl_operation_polls_to_completion(client: ExtractionClient) -> None:
    progress: list[str] = []
    poller = CrawlPoller(client, interval=0, on_progress=lambda h: progress.append(h.status))
    orchestrator = JobOrchestrator(client, poller=poller)

    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/crawl").mock(return_value=httpx.Response(200, json={"id": "abc"}))
        status = mock.get("/v1/crawl/abc").mock(
            side_effect=[
                httpx.Response(200, json={"status": "scraping", "completed": 0, "total": 1}),
                httpx.Response(
                    200,
                    json={
                        "status": "completed",
                        "completed": 1,
                        "total": 1,
                        "data": [{"markdown": "page", "metadata": {"title": "P", "sourceURL": "https://p"}}],
                    },
                ),
            ]
        )
        result = await orchestrator.run("crawl", {"url": "example.com"})

    assert status.call_count == 2
    assert progress == ["processing", "completed"]
    assert result.structured_payload[0]["title"] == "P"
    assert "## Page 1: P" in result.document


async def test_validation_error_sends_nothing(client: ExtractionClient) -> None:
    orchestrator = JobOrchestrator(client)
    with respx.mock(base_url=BACKEND, assert_all_called=False) as mock:
        route = mock.post("/v1/scrape")
        with pytest.raises(ValidationError):
            await orchestrator.run("scrape", {"url": "http://"})

    assert route.call_count == 0


async def test_transport_error_on_submit(client: ExtractionClient) -> None:
    orchestrator = JobOrchestrator(client)
    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/crawl").mock(side_effect=httpx.ConnectError("Name or service not known"))
        with pytest.raises(TransportError):
            await orchestrator.run("crawl", {"url": "example.com"})

    assert not orchestrator.poller.active


# ---------------------------------------------------------------------------
# Reset and superseded operations
# ---------------------------------------------------------------------------

class _HeldClient:
    """Backend stand-in whose submissions wait until the test releases them.

    Crawl jobs never complete, so a poll loop stays active until cancelled.
    """

    def __init__(self) -> None:
        self.gates: dict[str, asyncio.Event] = {}
        self.submitted: list[str] = []
        self.status_queries: list[str] = []

    def hold(self, url: str) -> asyncio.Event:
        self.gates[url] = asyncio.Event()
        return self.gates[url]

    async def submit(self, request: ExtractionRequest) -> Any:
        self.submitted.append(request.url)
        gate = self.gates.get(request.url)
        if gate is not None:
            await gate.wait()
        if request.mode == "crawl":
            return CrawlJobHandle(job_id=f"job-{request.url}")
        return {"data": {"markdown": request.url}}

    async def crawl_status(self, job_id: str) -> dict[str, Any]:
        self.status_queries.append(job_id)
        return {"status": "scraping", "completed": 0, "total": 2}


async def _until(predicate, attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0.005)
    raise AssertionError("condition never became true")


@pytest.fixture()
def held() -> _HeldClient:
    return _HeldClient()


@pytest.fixture()
def orchestrator(held: _HeldClient) -> JobOrchestrator:
    return JobOrchestrator(held, poller=CrawlPoller(held, interval=0.01))


async def test_reset_stops_active_poll_loop(held: _HeldClient, orchestrator: JobOrchestrator) -> None:
    task = asyncio.create_task(orchestrator.run("crawl", {"url": "a.example"}))
    await _until(lambda: held.status_queries)
    assert orchestrator.poller.active

    orchestrator.reset()
    with pytest.raises(OperationSuperseded):
        await task

    assert not orchestrator.poller.active
    queries = len(held.status_queries)
    await asyncio.sleep(0.05)
    assert len(held.status_queries) == queries


async def test_crawl_accepted_after_reset_is_not_polled(
    held: _HeldClient, orchestrator: JobOrchestrator
) -> None:
    gate = held.hold("https://a.example")
    task = asyncio.create_task(orchestrator.run("crawl", {"url": "a.example"}))
    await _until(lambda: held.submitted)

    orchestrator.reset()
    gate.set()
    with pytest.raises(OperationSuperseded):
        await task

    assert held.status_queries == []
    assert not orchestrator.poller.active


async def test_scrape_answered_after_reset_is_dropped(
    held: _HeldClient, orchestrator: JobOrchestrator
) -> None:
    gate = held.hold("https://a.example")
    task = asyncio.create_task(orchestrator.run("scrape", {"url": "a.example"}))
    await _until(lambda: held.submitted)

    orchestrator.reset()
    gate.set()
    with pytest.raises(OperationSuperseded):
        await task


async def test_late_crawl_does_not_replace_newer_operation(
    held: _HeldClient, orchestrator: JobOrchestrator
) -> None:
    gate = held.hold("https://a.example")
    first = asyncio.create_task(orchestrator.run("crawl", {"url": "a.example"}))
    await _until(lambda: held.submitted)

    second = asyncio.create_task(orchestrator.run("crawl", {"url": "b.example"}))
    await _until(lambda: held.status_queries)

    gate.set()
    with pytest.raises(OperationSuperseded):
        await first

    assert orchestrator.poller.active
    assert orchestrator.poller.handle.job_id == "job-https://b.example"
    assert set(held.status_queries) == {"job-https://b.example"}

    orchestrator.reset()
    with pytest.raises(OperationSuperseded):
        await second
