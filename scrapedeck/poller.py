"""Crawl job poller.

A :class:`CrawlPoller` is a polling session owned by its caller.  It
queries ``GET /v1/crawl/{id}`` immediately and then every ``interval``
seconds until the job completes or a query fails.  There is no backoff
and no ceiling on total wait time; the caller stops an unwanted loop
with :meth:`CrawlPoller.cancel`.

State machine::

    PENDING -> PROCESSING -> COMPLETED
                   |-> FAILED_UPSTREAM   (non-2xx status, bad body, or job reported failed)
                   `-> FAILED_TRANSPORT  (backend unreachable)
"""

from __future__ import annotations

import asyncio
import enum
from typing import Any, Callable, Optional

import structlog

from scrapedeck.client import ExtractionClient
from scrapedeck.config import settings
from scrapedeck.errors import (
    CRAWL_STATUS_CONTEXT,
    MalformedResponseError,
    ScrapeDeckError,
    TransportError,
    UpstreamError,
)
from scrapedeck.models import CrawlJobHandle

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[CrawlJobHandle], None]


class PollState(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED_TRANSPORT = "failed-transport"
    FAILED_UPSTREAM = "failed-upstream"


class CrawlPoller:
    """Drive one crawl job to a terminal state.

    Only one loop runs per poller: :meth:`start` cancels any loop that is
    still active before launching the new one.
    """

    def __init__(
        self,
        client: ExtractionClient,
        interval: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.client = client
        self.interval = settings.poll_interval if interval is None else interval
        self.on_progress = on_progress
        self.state = PollState.PENDING
        self.handle: Optional[CrawlJobHandle] = None
        self._task: Optional[asyncio.Task[dict[str, Any]]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, job_id: str) -> asyncio.Task[dict[str, Any]]:
        """Begin polling *job_id*; must be called from a running event loop."""
        self.cancel()
        self.handle = CrawlJobHandle(job_id=job_id)
        self.state = PollState.PENDING
        self._task = asyncio.get_running_loop().create_task(self._loop(self.handle))
        return self._task

    def cancel(self) -> None:
        """Stop the active loop, if any, and discard its job handle."""
        if self._task is not None and not self._task.done():
            logger.info("crawl_poll_cancelled", job_id=self.handle.job_id if self.handle else None)
            self._task.cancel()
        self._task = None
        self.handle = None

    async def wait(self) -> dict[str, Any]:
        """Return the completed payload of the current loop."""
        if self._task is None:
            raise RuntimeError("no crawl job is being polled")
        return await self._task

    async def run(self, job_id: str) -> dict[str, Any]:
        """Poll *job_id* to completion and return the final status payload."""
        self.start(job_id)
        return await self.wait()

    async def _loop(self, handle: CrawlJobHandle) -> dict[str, Any]:
        while True:
            try:
                payload = await self.client.crawl_status(handle.job_id)
            except (UpstreamError, MalformedResponseError) as exc:
                self._fail(handle, PollState.FAILED_UPSTREAM, exc)
                raise
            except TransportError as exc:
                self._fail(handle, PollState.FAILED_TRANSPORT, exc)
                raise

            handle.update(payload)
            self.state = (
                PollState.COMPLETED if handle.status == "completed" else PollState.PROCESSING
            )
            logger.debug(
                "crawl_poll",
                job_id=handle.job_id,
                status=payload.get("status"),
                completed=handle.completed,
                total=handle.total,
            )
            if self.on_progress is not None:
                self.on_progress(handle)

            if self.state is PollState.COMPLETED:
                logger.info("crawl_completed", job_id=handle.job_id, pages=handle.total)
                return payload
            if handle.status == "failed":
                # A job the backend itself reports as failed never completes.
                error = UpstreamError(str(payload.get("error") or f"Crawl job {handle.job_id} failed"))
                self._fail(handle, PollState.FAILED_UPSTREAM, error)
                raise error
            await asyncio.sleep(self.interval)

    def _fail(self, handle: CrawlJobHandle, state: PollState, exc: ScrapeDeckError) -> None:
        self.state = state
        handle.status = "failed"
        exc.context = CRAWL_STATUS_CONTEXT
        logger.warning("crawl_poll_failed", job_id=handle.job_id, state=state.value, error=exc.message)
