"""Sequences one operation: build -> submit -> (crawl) poll -> normalize."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import structlog

from scrapedeck.client import ExtractionClient
from scrapedeck.errors import OperationSuperseded
from scrapedeck.models import CrawlJobHandle, NormalizedResult
from scrapedeck.normalizer import normalize
from scrapedeck.payloads import build_request
from scrapedeck.poller import CrawlPoller, ProgressCallback

logger = structlog.get_logger(__name__)


class JobOrchestrator:
    """Runs scrape / crawl / extract operations one at a time.

    The orchestrator owns a single :class:`CrawlPoller`.  Starting an
    operation, or calling :meth:`reset`, cancels whatever loop that
    poller is running and retires the operation that started it.  A
    network call already in flight is left alone; when it answers for a
    retired operation its result is dropped and the poller is not
    touched.
    """

    def __init__(
        self,
        client: ExtractionClient,
        poller: Optional[CrawlPoller] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.client = client
        self.poller = poller or CrawlPoller(client, on_progress=on_progress)
        self._operation = 0

    def reset(self) -> None:
        self._operation += 1
        self.poller.cancel()

    def _ensure_current(self, operation: int, mode: str) -> None:
        if operation != self._operation:
            logger.info("operation_discarded", mode=mode)
            raise OperationSuperseded(f"{mode} operation was reset before it finished")

    async def run(self, mode: str, raw: Mapping[str, Any]) -> NormalizedResult:
        """Execute one operation end to end.

        Raises:
            ValidationError: before anything is sent.
            TransportError, UpstreamError, MalformedResponseError: from the
                submit or poll stages; polling has stopped by then.
            OperationSuperseded: :meth:`reset` or a newer :meth:`run` was
                called while this one was waiting on the network.
        """
        self.reset()
        operation = self._operation
        request = build_request(mode, raw)
        logger.info("operation_started", mode=mode, url=request.url)

        submitted = await self.client.submit(request)
        self._ensure_current(operation, mode)

        if isinstance(submitted, CrawlJobHandle):
            try:
                payload = await self.poller.run(submitted.job_id)
            except asyncio.CancelledError:
                if operation == self._operation:
                    raise
                payload = None
            self._ensure_current(operation, mode)
        else:
            payload = submitted

        result = normalize(payload, mode)
        logger.info("operation_finished", mode=mode, links=len(result.links))
        return result
