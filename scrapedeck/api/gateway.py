"""Request gateway: forwards ``/api/*`` calls to the backend service.

For each inbound request the gateway

1. strips the configured prefix from the path (query string kept),
2. clones the headers minus ``host``, adding the bearer credential and a
   JSON ``content-type`` default where appropriate,
3. buffers the body of POST / PUT / PATCH requests and passes it on
   untouched,
4. copies the upstream status, headers and raw body back verbatim.

Transport failures never escape as exceptions: the browser receives
``500 {"error": "Proxy error", "message": ...}`` instead.  There is a
single attempt per inbound request.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog
from fastapi import Request
from fastapi.responses import JSONResponse, Response

from scrapedeck.errors import ProxyError

logger = structlog.get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# The body is re-framed by the local server, so the upstream (or inbound)
# chunked framing header must not be copied across.
_FRAMING_HEADERS = frozenset({"transfer-encoding"})


def rewrite_path(path: str, prefix: str) -> str:
    """Strip *prefix* from the start of *path*.

    ``/api/v1/scrape?x=1`` becomes ``/v1/scrape?x=1`` and ``/api`` alone
    becomes ``/``.

    Raises:
        ProxyError: ``malformed-response`` if the result is not routable.
    """
    prefix = prefix.rstrip("/")
    if prefix and (path == prefix or path.startswith((prefix + "/", prefix + "?"))):
        path = path[len(prefix):]
    if not path or path.startswith("?"):
        path = "/" + path
    if not path.startswith("/"):
        raise ProxyError(ProxyError.MALFORMED_RESPONSE, f"Cannot route path {path!r}")
    return path


def proxy_error_response(exc: ProxyError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": "Proxy error", "message": exc.message},
    )


class Gateway:
    """Forwards requests to *backend_url* using a shared async client."""

    def __init__(
        self,
        backend_url: str,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        strip_prefix: str = "/api",
    ) -> None:
        self.backend_url = backend_url.rstrip("/")
        self.client = client
        self.api_key = api_key
        self.strip_prefix = strip_prefix

    def target_url(self, raw_path: str) -> str:
        return f"{self.backend_url}{rewrite_path(raw_path, self.strip_prefix)}"

    def outbound_headers(self, request: Request, has_body: bool) -> dict[str, str]:
        headers = {
            key: value
            for key, value in request.headers.items()
            if key.lower() != "host" and key.lower() not in _FRAMING_HEADERS
        }
        if self.api_key:
            for key in [k for k in headers if k.lower() == "authorization"]:
                del headers[key]
            headers["Authorization"] = f"Bearer {self.api_key}"
        if has_body and not any(k.lower() == "content-type" for k in headers):
            headers["content-type"] = "application/json"
        return headers

    async def forward(self, request: Request) -> Response:
        raw_path = request.url.path
        if request.url.query:
            raw_path = f"{raw_path}?{request.url.query}"

        try:
            target = self.target_url(raw_path)
        except ProxyError as exc:
            logger.error("proxy_unroutable", path=request.url.path, error=exc.message)
            return proxy_error_response(exc)

        logger.info(
            "proxy_request",
            method=request.method,
            path=request.url.path,
            target=target,
        )

        body = b""
        if request.method in BODY_METHODS:
            body = await request.body()
        headers = self.outbound_headers(request, has_body=bool(body))

        try:
            upstream_request = self.client.build_request(
                request.method, target, headers=headers, content=body or None
            )
            upstream = await self.client.send(upstream_request, stream=True)
            try:
                raw_body = b"".join([chunk async for chunk in upstream.aiter_raw()])
            finally:
                await upstream.aclose()
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            error = ProxyError(ProxyError.NETWORK, str(exc) or exc.__class__.__name__)
            logger.error("proxy_error", method=request.method, target=target, error=error.message)
            return proxy_error_response(error)

        response_headers = [
            (key, value)
            for key, value in upstream.headers.multi_items()
            if key.lower() not in _FRAMING_HEADERS
        ]
        response = Response(content=raw_body, status_code=upstream.status_code)
        # Replace Starlette's defaults so upstream headers go out verbatim,
        # repeated headers (set-cookie) included.
        response.raw_headers = [
            (key.encode("latin-1"), value.encode("latin-1")) for key, value in response_headers
        ]
        if not any(key.lower() == "content-length" for key, _ in response_headers):
            response.raw_headers.append((b"content-length", str(len(raw_body)).encode()))
        return response
