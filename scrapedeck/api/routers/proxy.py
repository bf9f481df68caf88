"""Proxy endpoint.

Routes
------
ANY /api/{path}    forwarded to ``<FIRECRAWL_API_URL>/{path}``
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import Response

router = APIRouter()

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@router.api_route("", methods=PROXY_METHODS, include_in_schema=False)
@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy(request: Request) -> Response:
    """Forward the request to the backend extraction service."""
    return await request.app.state.gateway.forward(request)
