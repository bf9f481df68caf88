"""Browser-facing endpoints.

Routes
------
GET /config    Body: {"apiEndpoint": "...", "apiKey": true|false}
GET /{path}    static asset if it exists, otherwise the SPA shell
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ConfigResponse(BaseModel):
    apiEndpoint: str
    apiKey: bool


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get("/config", response_model=ConfigResponse)
def get_config(request: Request) -> dict[str, Any]:
    """Report the backend endpoint and whether a key is configured.

    The key itself is never returned.
    """
    settings = request.app.state.settings
    return {"apiEndpoint": settings.backend_url, "apiKey": settings.has_api_key}


@router.get("/{path:path}", include_in_schema=False)
def spa(path: str, request: Request) -> FileResponse:
    """Serve a static asset, falling back to ``index.html`` for any other path."""
    static_dir: Path = request.app.state.settings.static_dir.resolve()
    candidate = (static_dir / path).resolve()
    if path and candidate.is_file() and candidate.is_relative_to(static_dir):
        return FileResponse(candidate)
    index = static_dir / "index.html"
    if not index.is_file():
        raise HTTPException(status_code=404, detail="index.html not found")
    return FileResponse(index)
