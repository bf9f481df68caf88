"""Tests for the typer CLI.

Backend calls are intercepted with ``respx``; ``uvicorn.run`` and the
browser launcher are patched out for the ``serve`` command.
"""

from __future__ import annotations

import json

import httpx
import respx
from typer.testing import CliRunner

from cli.main import app

BACKEND = "http://backend:3002"

runner = CliRunner()


def _invoke(*args: str):
    return runner.invoke(app, [*args, "--endpoint", BACKEND])


def test_scrape_prints_document():
    with respx.mock(base_url=BACKEND) as mock:
        route = mock.post("/v1/scrape").mock(
            return_value=httpx.Response(
                200, json={"data": {"markdown": "Hello world", "links": ["https://a"]}}
            )
        )
        result = _invoke("scrape", "example.com", "--format", "markdown", "--format", "links")

    assert result.exit_code == 0, result.output
    assert "## Links" in result.output
    assert "- [https://a](https://a)" in result.output
    assert "Hello world" in result.output
    body = json.loads(route.calls.last.request.content)
    assert body["url"] == "https://example.com"
    assert body["formats"] == ["markdown", "links"]


def test_scrape_json_flag():
    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/scrape").mock(
            return_value=httpx.Response(200, json={"data": {"markdown": "x", "metadata": {"title": "T"}}})
        )
        result = _invoke("scrape", "https://example.com", "--json")

    assert result.exit_code == 0, result.output
    assert '"title": "T"' in result.output


def test_scrape_invalid_url_exits_without_request():
    with respx.mock(base_url=BACKEND, assert_all_called=False) as mock:
        route = mock.post("/v1/scrape")
        result = _invoke("scrape", "http://")

    assert result.exit_code == 1
    assert "❌ Error: Invalid URL format" in result.output
    assert route.call_count == 0


def test_scrape_upstream_error():
    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/scrape").mock(return_value=httpx.Response(401, json={"error": "Unauthorized"}))
        result = _invoke("scrape", "example.com")

    assert result.exit_code == 1
    assert "❌ Error: Unauthorized" in result.output


def test_crawl_reports_progress_and_pages():
    with respx.mock(base_url=BACKEND) as mock:
        crawl = mock.post("/v1/crawl").mock(return_value=httpx.Response(200, json={"id": "job-9"}))
        mock.get("/v1/crawl/job-9").mock(
            side_effect=[
                httpx.Response(200, json={"status": "scraping", "completed": 1, "total": 3}),
                httpx.Response(
                    200,
                    json={
                        "status": "completed",
                        "completed": 3,
                        "total": 3,
                        "data": [{"markdown": "First", "metadata": {"title": "One", "sourceURL": "https://x"}}],
                    },
                ),
            ]
        )
        result = _invoke("crawl", "example.com", "--interval", "0", "--include", "/blog, /docs")

    assert result.exit_code == 0, result.output
    assert "[crawl] processing 1/3 (33%)" in result.output
    assert "[crawl] completed 3/3 (100%)" in result.output
    assert "## Page 1: One" in result.output
    body = json.loads(crawl.calls.last.request.content)
    assert body["includePaths"] == ["/blog", "/docs"]
    assert "excludePaths" not in body


def test_crawl_status_failure_is_labelled():
    with respx.mock(base_url=BACKEND) as mock:
        mock.post("/v1/crawl").mock(return_value=httpx.Response(200, json={"id": "job-9"}))
        mock.get("/v1/crawl/job-9").mock(
            return_value=httpx.Response(404, json={"error": "Job not found"})
        )
        result = _invoke("crawl", "example.com", "--interval", "0")

    assert result.exit_code == 1
    assert "❌ Error checking crawl status: Job not found" in result.output


def test_extract_invalid_schema():
    result = _invoke("extract", "example.com", "--schema", "{oops")
    assert result.exit_code == 1
    assert "Invalid JSON schema format" in result.output


def test_extract_schema_file(tmp_path):
    schema = tmp_path / "schema.json"
    schema.write_text('{"type": "object"}', encoding="utf-8")
    with respx.mock(base_url=BACKEND) as mock:
        route = mock.post("/v1/scrape").mock(
            return_value=httpx.Response(200, json={"data": {"json": {"name": "Widget"}}})
        )
        result = _invoke("extract", "example.com", "--schema-file", str(schema), "--prompt", "name")

    assert result.exit_code == 0, result.output
    assert '"name": "Widget"' in result.output
    body = json.loads(route.calls.last.request.content)
    assert body["jsonOptions"] == {"prompt": "name", "schema": {"type": "object"}}


def test_config_hides_key(monkeypatch):
    monkeypatch.setattr("cli.main.settings.backend_api_key", "fc-secret")
    result = runner.invoke(app, ["config"])
    assert result.exit_code == 0
    assert "configured" in result.output
    assert "fc-secret" not in result.output


def test_serve_runs_uvicorn(monkeypatch):
    calls = {}
    monkeypatch.setattr("uvicorn.run", lambda app, **kw: calls.update(kw))
    monkeypatch.setattr("cli.main.webbrowser.open", lambda url: calls.setdefault("opened", url))
    monkeypatch.setattr("cli.main.settings.port", 3000)

    result = runner.invoke(app, ["serve", "--port", "4000", "--open"])

    assert result.exit_code == 0, result.output
    assert calls["port"] == 4000
    assert calls["opened"] == "http://localhost:4000"
    assert "Application started: http://localhost:4000" in result.output
