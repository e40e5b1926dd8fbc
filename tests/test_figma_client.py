from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from core.sources.figma import FigmaClient, load_document_file
from core.utils.errors import UpstreamFetchError

_FILE_JSON = {
    "name": "Proposal",
    "document": {
        "id": "0:0",
        "type": "DOCUMENT",
        "name": "Document",
        "children": [
            {
                "id": "1:1",
                "type": "CANVAS",
                "name": "Products",
                "children": [{"id": "2:1", "type": "FRAME", "name": "Widget"}],
            }
        ],
    },
}


def _client(handler) -> FigmaClient:
    return FigmaClient(
        "secret-token",
        base_url="https://figma.test",
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.anyio
async def test_fetch_document_sends_token_and_parses_tree() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=_FILE_JSON)

    async with _client(handler) as client:
        tree = await client.fetch_document("file-1")

    assert seen[0].url.path == "/v1/files/file-1"
    assert seen[0].headers["X-Figma-Token"] == "secret-token"
    assert tree.name == "Proposal"
    assert tree.get("2:1").name == "Widget"


@pytest.mark.anyio
async def test_fetch_document_error_uses_err_field() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(403, json={"status": 403, "err": "Invalid token"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamFetchError, match="Invalid token") as exc_info:
            await client.fetch_document("file-1")

    assert exc_info.value.source == "figma"
    assert exc_info.value.status_code == 403


@pytest.mark.anyio
async def test_fetch_document_rejects_payload_without_document() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"name": "x"})

    async with _client(handler) as client:
        with pytest.raises(UpstreamFetchError, match="Unexpected Figma file payload"):
            await client.fetch_document("file-1")


@pytest.mark.anyio
async def test_fetch_pdf_urls_aligns_with_requested_ids() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "err": None,
                "images": {"2:2": "https://cdn.test/b.pdf", "2:1": "https://cdn.test/a.pdf"},
            },
        )

    async with _client(handler) as client:
        urls = await client.fetch_pdf_urls("file-1", ["2:1", "2:2"])

    assert urls == ["https://cdn.test/a.pdf", "https://cdn.test/b.pdf"]
    assert seen[0].url.path == "/v1/images/file-1"
    assert seen[0].url.params["ids"] == "2:1,2:2"
    assert seen[0].url.params["format"] == "pdf"


@pytest.mark.anyio
async def test_fetch_pdf_urls_missing_url_is_upstream_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"images": {"2:1": "https://cdn.test/a.pdf", "2:2": None}})

    async with _client(handler) as client:
        with pytest.raises(UpstreamFetchError, match="2:2"):
            await client.fetch_pdf_urls("file-1", ["2:1", "2:2"])


@pytest.mark.anyio
async def test_fetch_pdf_urls_with_no_ids_skips_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        assert await client.fetch_pdf_urls("file-1", []) == []


@pytest.mark.anyio
async def test_download_does_not_forward_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"%PDF-1.4 page")

    async with _client(handler) as client:
        content = await client.download("https://cdn.test/a.pdf")

    assert content == b"%PDF-1.4 page"
    assert seen[0].url.host == "cdn.test"
    assert "X-Figma-Token" not in seen[0].headers


@pytest.mark.anyio
async def test_download_failure_is_upstream_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="gone")

    async with _client(handler) as client:
        with pytest.raises(UpstreamFetchError) as exc_info:
            await client.download("https://cdn.test/a.pdf")

    assert exc_info.value.source == "download"
    assert exc_info.value.status_code == 404


@pytest.mark.anyio
async def test_transport_error_is_upstream_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(UpstreamFetchError, match="request failed"):
            await client.fetch_document("file-1")


def test_load_document_file_reads_saved_response(tmp_path: Path) -> None:
    path = tmp_path / "file.json"
    path.write_text(json.dumps(_FILE_JSON), encoding="utf-8")

    tree = load_document_file(path)

    assert tree.get("1:1").name == "Products"


def test_load_document_file_rejects_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "file.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid document JSON"):
        load_document_file(path)
