from __future__ import annotations

import io
from collections.abc import Sequence
from pathlib import Path

import pytest
from pypdf import PdfReader, PdfWriter
from typer.testing import CliRunner

import apps.cli.main as cli_main
from apps.cli.main import app
from core.config import Settings
from core.document.models import DocumentTree
from core.utils.errors import UpstreamFetchError

runner = CliRunner()

_FILE_JSON = {
    "document": {
        "id": "0:0",
        "type": "DOCUMENT",
        "name": "Document",
        "children": [
            {
                "id": "1:1",
                "type": "CANVAS",
                "name": "Proposal",
                "children": [
                    {"id": "1:10", "type": "FRAME", "name": "0-0"},
                    {"id": "2:1", "type": "FRAME", "name": "A"},
                    {"id": "1:12", "type": "FRAME", "name": "0-11"},
                ],
            }
        ],
    }
}


def _page_pdf(width: int) -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=width, height=100)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class FakeFigmaClient:
    def __init__(self, *, fail: bool = False) -> None:
        self._fail = fail
        self.file_keys: list[str] = []

    async def __aenter__(self) -> FakeFigmaClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    async def fetch_document(self, file_key: str) -> DocumentTree:
        self.file_keys.append(file_key)
        if self._fail:
            raise UpstreamFetchError("Figma API error 404: Not found", source="figma")
        return DocumentTree.from_figma(_FILE_JSON)

    async def fetch_pdf_urls(self, file_key: str, frame_ids: Sequence[str]) -> list[str]:
        return list(frame_ids)

    async def download(self, url: str) -> bytes:
        return _page_pdf({"1:10": 100, "2:1": 200, "1:12": 300}[url])


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("FIGMA_TOKEN", "FIGMA_FILE_KEY", "FIGSYNC_BACK_FRAME_NAME"):
        monkeypatch.delenv(key, raising=False)


def _install(monkeypatch: pytest.MonkeyPatch, client: FakeFigmaClient) -> list[Settings]:
    seen: list[Settings] = []

    def _factory(settings: Settings) -> FakeFigmaClient:
        seen.append(settings)
        return client

    monkeypatch.setattr(cli_main, "_figma_client", _factory)
    return seen


def test_cli_export_writes_merged_pdf(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    client = FakeFigmaClient()
    _install(monkeypatch, client)
    out = tmp_path / "proposal.pdf"

    result = runner.invoke(
        app,
        ["export", "--frame-id", "2:1", "--file-key", "file-1", "--out", str(out)],
    )

    assert result.exit_code == 0
    reader = PdfReader(io.BytesIO(out.read_bytes()))
    assert [float(page.mediabox.width) for page in reader.pages] == [100.0, 200.0, 300.0]
    assert "order: 1:10, 2:1, 1:12" in result.output
    assert "warning: missing_special_frame" in result.output
    assert client.file_keys == ["file-1"]


def test_cli_export_uses_configured_file_key(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    client = FakeFigmaClient()
    _install(monkeypatch, client)
    monkeypatch.setenv("FIGMA_FILE_KEY", "env-key")

    result = runner.invoke(app, ["export", "--frame-id", "2:1", "--out", str(tmp_path / "a.pdf")])

    assert result.exit_code == 0
    assert client.file_keys == ["env-key"]


def test_cli_export_without_file_key_exits_1(tmp_path: Path) -> None:
    result = runner.invoke(app, ["export", "--frame-id", "2:1", "--out", str(tmp_path / "a.pdf")])

    assert result.exit_code == 1
    assert "FIGMA_FILE_KEY" in result.output


def test_cli_export_upstream_failure_exits_2(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _install(monkeypatch, FakeFigmaClient(fail=True))
    out = tmp_path / "a.pdf"

    result = runner.invoke(
        app, ["export", "--frame-id", "2:1", "--file-key", "k", "--out", str(out)]
    )

    assert result.exit_code == 2
    assert "ERROR(export_pdf): Figma API error 404" in result.output
    assert not out.exists()


def test_cli_export_requires_frame_id(tmp_path: Path) -> None:
    result = runner.invoke(app, ["export", "--out", str(tmp_path / "a.pdf")])

    assert result.exit_code != 0
