from __future__ import annotations

import io

import pytest
from pypdf import PdfReader, PdfWriter

from core.export.pdf import merge_pdf_documents
from core.utils.errors import UpstreamFetchError


def _pdf_bytes(*widths: int) -> bytes:
    writer = PdfWriter()
    for width in widths:
        writer.add_blank_page(width=width, height=792)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def _page_widths(content: bytes) -> list[float]:
    reader = PdfReader(io.BytesIO(content))
    return [float(page.mediabox.width) for page in reader.pages]


def test_merge_appends_pages_in_buffer_order() -> None:
    merged = merge_pdf_documents([_pdf_bytes(300), _pdf_bytes(400, 450), _pdf_bytes(500)])

    assert _page_widths(merged) == [300.0, 400.0, 450.0, 500.0]


def test_merge_of_no_buffers_is_an_empty_pdf() -> None:
    merged = merge_pdf_documents([])

    assert merged.startswith(b"%PDF")
    assert _page_widths(merged) == []


def test_merge_rejects_non_pdf_payload() -> None:
    with pytest.raises(UpstreamFetchError) as exc_info:
        merge_pdf_documents([_pdf_bytes(300), b"<html>rate limited</html>"])

    assert exc_info.value.source == "merge"
    assert "page 1" in str(exc_info.value)
