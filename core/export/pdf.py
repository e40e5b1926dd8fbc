"""PDF merging for exported frame pages."""

from __future__ import annotations

import io
from collections.abc import Sequence

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from core.utils.errors import UpstreamFetchError


def merge_pdf_documents(buffers: Sequence[bytes]) -> bytes:
    """Concatenate the pages of ``buffers`` in the given order into one PDF."""

    writer = PdfWriter()
    for index, buffer in enumerate(buffers):
        try:
            reader = PdfReader(io.BytesIO(buffer))
        except PdfReadError as exc:
            raise UpstreamFetchError(
                f"Downloaded page {index} is not a valid PDF: {exc}",
                source="merge",
            ) from exc
        for page in reader.pages:
            writer.add_page(page)

    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()
