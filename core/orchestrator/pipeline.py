"""Orchestration of reconciliation reports and PDF export."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Protocol

from core.document.frames import extract_frames
from core.document.models import DocumentTree
from core.export.assembler import (
    BACK_FRAME_NAME,
    COVER_FRAME_NAME,
    TOC_FRAME_NAME,
    assemble_order,
)
from core.export.pdf import merge_pdf_documents
from core.sync.field_map import DEFAULT_FIELD_MAP, FieldMap
from core.sync.models import AssemblyPlan, Diagnostic, Record, SyncReport
from core.sync.reconciler import Reconciler

logger = logging.getLogger("figsync.export")


class PageRenderer(Protocol):
    """Renders frames to downloadable pages."""

    async def fetch_pdf_urls(self, file_key: str, frame_ids: Sequence[str]) -> list[str]:
        """Return one url per frame id, aligned with ``frame_ids``."""

    async def download(self, url: str) -> bytes:
        """Download one rendered page."""


def build_sync_report(
    tree: DocumentTree,
    records: Mapping[str, Record],
    *,
    scope_name: str | None = None,
    field_map: FieldMap = DEFAULT_FIELD_MAP,
    frame_limit: int | None = None,
    file_key: str | None = None,
    diagnostics: Sequence[Diagnostic] = (),
) -> SyncReport:
    """Extract frames, reconcile them against records and build the report.

    ``frame_limit`` restricts reconciliation to the first N extracted frames;
    ``total_frames`` still counts every extracted frame. ``diagnostics`` are
    upstream findings (for example duplicate records) prepended to the report.
    """

    collected: list[Diagnostic] = list(diagnostics)
    frames = extract_frames(tree.root, scope_name, diagnostics=collected)
    candidates = frames[:frame_limit] if frame_limit is not None else frames

    result = Reconciler(field_map).reconcile(candidates, records)
    collected.extend(result.diagnostics)

    return SyncReport(
        count=len(result.patches),
        patches=result.patches,
        matched_frame_ids=result.matched_frame_ids,
        total_frames=len(frames),
        matched_count=len(result.matched_frame_ids),
        file_key=file_key,
        diagnostics=collected,
    )


def plan_export(
    tree: DocumentTree,
    requested_ids: Sequence[str],
    *,
    back_name: str = BACK_FRAME_NAME,
) -> AssemblyPlan:
    """Resolve the final page order for an export request.

    Requested ids that are not frames of the document are kept and reported as
    ``unknown_frame_id``; the renderer is the authority on what exists.
    """

    frames = extract_frames(tree.root)
    plan = assemble_order(
        requested_ids,
        frames,
        cover_name=COVER_FRAME_NAME,
        toc_name=TOC_FRAME_NAME,
        back_name=back_name,
    )

    frame_ids = {frame.id for frame in frames}
    for frame_id in requested_ids:
        if frame_id not in frame_ids:
            message = f"requested frame id {frame_id} is not a frame in the document"
            logger.warning(message)
            plan.diagnostics.append(
                Diagnostic(
                    code="unknown_frame_id",
                    message=message,
                    detail={"frame_id": frame_id},
                )
            )

    logger.info("export page order: %s", plan.ordered_ids)
    return plan


async def export_pdf(
    renderer: PageRenderer,
    file_key: str,
    ordered_ids: Sequence[str],
    *,
    max_concurrency: int = 4,
) -> bytes:
    """Render, download and merge pages in ``ordered_ids`` order.

    Downloads run concurrently (at most ``max_concurrency`` at once); the merge
    consumes them by request position.
    """

    urls = await renderer.fetch_pdf_urls(file_key, ordered_ids)
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _download(url: str) -> bytes:
        async with semaphore:
            return await renderer.download(url)

    tasks = [asyncio.ensure_future(_download(url)) for url in urls]
    try:
        buffers = await asyncio.gather(*tasks)
    except BaseException:
        # No download may outlive a failed export.
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    logger.info("downloaded %d pages", len(buffers))
    return merge_pdf_documents(list(buffers))
