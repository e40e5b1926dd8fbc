"""Export page ordering around fixed cover, table-of-contents and back frames."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from core.document.models import Frame
from core.sync.models import AssemblyPlan, Diagnostic

logger = logging.getLogger("figsync.export")

COVER_FRAME_NAME = "0-0"
TOC_FRAME_NAME = "0-1"
BACK_FRAME_NAME = "0-11"


def find_frame_id(frames: Sequence[Frame], name: str) -> str | None:
    """Return the id of the first frame whose trimmed name equals ``name``."""

    for frame in frames:
        if frame.name.strip() == name:
            return frame.id
    return None


def assemble_order(
    requested_ids: Sequence[str],
    all_frames: Sequence[Frame],
    cover_name: str = COVER_FRAME_NAME,
    toc_name: str = TOC_FRAME_NAME,
    back_name: str = BACK_FRAME_NAME,
) -> AssemblyPlan:
    """Build the export order ``[cover] + [toc] + requested + [back]``.

    Special frames that cannot be located are left out with a
    ``missing_special_frame`` diagnostic. Repeated ids keep only their first
    position.
    """

    diagnostics: list[Diagnostic] = []

    def _locate(role: str, name: str) -> str | None:
        frame_id = find_frame_id(all_frames, name)
        if frame_id is None:
            message = f'{role} frame "{name}" not found'
            logger.warning(message)
            diagnostics.append(
                Diagnostic(
                    code="missing_special_frame",
                    message=message,
                    frame_name=name,
                    detail={"role": role},
                )
            )
        return frame_id

    cover_id = _locate("cover", cover_name)
    toc_id = _locate("toc", toc_name)
    back_id = _locate("back", back_name)

    working: list[str] = []
    if cover_id is not None:
        working.append(cover_id)
    if toc_id is not None:
        working.append(toc_id)
    working.extend(requested_ids)
    if back_id is not None:
        working.append(back_id)

    return AssemblyPlan(ordered_ids=list(dict.fromkeys(working)), diagnostics=diagnostics)
