"""CLI I/O helpers for atomic output writing."""

from __future__ import annotations

import json
import tempfile
from pathlib import Path
from typing import Any

from core.sync.models import SyncReport


def report_payload(report: SyncReport) -> dict[str, Any]:
    """Wire form of a sync report (camelCase keys)."""

    return report.model_dump(mode="json", by_alias=True)


def dump_report(report: SyncReport) -> str:
    return json.dumps(report_payload(report), ensure_ascii=False, indent=2)


def write_report_atomic(path: Path, report: SyncReport) -> None:
    """Write the sync report JSON atomically using a temporary file + replace."""

    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_json(path, report_payload(report))


def write_pdf_atomic(path: Path, content: bytes) -> None:
    """Write merged PDF bytes atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        mode="wb",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        tmp.write(content)

    try:
        tmp_path.replace(path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        dir=path.parent,
        delete=False,
        prefix=f"{path.name}.",
        suffix=".tmp",
    ) as tmp:
        tmp_path = Path(tmp.name)
        json.dump(payload, tmp, ensure_ascii=False, sort_keys=True, separators=(",", ":"))

    try:
        tmp_path.replace(path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise
