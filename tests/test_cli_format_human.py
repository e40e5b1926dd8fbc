from __future__ import annotations

from apps.cli.format_human import render_export_summary, render_sync_summary
from core.sync.models import AssemblyPlan, Diagnostic, SyncReport


def _unmatched(name: str) -> Diagnostic:
    return Diagnostic(code="unmatched_frame", message="no record", frame_name=name)


def test_render_sync_summary_counts_and_unmatched_frames() -> None:
    report = SyncReport(
        count=4,
        matched_frame_ids=["2:1", "2:2"],
        total_frames=7,
        matched_count=2,
        diagnostics=[
            Diagnostic(code="duplicate_record", message="dup"),
            *(_unmatched(name) for name in ["C", "D", "E", "F", "G"]),
        ],
    )

    summary = render_sync_summary(report)

    assert summary.splitlines() == [
        "sync_summary:",
        "file_key=none",
        "frames=7 matched=2 patches=4",
        "diagnostics: unmatched_frame=5, duplicate_record=1",
        "unmatched: C, D, E (+2 more)",
    ]


def test_render_sync_summary_without_diagnostics() -> None:
    report = SyncReport(count=0, total_frames=0, matched_count=0, file_key="file-1")

    summary = render_sync_summary(report)

    assert "file_key=file-1" in summary
    assert "diagnostics: none" in summary
    assert "unmatched" not in summary


def test_render_export_summary_lists_order_and_warnings() -> None:
    plan = AssemblyPlan(
        ordered_ids=["1:0", "2:1"],
        diagnostics=[
            Diagnostic(
                code="missing_special_frame",
                message='back frame "0-11" not found',
                frame_name="0-11",
            )
        ],
    )

    summary = render_export_summary(plan, 2048)

    assert summary.splitlines() == [
        "export_summary:",
        "pages=2 bytes=2048",
        "order: 1:0, 2:1",
        'warning: missing_special_frame: back frame "0-11" not found',
    ]
