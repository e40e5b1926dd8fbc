"""Human-readable sync summary rendering for CLI output."""

from __future__ import annotations

from collections import Counter

from core.sync.models import AssemblyPlan, SyncReport


def render_sync_summary(report: SyncReport) -> str:
    """Render one-screen human-readable sync summary."""

    lines: list[str] = []
    lines.append("sync_summary:")
    lines.append(f"file_key={_to_string(report.file_key)}")
    lines.append(
        f"frames={report.total_frames} matched={report.matched_count} patches={report.count}"
    )

    code_counter: Counter[str] = Counter(item.code for item in report.diagnostics)
    if code_counter:
        top_items = sorted(code_counter.items(), key=lambda item: (-item[1], item[0]))[:5]
        lines.append("diagnostics: " + ", ".join(f"{code}={count}" for code, count in top_items))
    else:
        lines.append("diagnostics: none")

    unmatched = [
        item.frame_name
        for item in report.diagnostics
        if item.code == "unmatched_frame" and item.frame_name is not None
    ]
    if unmatched:
        shown = ", ".join(unmatched[:3])
        more = f" (+{len(unmatched) - 3} more)" if len(unmatched) > 3 else ""
        lines.append(f"unmatched: {shown}{more}")

    return "\n".join(lines)


def render_export_summary(plan: AssemblyPlan, pdf_size: int) -> str:
    lines = ["export_summary:", f"pages={len(plan.ordered_ids)} bytes={pdf_size}"]
    lines.append("order: " + (", ".join(plan.ordered_ids) or "none"))
    for item in plan.diagnostics:
        lines.append(f"warning: {item.code}: {item.message}")
    return "\n".join(lines)


def _to_string(value: object) -> str:
    if value is None:
        return "none"
    return str(value)
