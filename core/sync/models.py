"""Reconciliation input and report models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DiagnosticCode = Literal[
    "unmatched_frame",
    "missing_special_frame",
    "scope_not_found",
    "duplicate_record",
    "unknown_frame_id",
]


@dataclass(frozen=True)
class Record:
    """One source row keyed by its trimmed product name."""

    name: str
    fields: Mapping[str, str] = field(default_factory=dict)


class Patch(BaseModel):
    """Instruction to replace one text layer's content."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    node_id: str
    frame_name: str
    layer_name: str
    new_text: str


class Diagnostic(BaseModel):
    """Non-fatal anomaly observed while reconciling or assembling."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    code: DiagnosticCode
    message: str
    frame_name: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)


class ReconcileResult(BaseModel):
    """Patches in discovery order and matched frame ids in record order."""

    model_config = ConfigDict(extra="forbid")

    patches: list[Patch] = Field(default_factory=list)
    matched_frame_ids: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class SyncReport(BaseModel):
    """Reporting payload served to the plugin and printed by the CLI."""

    model_config = ConfigDict(extra="forbid", alias_generator=to_camel, populate_by_name=True)

    status: Literal["ok"] = "ok"
    count: int
    patches: list[Patch] = Field(default_factory=list)
    matched_frame_ids: list[str] = Field(default_factory=list)
    total_frames: int
    matched_count: int
    file_key: str | None = None
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class AssemblyPlan(BaseModel):
    """Final export page order plus the diagnostics produced building it."""

    model_config = ConfigDict(extra="forbid")

    ordered_ids: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)
