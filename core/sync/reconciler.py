"""Frame-to-record reconciliation producing text patches and a frame ranking."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from core.document.models import Frame, Node, NodeKind
from core.document.traverse import walk_nodes
from core.sync.field_map import DEFAULT_FIELD_MAP, FieldMap
from core.sync.models import Diagnostic, Patch, ReconcileResult, Record

logger = logging.getLogger("figsync.sync")

# Ranks frames whose name is missing from the record order after every ranked frame.
UNRANKED = sys.maxsize


@dataclass(frozen=True)
class _MatchedFrame:
    frame_id: str
    rank: int


class Reconciler:
    """Match frames to records by trimmed name and plan text layer updates."""

    def __init__(self, field_map: FieldMap = DEFAULT_FIELD_MAP) -> None:
        self._field_map = field_map

    @property
    def field_map(self) -> FieldMap:
        return self._field_map

    def reconcile(
        self,
        frames: Sequence[Frame],
        records: Mapping[str, Record],
    ) -> ReconcileResult:
        """Reconcile frames against records.

        Rules:
        - Record rank is the position of its key in ``records`` iteration order.
        - Frames are processed in extraction order; unmatched frames are skipped
          with an ``unmatched_frame`` diagnostic.
        - A patch is emitted for each TEXT node in a matched frame whose name is
          in the field map and whose mapped field exists on the record.
        - Patches keep discovery order; matched frame ids are stable-sorted by rank.
        """

        rank_by_name: dict[str, int] = {}
        for index, key in enumerate(records):
            rank_by_name[key.strip()] = index

        patches: list[Patch] = []
        matched: list[_MatchedFrame] = []
        diagnostics: list[Diagnostic] = []

        for frame in frames:
            frame_name = frame.name.strip()
            record = records.get(frame_name)
            if record is None:
                message = f'no record found for frame "{frame_name}"'
                logger.warning(message)
                diagnostics.append(
                    Diagnostic(
                        code="unmatched_frame",
                        message=message,
                        frame_name=frame_name,
                        detail={"frame_id": frame.id},
                    )
                )
                continue

            rank = rank_by_name.get(frame_name, UNRANKED)
            logger.info('matched frame "%s" (id=%s, rank=%s)', frame_name, frame.id, rank)

            patches.extend(self._build_frame_patches(frame.node, frame_name, record))
            matched.append(_MatchedFrame(frame_id=frame.id, rank=rank))

        matched.sort(key=lambda item: item.rank)

        return ReconcileResult(
            patches=patches,
            matched_frame_ids=[item.frame_id for item in matched],
            diagnostics=diagnostics,
        )

    def _build_frame_patches(self, frame_root: Node, frame_name: str, record: Record) -> list[Patch]:
        patches: list[Patch] = []

        def _visit(node: Node) -> None:
            if node.kind is not NodeKind.TEXT:
                return
            field_key = self._field_map.get(node.name)
            if field_key is None or field_key not in record.fields:
                return
            patches.append(
                Patch(
                    node_id=node.id,
                    frame_name=frame_name,
                    layer_name=node.name,
                    new_text=record.fields[field_key],
                )
            )

        walk_nodes(frame_root, _visit)
        return patches


def build_record_map(
    records: Iterable[Record],
    *,
    diagnostics: list[Diagnostic] | None = None,
) -> dict[str, Record]:
    """Index records by name in input order.

    A repeated name keeps the position of its first occurrence and the value of
    its last one, and is reported as a ``duplicate_record`` diagnostic.
    """

    record_map: dict[str, Record] = {}
    for record in records:
        if record.name in record_map:
            message = f'duplicate record name "{record.name}"; later row overwrites earlier'
            logger.warning(message)
            if diagnostics is not None:
                diagnostics.append(
                    Diagnostic(
                        code="duplicate_record",
                        message=message,
                        detail={"name": record.name},
                    )
                )
        record_map[record.name] = record
    return record_map
