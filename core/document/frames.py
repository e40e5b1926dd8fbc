"""Frame extraction with optional page scoping."""

from __future__ import annotations

import logging

from core.document.models import Frame, Node, NodeKind
from core.document.traverse import walk_nodes
from core.sync.models import Diagnostic

logger = logging.getLogger("figsync.document")


def extract_frames(
    document_root: Node | None,
    scope_name: str | None = None,
    *,
    diagnostics: list[Diagnostic] | None = None,
) -> list[Frame]:
    """Collect FRAME nodes in pre-order.

    Rules:
    - Without ``scope_name`` the whole tree is scanned.
    - With ``scope_name`` only the subtrees of PAGE nodes whose name equals it
      exactly are scanned.
    - When no such page exists a ``scope_not_found`` diagnostic is recorded and
      the whole tree is scanned instead.

    Frames nested inside frames are collected independently.
    """

    if scope_name is None:
        return _collect_frames(document_root)

    pages: list[Node] = []

    def _find_pages(node: Node) -> None:
        if node.kind is NodeKind.PAGE and node.name == scope_name:
            pages.append(node)

    walk_nodes(document_root, _find_pages)

    if not pages:
        message = f'page "{scope_name}" not found; scanning the whole document'
        logger.warning(message)
        if diagnostics is not None:
            diagnostics.append(
                Diagnostic(
                    code="scope_not_found",
                    message=message,
                    detail={"scope_name": scope_name},
                )
            )
        return _collect_frames(document_root)

    frames: list[Frame] = []
    for page in pages:
        frames.extend(_collect_frames(page))
    return frames


def _collect_frames(root: Node | None) -> list[Frame]:
    frames: list[Frame] = []

    def _visit(node: Node) -> None:
        if node.kind is NodeKind.FRAME:
            frames.append(Frame(id=node.id, name=node.name, node=node))

    walk_nodes(root, _visit)
    return frames
