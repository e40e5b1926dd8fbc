"""Design document node models.

Nodes are parsed once from the Figma file JSON into immutable values. Every
node owns its children top-down and keeps no parent reference, so the tree
cannot express cycles.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from core.document.traverse import walk_nodes


class NodeKind(str, Enum):
    """Closed set of node kinds the reconciliation logic switches on."""

    CONTAINER_ROOT = "CONTAINER_ROOT"
    PAGE = "PAGE"
    FRAME = "FRAME"
    TEXT = "TEXT"
    OTHER = "OTHER"


_FIGMA_TYPE_TO_KIND: Mapping[str, NodeKind] = MappingProxyType(
    {
        "DOCUMENT": NodeKind.CONTAINER_ROOT,
        "CANVAS": NodeKind.PAGE,
        "FRAME": NodeKind.FRAME,
        "TEXT": NodeKind.TEXT,
    }
)


@dataclass(frozen=True)
class Node:
    """One node of the design document tree."""

    id: str
    kind: NodeKind
    name: str
    children: tuple[Node, ...] = ()
    source_type: str | None = None


@dataclass(frozen=True)
class Frame:
    """A FRAME node plus a reference to its own subtree."""

    id: str
    name: str
    node: Node


@dataclass(frozen=True)
class DocumentTree:
    """Parsed design file with an id index over all nodes."""

    root: Node
    name: str | None = None
    nodes_by_id: Mapping[str, Node] = field(default_factory=dict, compare=False, repr=False)

    def get(self, node_id: str) -> Node | None:
        return self.nodes_by_id.get(node_id)

    @classmethod
    def from_figma(cls, file_json: Mapping[str, Any]) -> DocumentTree:
        """Build a tree from a Figma ``GET /v1/files/:key`` response body."""

        document = file_json.get("document")
        if not isinstance(document, Mapping):
            raise ValueError("Figma file JSON must contain a 'document' object")

        root = node_from_figma(document)
        index: dict[str, Node] = {}
        walk_nodes(root, lambda node: index.setdefault(node.id, node))

        name = file_json.get("name")
        return cls(
            root=root,
            name=name if isinstance(name, str) else None,
            nodes_by_id=MappingProxyType(index),
        )


def kind_for_figma_type(figma_type: str | None) -> NodeKind:
    """Map a Figma ``type`` string to a node kind."""

    if figma_type is None:
        return NodeKind.OTHER
    return _FIGMA_TYPE_TO_KIND.get(figma_type, NodeKind.OTHER)


def node_from_figma(raw: Mapping[str, Any]) -> Node:
    """Convert one raw Figma node (and its descendants) into a ``Node``.

    Missing ``children`` or a non-list ``children`` value yields a leaf.
    """

    raw_type = raw.get("type")
    source_type = raw_type if isinstance(raw_type, str) else None

    raw_children = raw.get("children")
    children: tuple[Node, ...] = ()
    if isinstance(raw_children, list):
        children = tuple(
            node_from_figma(child) for child in raw_children if isinstance(child, Mapping)
        )

    return Node(
        id=str(raw.get("id", "")),
        kind=kind_for_figma_type(source_type),
        name=str(raw.get("name", "")),
        children=children,
        source_type=source_type,
    )
