"""Depth-first traversal over the design document tree."""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.document.models import Node


def walk_nodes(root: Node | None, visit: Callable[[Node], None]) -> None:
    """Visit ``root`` and every descendant in pre-order.

    Each node is visited before its children and children are visited in
    their list order. ``None`` is a no-op. An explicit stack is used
    so very deep trees are not limited by the interpreter recursion limit.
    """

    if root is None:
        return

    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        visit(node)
        stack.extend(reversed(node.children))
