from __future__ import annotations

"""
Immutable protocol tree records.

Design intent:
- Nodes and documents are frozen; edits build new records with dataclasses.replace.
- Children and sub-text are tuples so untouched subtrees can be shared between versions.
"""

from dataclasses import dataclass
from typing import Iterator

from sleepedit.internal_core.contracts import ProtocolNodeKind

NO_LINK = -1
ROOT_PARENT_ID = 0
DEFAULT_NODE_TEXT = "New Node"


@dataclass(frozen=True)
class ProtocolTreeNode:
    id: int
    link_id: int = NO_LINK
    link_text: str = ""
    text: str = ""
    kind: ProtocolNodeKind = "SubSection"
    sub_text: tuple[str, ...] = ()
    children: tuple["ProtocolTreeNode", ...] = ()


@dataclass(frozen=True)
class ProtocolTreeDocument:
    id: int = -1
    link_id: int = NO_LINK
    link_text: str = ""
    text: str = ""
    sections: tuple[ProtocolTreeNode, ...] = ()


def iter_nodes(document: ProtocolTreeDocument) -> Iterator[ProtocolTreeNode]:
    """Yield every node depth-first, parents before children."""
    stack = list(reversed(document.sections))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(document: ProtocolTreeDocument, node_id: int) -> ProtocolTreeNode | None:
    if document is None:
        raise ValueError("document is required.")
    for node in iter_nodes(document):
        if node.id == node_id:
            return node
    return None


def contains_node(node: ProtocolTreeNode, node_id: int) -> bool:
    """True when node_id is the node itself or any descendant. Links are not followed."""
    if node.id == node_id:
        return True
    return any(contains_node(child, node_id) for child in node.children)


def next_id(document: ProtocolTreeDocument) -> int:
    return max((node.id for node in iter_nodes(document)), default=0) + 1
