from __future__ import annotations

"""
Pure edit operations over the protocol tree.

Design intent:
- Every operation returns TreeEdit(document, applied); a rejected edit hands back the input document.
- Only the path from the root to the edited node is rebuilt.
- Move validation is strict: Sections stay top-level, SubSections stay nested, no cycles.
"""

from dataclasses import replace
from typing import Callable, NamedTuple

from sleepedit.internal_core.contracts import ProtocolNodeKind
from sleepedit.protocol.tree import (
    DEFAULT_NODE_TEXT,
    NO_LINK,
    ROOT_PARENT_ID,
    ProtocolTreeDocument,
    ProtocolTreeNode,
    contains_node,
    find_node,
    next_id,
)

Nodes = tuple[ProtocolTreeNode, ...]
NodeUpdater = Callable[[ProtocolTreeNode], ProtocolTreeNode]


class TreeEdit(NamedTuple):
    document: ProtocolTreeDocument
    applied: bool


def add_section(document: ProtocolTreeDocument, text: str | None) -> TreeEdit:
    _require_document(document)
    section = _create_node(document, text, "Section")
    return TreeEdit(replace(document, sections=document.sections + (section,)), True)


def add_child(document: ProtocolTreeDocument, parent_id: int, text: str | None) -> TreeEdit:
    _require_document(document)
    child = _create_node(document, text, "SubSection")
    return _apply_to_node(
        document,
        parent_id,
        lambda node: replace(node, children=node.children + (child,)),
    )


def remove_node(document: ProtocolTreeDocument, node_id: int) -> TreeEdit:
    _require_document(document)
    remaining, removed = _detach_node(document.sections, node_id)
    if removed is None:
        return TreeEdit(document, False)

    cleared = _clear_inbound_links(remaining, removed.id)
    return TreeEdit(replace(document, sections=cleared), True)


def update_node(
    document: ProtocolTreeDocument,
    node_id: int,
    text: str | None,
    link_id: int,
    link_text: str | None,
) -> TreeEdit:
    _require_document(document)
    return _apply_to_node(
        document,
        node_id,
        lambda node: replace(
            node,
            text=text or "",
            link_id=link_id,
            link_text=link_text or "",
        ),
    )


def move_node(
    document: ProtocolTreeDocument,
    node_id: int,
    parent_id: int,
    target_index: int,
) -> TreeEdit:
    _require_document(document)
    moving = find_node(document, node_id)
    if moving is None or contains_node(moving, parent_id):
        return TreeEdit(document, False)

    if not _can_resolve_move_target(document, moving.kind, parent_id):
        return TreeEdit(document, False)

    remaining, removed = _detach_node(document.sections, node_id)
    if removed is None:
        return TreeEdit(document, False)

    kind: ProtocolNodeKind = "Section" if parent_id == ROOT_PARENT_ID else "SubSection"
    normalized = replace(removed, kind=kind)

    if parent_id == ROOT_PARENT_ID:
        sections = _insert_clamped(remaining, normalized, target_index)
        return TreeEdit(replace(document, sections=sections), True)

    sections, inserted = _update_nodes(
        remaining,
        parent_id,
        lambda node: replace(
            node,
            children=_insert_clamped(node.children, normalized, target_index),
        ),
    )
    if not inserted:
        return TreeEdit(document, False)
    return TreeEdit(replace(document, sections=sections), True)


def add_sub_text(document: ProtocolTreeDocument, node_id: int, value: str | None) -> TreeEdit:
    _require_document(document)
    if not value or not value.strip():
        return TreeEdit(document, False)

    normalized = value.strip()
    return _apply_to_node(
        document,
        node_id,
        lambda node: replace(node, sub_text=node.sub_text + (normalized,)),
    )


def remove_sub_text(document: ProtocolTreeDocument, node_id: int, value: str | None) -> TreeEdit:
    _require_document(document)
    if not value or not value.strip():
        return TreeEdit(document, False)

    wanted = value.casefold()

    def _drop_first_match(node: ProtocolTreeNode) -> ProtocolTreeNode:
        for index, item in enumerate(node.sub_text):
            if item.casefold() == wanted:
                return replace(node, sub_text=node.sub_text[:index] + node.sub_text[index + 1 :])
        return node

    # A resolved node counts as applied even when nothing matched.
    return _apply_to_node(document, node_id, _drop_first_match)


def _require_document(document: ProtocolTreeDocument) -> None:
    if document is None:
        raise ValueError("document is required.")


def _create_node(
    document: ProtocolTreeDocument,
    text: str | None,
    kind: ProtocolNodeKind,
) -> ProtocolTreeNode:
    normalized = (text or "").strip()
    return ProtocolTreeNode(
        id=next_id(document),
        link_id=NO_LINK,
        link_text="",
        text=normalized or DEFAULT_NODE_TEXT,
        kind=kind,
    )


def _apply_to_node(document: ProtocolTreeDocument, node_id: int, updater: NodeUpdater) -> TreeEdit:
    sections, changed = _update_nodes(document.sections, node_id, updater)
    if not changed:
        return TreeEdit(document, False)
    return TreeEdit(replace(document, sections=sections), True)


def _update_nodes(nodes: Nodes, node_id: int, updater: NodeUpdater) -> tuple[Nodes, bool]:
    for index, node in enumerate(nodes):
        if node.id == node_id:
            updated = updater(node)
        else:
            children, changed = _update_nodes(node.children, node_id, updater)
            if not changed:
                continue
            updated = replace(node, children=children)
        return nodes[:index] + (updated,) + nodes[index + 1 :], True
    return nodes, False


def _detach_node(nodes: Nodes, node_id: int) -> tuple[Nodes, ProtocolTreeNode | None]:
    for index, node in enumerate(nodes):
        if node.id == node_id:
            return nodes[:index] + nodes[index + 1 :], node
        children, removed = _detach_node(node.children, node_id)
        if removed is not None:
            return nodes[:index] + (replace(node, children=children),) + nodes[index + 1 :], removed
    return nodes, None


def _clear_inbound_links(nodes: Nodes, removed_id: int) -> Nodes:
    changed = False
    result: list[ProtocolTreeNode] = []
    for node in nodes:
        updated = node
        children = _clear_inbound_links(node.children, removed_id)
        if children is not node.children:
            updated = replace(updated, children=children)
        if node.link_id == removed_id:
            updated = replace(updated, link_id=NO_LINK, link_text="")
        changed = changed or updated is not node
        result.append(updated)
    return tuple(result) if changed else nodes


def _can_resolve_move_target(
    document: ProtocolTreeDocument,
    moving_kind: ProtocolNodeKind,
    parent_id: int,
) -> bool:
    if moving_kind == "Section":
        return parent_id == ROOT_PARENT_ID
    if parent_id == ROOT_PARENT_ID:
        return False
    return find_node(document, parent_id) is not None


def _insert_clamped(nodes: Nodes, node: ProtocolTreeNode, target_index: int) -> Nodes:
    index = max(0, min(target_index, len(nodes)))
    return nodes[:index] + (node,) + nodes[index:]
