from __future__ import annotations

from sleepedit.internal_core.contracts import ProtocolDocumentModel, ProtocolNodeModel
from sleepedit.protocol.tree import ProtocolTreeDocument, ProtocolTreeNode


def to_domain(document: ProtocolDocumentModel) -> ProtocolTreeDocument:
    if document is None:
        raise ValueError("document is required.")
    return ProtocolTreeDocument(
        id=document.id,
        link_id=document.link_id,
        link_text=document.link_text or "",
        text=document.text or "",
        sections=tuple(_to_domain_node(node) for node in document.sections),
    )


def to_model(document: ProtocolTreeDocument) -> ProtocolDocumentModel:
    if document is None:
        raise ValueError("document is required.")
    return ProtocolDocumentModel(
        id=document.id,
        link_id=document.link_id,
        link_text=document.link_text or "",
        text=document.text or "",
        sections=[_to_node_model(node) for node in document.sections],
    )


def node_to_model(node: ProtocolTreeNode) -> ProtocolNodeModel:
    return _to_node_model(node)


def _to_domain_node(node: ProtocolNodeModel) -> ProtocolTreeNode:
    return ProtocolTreeNode(
        id=node.id,
        link_id=node.link_id,
        link_text=node.link_text or "",
        text=node.text or "",
        kind=node.kind,
        sub_text=_normalize_sub_text(node.sub_text),
        children=tuple(_to_domain_node(child) for child in node.children),
    )


def _to_node_model(node: ProtocolTreeNode) -> ProtocolNodeModel:
    return ProtocolNodeModel(
        id=node.id,
        link_id=node.link_id,
        link_text=node.link_text or "",
        text=node.text or "",
        kind=node.kind,
        sub_text=list(_normalize_sub_text(node.sub_text)),
        children=[_to_node_model(child) for child in node.children],
    )


def _normalize_sub_text(values) -> tuple[str, ...]:
    return tuple(value.strip() for value in values if value and value.strip())
