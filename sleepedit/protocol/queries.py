from __future__ import annotations

from dataclasses import dataclass

from sleepedit.protocol.results import NODE_NOT_FOUND, ProtocolResult
from sleepedit.protocol.tree import ProtocolTreeDocument, ProtocolTreeNode, find_node


@dataclass(frozen=True)
class FindNodeByIdQuery:
    node_id: int


def handle_find_node_by_id(
    document: ProtocolTreeDocument,
    query: FindNodeByIdQuery,
) -> ProtocolResult[ProtocolTreeNode]:
    node = find_node(document, query.node_id)
    if node is None:
        return ProtocolResult.failure(NODE_NOT_FOUND, "Requested node could not be found.")
    return ProtocolResult.success(node)
