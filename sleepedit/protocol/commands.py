from __future__ import annotations

"""
Command handlers over the tree engine.

Design intent:
- One immutable command record and one handler per edit.
- Turn not-applied edits into typed error codes; never raise for them.
"""

from dataclasses import dataclass
from typing import Any, Callable, Union

from sleepedit.protocol import functions
from sleepedit.protocol.results import (
    INVALID_MOVE,
    INVALID_SUBTEXT,
    NODE_NOT_FOUND,
    PARENT_NOT_FOUND,
    ProtocolResult,
)
from sleepedit.protocol.tree import ProtocolTreeDocument

DocumentResult = ProtocolResult[ProtocolTreeDocument]


@dataclass(frozen=True)
class AddSectionCommand:
    text: str


@dataclass(frozen=True)
class AddChildCommand:
    parent_id: int
    text: str


@dataclass(frozen=True)
class RemoveNodeCommand:
    node_id: int


@dataclass(frozen=True)
class UpdateNodeCommand:
    node_id: int
    text: str
    link_id: int
    link_text: str


@dataclass(frozen=True)
class MoveNodeCommand:
    node_id: int
    parent_id: int
    target_index: int


@dataclass(frozen=True)
class AddSubTextCommand:
    node_id: int
    value: str


@dataclass(frozen=True)
class RemoveSubTextCommand:
    node_id: int
    value: str


ProtocolCommand = Union[
    AddSectionCommand,
    AddChildCommand,
    RemoveNodeCommand,
    UpdateNodeCommand,
    MoveNodeCommand,
    AddSubTextCommand,
    RemoveSubTextCommand,
]


def handle_add_section(document: ProtocolTreeDocument, command: AddSectionCommand) -> DocumentResult:
    return ProtocolResult.success(functions.add_section(document, command.text).document)


def handle_add_child(document: ProtocolTreeDocument, command: AddChildCommand) -> DocumentResult:
    edit = functions.add_child(document, command.parent_id, command.text)
    if not edit.applied:
        return ProtocolResult.failure(PARENT_NOT_FOUND, "Requested parent node could not be resolved.")
    return ProtocolResult.success(edit.document)


def handle_remove_node(document: ProtocolTreeDocument, command: RemoveNodeCommand) -> DocumentResult:
    edit = functions.remove_node(document, command.node_id)
    if not edit.applied:
        return ProtocolResult.failure(NODE_NOT_FOUND, "Requested node could not be removed.")
    return ProtocolResult.success(edit.document)


def handle_update_node(document: ProtocolTreeDocument, command: UpdateNodeCommand) -> DocumentResult:
    edit = functions.update_node(
        document,
        command.node_id,
        command.text,
        command.link_id,
        command.link_text,
    )
    if not edit.applied:
        return ProtocolResult.failure(NODE_NOT_FOUND, "Requested node could not be updated.")
    return ProtocolResult.success(edit.document)


def handle_move_node(document: ProtocolTreeDocument, command: MoveNodeCommand) -> DocumentResult:
    edit = functions.move_node(document, command.node_id, command.parent_id, command.target_index)
    if not edit.applied:
        return ProtocolResult.failure(INVALID_MOVE, "Requested move could not be applied.")
    return ProtocolResult.success(edit.document)


def handle_add_sub_text(document: ProtocolTreeDocument, command: AddSubTextCommand) -> DocumentResult:
    if _is_blank(command.value):
        return ProtocolResult.failure(INVALID_SUBTEXT, "SubText value must not be empty.")
    edit = functions.add_sub_text(document, command.node_id, command.value)
    if not edit.applied:
        return ProtocolResult.failure(NODE_NOT_FOUND, "Requested node could not be updated.")
    return ProtocolResult.success(edit.document)


def handle_remove_sub_text(document: ProtocolTreeDocument, command: RemoveSubTextCommand) -> DocumentResult:
    if _is_blank(command.value):
        return ProtocolResult.failure(INVALID_SUBTEXT, "SubText value must not be empty.")
    edit = functions.remove_sub_text(document, command.node_id, command.value)
    if not edit.applied:
        return ProtocolResult.failure(NODE_NOT_FOUND, "Requested node could not be updated.")
    return ProtocolResult.success(edit.document)


_HANDLERS: dict[type, Callable[[ProtocolTreeDocument, Any], DocumentResult]] = {
    AddSectionCommand: handle_add_section,
    AddChildCommand: handle_add_child,
    RemoveNodeCommand: handle_remove_node,
    UpdateNodeCommand: handle_update_node,
    MoveNodeCommand: handle_move_node,
    AddSubTextCommand: handle_add_sub_text,
    RemoveSubTextCommand: handle_remove_sub_text,
}


def handle_command(document: ProtocolTreeDocument, command: ProtocolCommand) -> DocumentResult:
    handler = _HANDLERS.get(type(command))
    if handler is None:
        raise TypeError(f"Unsupported protocol command: {type(command).__name__}")
    return handler(document, command)


def _is_blank(value: str | None) -> bool:
    return not value or not value.strip()
