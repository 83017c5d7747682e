from __future__ import annotations

"""
Undo/redo-capable protocol editing over a per-session snapshot.

Design intent:
- Every mutation goes through a command handler; only applied edits touch history or storage.
- Undo history is bounded; redo history is cleared by any new edit.
- Callers always get the snapshot back, plus the reason when nothing changed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sleepedit.internal_core.contracts import ProtocolDocumentModel, ProtocolEditorSnapshot
from sleepedit.protocol.commands import (
    AddChildCommand,
    AddSectionCommand,
    AddSubTextCommand,
    MoveNodeCommand,
    ProtocolCommand,
    RemoveNodeCommand,
    RemoveSubTextCommand,
    UpdateNodeCommand,
    handle_command,
)
from sleepedit.protocol.editor_session_store import ProtocolEditorSessionStore
from sleepedit.protocol.mapper import to_domain, to_model
from sleepedit.protocol.queries import FindNodeByIdQuery, handle_find_node_by_id
from sleepedit.protocol.results import ProtocolResult, to_user_safe_message
from sleepedit.protocol.tree import ProtocolTreeNode
from sleepedit.protocol.xml_codec import deserialize_protocol, serialize_protocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_UNDO_DEPTH = 100


@dataclass(frozen=True)
class EditorOutcome:
    snapshot: ProtocolEditorSnapshot
    applied: bool = True
    error_code: str = ""
    error_message: str = ""
    user_message: str = ""


class ProtocolEditorService:
    def __init__(self, store: ProtocolEditorSessionStore, max_undo_depth: int = DEFAULT_MAX_UNDO_DEPTH):
        if max_undo_depth < 1:
            raise ValueError("max_undo_depth must be >= 1.")
        self._store = store
        self._max_undo_depth = max_undo_depth

    def load(self) -> ProtocolEditorSnapshot:
        logger.debug("Protocol editor load requested.")
        return self._store.load()

    def add_section(self, text: str) -> EditorOutcome:
        logger.info("Protocol editor add_section requested. text_length=%s", len(text or ""))
        return self._apply(AddSectionCommand(text), "add_section")

    def add_child(self, parent_id: int, text: str) -> EditorOutcome:
        logger.info(
            "Protocol editor add_child requested. parent_id=%s text_length=%s",
            parent_id,
            len(text or ""),
        )
        return self._apply(AddChildCommand(parent_id, text), "add_child")

    def remove_node(self, node_id: int) -> EditorOutcome:
        logger.info("Protocol editor remove_node requested. node_id=%s", node_id)
        return self._apply(RemoveNodeCommand(node_id), "remove_node")

    def update_node(self, node_id: int, text: str, link_id: int, link_text: str) -> EditorOutcome:
        logger.info(
            "Protocol editor update_node requested. node_id=%s link_id=%s text_length=%s",
            node_id,
            link_id,
            len(text or ""),
        )
        return self._apply(UpdateNodeCommand(node_id, text, link_id, link_text), "update_node")

    def move_node(self, node_id: int, parent_id: int, target_index: int) -> EditorOutcome:
        logger.info(
            "Protocol editor move_node requested. node_id=%s parent_id=%s target_index=%s",
            node_id,
            parent_id,
            target_index,
        )
        return self._apply(MoveNodeCommand(node_id, parent_id, target_index), "move_node")

    def add_sub_text(self, node_id: int, value: str) -> EditorOutcome:
        logger.info(
            "Protocol editor add_sub_text requested. node_id=%s value_length=%s",
            node_id,
            len(value or ""),
        )
        return self._apply(AddSubTextCommand(node_id, value), "add_sub_text")

    def remove_sub_text(self, node_id: int, value: str) -> EditorOutcome:
        logger.info(
            "Protocol editor remove_sub_text requested. node_id=%s value_length=%s",
            node_id,
            len(value or ""),
        )
        return self._apply(RemoveSubTextCommand(node_id, value), "remove_sub_text")

    def undo(self) -> ProtocolEditorSnapshot:
        logger.info("Protocol editor undo requested.")
        snapshot = self._store.load()
        if not snapshot.undo_history:
            logger.debug("Protocol editor undo skipped because undo history was empty.")
            return snapshot

        undo_history = list(snapshot.undo_history)
        restored = undo_history.pop()
        redo_history = list(snapshot.redo_history) + [snapshot.document]
        updated = _build_snapshot(restored, undo_history, redo_history)
        self._store.save(updated)
        logger.info("Protocol editor undo completed.")
        return updated

    def redo(self) -> ProtocolEditorSnapshot:
        logger.info("Protocol editor redo requested.")
        snapshot = self._store.load()
        if not snapshot.redo_history:
            logger.debug("Protocol editor redo skipped because redo history was empty.")
            return snapshot

        redo_history = list(snapshot.redo_history)
        restored = redo_history.pop()
        undo_history = list(snapshot.undo_history) + [snapshot.document]
        updated = _build_snapshot(restored, undo_history, redo_history)
        self._store.save(updated)
        logger.info("Protocol editor redo completed.")
        return updated

    def reset(self) -> ProtocolEditorSnapshot:
        logger.info("Protocol editor reset requested.")
        self._store.reset()
        logger.info("Protocol editor reset completed.")
        return self._store.load()

    def import_xml(self, xml: str) -> ProtocolEditorSnapshot:
        logger.info("Protocol editor import_xml requested. xml_length=%s", len(xml or ""))
        document = deserialize_protocol(xml)
        updated = _build_snapshot(to_model(document), [], [])
        self._store.save(updated)
        logger.info("Protocol editor import_xml completed. sections=%s", len(document.sections))
        return updated

    def export_xml(self) -> str:
        logger.info("Protocol editor export_xml requested.")
        snapshot = self._store.load()
        xml = serialize_protocol(to_domain(snapshot.document))
        logger.info("Protocol editor export_xml completed. xml_length=%s", len(xml))
        return xml

    def find_node(self, node_id: int) -> ProtocolResult[ProtocolTreeNode]:
        snapshot = self._store.load()
        return handle_find_node_by_id(to_domain(snapshot.document), FindNodeByIdQuery(node_id))

    def _apply(self, command: ProtocolCommand, operation: str) -> EditorOutcome:
        snapshot = self._store.load()
        current = to_domain(snapshot.document)

        result = handle_command(current, command)
        if result.is_failure:
            user_message = to_user_safe_message(result)
            logger.debug(
                "Protocol editor %s skipped. code=%s message=%s user_message=%s",
                operation,
                result.error_code,
                result.error_message,
                user_message,
            )
            return EditorOutcome(
                snapshot=snapshot,
                applied=False,
                error_code=result.error_code,
                error_message=result.error_message,
                user_message=user_message,
            )

        undo_history = list(snapshot.undo_history) + [snapshot.document]
        if len(undo_history) > self._max_undo_depth:
            undo_history = undo_history[-self._max_undo_depth :]

        updated = _build_snapshot(to_model(result.value), undo_history, [])
        self._store.save(updated)
        logger.debug(
            "Protocol editor %s saved. undo_count=%s redo_count=%s",
            operation,
            len(updated.undo_history),
            len(updated.redo_history),
        )
        return EditorOutcome(snapshot=updated)


def _build_snapshot(
    document: ProtocolDocumentModel,
    undo_history: list[ProtocolDocumentModel],
    redo_history: list[ProtocolDocumentModel],
) -> ProtocolEditorSnapshot:
    return ProtocolEditorSnapshot(
        document=document,
        undo_history=undo_history,
        redo_history=redo_history,
        last_updated_utc=datetime.now(timezone.utc),
    )
