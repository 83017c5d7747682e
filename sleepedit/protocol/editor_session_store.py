from __future__ import annotations

"""
Session-backed snapshot persistence for the protocol editor.

Design intent:
- One JSON snapshot per browser session, kept in the shared key/value session store.
- Loading never fails: a missing session, empty slot, or unreadable payload yields a default snapshot.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from sleepedit.internal_core.contracts import ProtocolEditorSnapshot
from sleepedit.internal_core.session_store import InMemorySessionStore
from sleepedit.protocol.mapper import to_model
from sleepedit.protocol.repository import ProtocolRepository
from sleepedit.protocol.starter import ProtocolStarterService

logger = logging.getLogger(__name__)

SNAPSHOT_KEY = "protocol_editor.snapshot"


class ProtocolEditorSessionStore:
    def __init__(
        self,
        sessions: InMemorySessionStore,
        session_id: Optional[str],
        starter: ProtocolStarterService,
        repository: ProtocolRepository,
    ):
        self._sessions = sessions
        self._session_id = session_id
        self._starter = starter
        self._repository = repository

    def load(self) -> ProtocolEditorSnapshot:
        if not self._session_available():
            logger.warning("Protocol editor snapshot load returned default because session was unavailable.")
            return self._create_default_snapshot()

        serialized = self._sessions.get_value(self._session_id, SNAPSHOT_KEY)
        snapshot = _deserialize(serialized)
        if snapshot is not None:
            logger.debug("Protocol editor snapshot loaded from session.")
            return snapshot

        logger.info("Protocol editor snapshot load returned default because session state was empty or invalid.")
        return self._create_default_snapshot()

    def save(self, snapshot: ProtocolEditorSnapshot) -> None:
        if not self._session_available():
            logger.warning("Protocol editor snapshot save skipped because session was unavailable.")
            return

        self._sessions.set_value(self._session_id, SNAPSHOT_KEY, snapshot.model_dump_json())
        logger.debug(
            "Protocol editor snapshot saved. undo_count=%s redo_count=%s",
            len(snapshot.undo_history),
            len(snapshot.redo_history),
        )

    def reset(self) -> None:
        logger.info("Protocol editor snapshot reset requested.")
        self.save(self._create_starter_snapshot())

    def _session_available(self) -> bool:
        return self._session_id is not None and self._sessions.has_session(self._session_id)

    def _create_default_snapshot(self) -> ProtocolEditorSnapshot:
        from_repository = self._try_create_snapshot_from_repository()
        if from_repository is not None:
            return from_repository
        return self._create_starter_snapshot()

    def _create_starter_snapshot(self) -> ProtocolEditorSnapshot:
        return ProtocolEditorSnapshot(
            document=to_model(self._starter.create()),
            last_updated_utc=datetime.now(timezone.utc),
        )

    def _try_create_snapshot_from_repository(self) -> ProtocolEditorSnapshot | None:
        try:
            latest = self._repository.get_latest_version()
        except Exception:
            logger.warning("Protocol repository unavailable. Falling back to starter snapshot.", exc_info=True)
            return None
        if latest is None:
            return None

        logger.info("Protocol editor default snapshot loaded from repository version %s.", latest.version_id)
        saved_utc = latest.saved_utc
        if saved_utc.tzinfo is None:
            saved_utc = saved_utc.replace(tzinfo=timezone.utc)
        return ProtocolEditorSnapshot(document=to_model(latest.document), last_updated_utc=saved_utc)


def _deserialize(serialized: Optional[str]) -> ProtocolEditorSnapshot | None:
    if serialized is None or not serialized.strip():
        return None
    try:
        return ProtocolEditorSnapshot.model_validate_json(serialized)
    except ValidationError:
        logger.warning("Stored protocol editor snapshot could not be decoded.", exc_info=True)
        return None
