from __future__ import annotations

import time
import uuid
from threading import RLock
from typing import Any, Dict, Optional


class InMemorySessionStore:
    """Per-browser-session string values with sliding expiry."""

    def __init__(self, ttl_seconds: int):
        self._ttl_seconds = ttl_seconds
        self._lock = RLock()
        self._sessions: Dict[str, Dict[str, Any]] = {}

    def create_session(self) -> str:
        session_id = uuid.uuid4().hex
        now = time.time()
        with self._lock:
            self._sessions[session_id] = {
                "expires_at": now + self._ttl_seconds,
                "values": {},
            }
        return session_id

    def _touch(self, session_id: str) -> None:
        now = time.time()
        self._sessions[session_id]["expires_at"] = now + self._ttl_seconds

    def has_session(self, session_id: Optional[str]) -> bool:
        if not session_id:
            return False
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            return session["expires_at"] > time.time()

    def get_value(self, session_id: str, key: str) -> Optional[str]:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Unknown session_id: {session_id}")
            self._touch(session_id)
            return session["values"].get(key)

    def set_value(self, session_id: str, key: str, value: str) -> None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise KeyError(f"Unknown session_id: {session_id}")
            session["values"][key] = value
            self._touch(session_id)

    def cleanup_expired_sessions(self) -> int:
        now = time.time()
        with self._lock:
            expired = [
                session_id
                for session_id, session in self._sessions.items()
                if session["expires_at"] <= now
            ]
            for session_id in expired:
                self._sessions.pop(session_id, None)
        return len(expired)
