from __future__ import annotations

"""
Versioned protocol storage.

Design intent:
- Keep an append-only history of saved documents, newest first on read.
- Store documents as protocol XML so saved versions stay readable by other tools.
"""

import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from sleepedit.protocol.tree import ProtocolTreeDocument
from sleepedit.protocol.xml_codec import deserialize_protocol, serialize_protocol

logger = logging.getLogger(__name__)

DEFAULT_LIST_COUNT = 20
MAX_LIST_COUNT = 200


@dataclass(frozen=True)
class ProtocolVersion:
    version_id: str
    saved_utc: datetime
    source: str
    note: str
    document: ProtocolTreeDocument


def clamp_list_count(max_count: int) -> int:
    return max(1, min(int(max_count), MAX_LIST_COUNT))


class ProtocolRepository(ABC):
    @abstractmethod
    def save_version(self, document: ProtocolTreeDocument, source: str, note: str) -> ProtocolVersion:
        raise NotImplementedError

    @abstractmethod
    def get_latest_version(self) -> ProtocolVersion | None:
        raise NotImplementedError

    @abstractmethod
    def list_versions(self, max_count: int = DEFAULT_LIST_COUNT) -> list[ProtocolVersion]:
        raise NotImplementedError


def _new_version(document: ProtocolTreeDocument, source: str | None, note: str | None) -> ProtocolVersion:
    if document is None:
        raise ValueError("document is required.")
    return ProtocolVersion(
        version_id=uuid.uuid4().hex,
        saved_utc=datetime.now(timezone.utc),
        source=source or "",
        note=note or "",
        document=document,
    )


class InMemoryProtocolRepository(ProtocolRepository):
    """Process-local version history, used when no database path is configured."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._versions: list[ProtocolVersion] = []

    def save_version(self, document: ProtocolTreeDocument, source: str, note: str) -> ProtocolVersion:
        version = _new_version(document, source, note)
        with self._lock:
            self._versions.append(version)
        logger.info(
            "Saved protocol version %s from source %s at %s.",
            version.version_id,
            version.source,
            version.saved_utc.isoformat(),
        )
        return version

    def get_latest_version(self) -> ProtocolVersion | None:
        with self._lock:
            return self._versions[-1] if self._versions else None

    def list_versions(self, max_count: int = DEFAULT_LIST_COUNT) -> list[ProtocolVersion]:
        count = clamp_list_count(max_count)
        with self._lock:
            return list(reversed(self._versions))[:count]


class SqliteProtocolRepository(ProtocolRepository):
    """SQLite-backed version history storing each document as protocol XML."""

    def __init__(self, path: str | Path):
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock, self.conn:
            self.conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS protocol_versions (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    version_id TEXT NOT NULL UNIQUE,
                    saved_utc TEXT NOT NULL,
                    source TEXT NOT NULL,
                    note TEXT NOT NULL,
                    xml TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_protocol_versions_saved
                ON protocol_versions(saved_utc);
                """
            )

    def save_version(self, document: ProtocolTreeDocument, source: str, note: str) -> ProtocolVersion:
        version = _new_version(document, source, note)
        xml = serialize_protocol(document)
        saved_utc = version.saved_utc.isoformat(timespec="microseconds")
        with self._lock, self.conn:
            self.conn.execute(
                "INSERT INTO protocol_versions (version_id, saved_utc, source, note, xml) "
                "VALUES (?, ?, ?, ?, ?)",
                (version.version_id, saved_utc, version.source, version.note, xml),
            )
        logger.info(
            "Saved protocol version %s from source %s at %s.",
            version.version_id,
            version.source,
            version.saved_utc.isoformat(),
        )
        return version

    def get_latest_version(self) -> ProtocolVersion | None:
        rows = self._select_newest(1)
        return self._row_to_version(rows[0]) if rows else None

    def list_versions(self, max_count: int = DEFAULT_LIST_COUNT) -> list[ProtocolVersion]:
        return [self._row_to_version(row) for row in self._select_newest(clamp_list_count(max_count))]

    def close(self) -> None:
        with self._lock:
            self.conn.close()

    def _select_newest(self, limit: int) -> list[sqlite3.Row]:
        # seq breaks ties between versions saved within the same timestamp.
        with self._lock:
            cursor = self.conn.execute(
                "SELECT version_id, saved_utc, source, note, xml FROM protocol_versions "
                "ORDER BY saved_utc DESC, seq DESC LIMIT ?",
                (limit,),
            )
            return cursor.fetchall()

    @staticmethod
    def _row_to_version(row: sqlite3.Row) -> ProtocolVersion:
        return ProtocolVersion(
            version_id=row["version_id"],
            saved_utc=datetime.fromisoformat(row["saved_utc"]),
            source=row["source"],
            note=row["note"],
            document=deserialize_protocol(row["xml"]),
        )


def build_repository(db_path: Path | None) -> ProtocolRepository:
    if db_path is None:
        return InMemoryProtocolRepository()
    logger.info("Protocol version repository opened at %s.", db_path)
    return SqliteProtocolRepository(db_path)
