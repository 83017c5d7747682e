from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path


def _project_root() -> Path:
    # sleepedit/internal_core/config.py -> sleepedit -> repo root
    return Path(__file__).resolve().parents[2]


def _getenv_str(name: str, default: str) -> str:
    value = os.getenv(name)
    return default if value is None else value


def _getenv_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return int(value)


def _getenv_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _resolve_optional_path(raw: str) -> str:
    raw = raw.strip()
    if not raw:
        return ""
    candidate = Path(raw).expanduser()
    if not candidate.is_absolute():
        candidate = _project_root() / candidate
    return str(candidate.resolve())


@dataclass(frozen=True)
class EditorConfig:
    SLEEPEDIT_PROTOCOL_EDITOR_ENABLED: bool
    SLEEPEDIT_DEFAULT_PROTOCOL_PATH: str
    SLEEPEDIT_STARTUP_PROTOCOL_PATH: str
    SLEEPEDIT_VERSION_DB_PATH: str
    SLEEPEDIT_SESSION_TTL_SECONDS: int
    SLEEPEDIT_MAX_UNDO_DEPTH: int
    SLEEPEDIT_MAX_IMPORT_XML_BYTES: int
    SLEEPEDIT_LOG_LEVEL: str

    def version_db_path(self) -> Path | None:
        if not self.SLEEPEDIT_VERSION_DB_PATH:
            return None
        return Path(self.SLEEPEDIT_VERSION_DB_PATH)


def load_config() -> EditorConfig:
    max_undo_depth = _getenv_int("SLEEPEDIT_MAX_UNDO_DEPTH", 100)
    if max_undo_depth < 1:
        raise ValueError(f"SLEEPEDIT_MAX_UNDO_DEPTH must be >= 1, got {max_undo_depth}")

    log_level = _getenv_str("SLEEPEDIT_LOG_LEVEL", "INFO").strip().upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"SLEEPEDIT_LOG_LEVEL must be a logging level name, got {log_level!r}")

    return EditorConfig(
        SLEEPEDIT_PROTOCOL_EDITOR_ENABLED=_getenv_bool("SLEEPEDIT_PROTOCOL_EDITOR_ENABLED", True),
        SLEEPEDIT_DEFAULT_PROTOCOL_PATH=_resolve_optional_path(
            _getenv_str("SLEEPEDIT_DEFAULT_PROTOCOL_PATH", "")
        ),
        SLEEPEDIT_STARTUP_PROTOCOL_PATH=_resolve_optional_path(
            _getenv_str("SLEEPEDIT_STARTUP_PROTOCOL_PATH", "")
        ),
        SLEEPEDIT_VERSION_DB_PATH=_resolve_optional_path(
            _getenv_str("SLEEPEDIT_VERSION_DB_PATH", "")
        ),
        SLEEPEDIT_SESSION_TTL_SECONDS=_getenv_int("SLEEPEDIT_SESSION_TTL_SECONDS", 14400),
        SLEEPEDIT_MAX_UNDO_DEPTH=max_undo_depth,
        SLEEPEDIT_MAX_IMPORT_XML_BYTES=_getenv_int("SLEEPEDIT_MAX_IMPORT_XML_BYTES", 2 * 1024 * 1024),
        SLEEPEDIT_LOG_LEVEL=log_level,
    )
