from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ProtocolNodeKind = Literal["Root", "Section", "SubSection"]

ProtocolErrorCode = Literal[
    "parent_not_found",
    "node_not_found",
    "invalid_move",
    "invalid_subtext",
]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProtocolNodeModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int = -1
    link_id: int = -1
    link_text: str = ""
    text: str = ""
    kind: ProtocolNodeKind = "SubSection"
    sub_text: List[str] = Field(default_factory=list)
    children: List["ProtocolNodeModel"] = Field(default_factory=list)


class ProtocolDocumentModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int = -1
    link_id: int = -1
    link_text: str = ""
    text: str = ""
    sections: List[ProtocolNodeModel] = Field(default_factory=list)


class ProtocolEditorSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document: ProtocolDocumentModel = Field(default_factory=ProtocolDocumentModel)
    undo_history: List[ProtocolDocumentModel] = Field(default_factory=list)
    redo_history: List[ProtocolDocumentModel] = Field(default_factory=list)
    last_updated_utc: datetime = Field(default_factory=_utc_now)


class ProtocolEditorError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: ProtocolErrorCode
    message: str


class ProtocolEditorState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document: ProtocolDocumentModel
    undo_count: int = Field(ge=0)
    redo_count: int = Field(ge=0)
    last_updated_utc: datetime
    error: Optional[ProtocolEditorError] = None


class ProtocolVersionInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version_id: str
    saved_utc: datetime
    source: str
    note: str
    section_count: int = Field(ge=0)
