from __future__ import annotations

"""
HTTP surface for the protocol editor.

Design intent:
- Keep API orchestration thin and typed.
- Delegate tree editing, history, and XML handling to the protocol package.
- Never let version bookkeeping fail an edit the user already made.
"""

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from sleepedit.internal_core.config import EditorConfig, load_config
from sleepedit.internal_core.contracts import (
    ProtocolDocumentModel,
    ProtocolEditorError,
    ProtocolEditorSnapshot,
    ProtocolEditorState,
    ProtocolNodeModel,
    ProtocolVersionInfo,
)
from sleepedit.internal_core.session_store import InMemorySessionStore
from sleepedit.protocol.editor_service import EditorOutcome, ProtocolEditorService
from sleepedit.protocol.editor_session_store import ProtocolEditorSessionStore
from sleepedit.protocol.mapper import node_to_model, to_domain
from sleepedit.protocol.repository import ProtocolRepository, ProtocolVersion, build_repository
from sleepedit.protocol.starter import ProtocolStarterService
from sleepedit.protocol.xml_codec import ProtocolXmlFormatError

SESSION_COOKIE = "sleepedit_session"


class AddSectionRequest(BaseModel):
    text: str = Field(default="New Section", max_length=4000)


class AddChildRequest(BaseModel):
    parent_id: int
    text: str = Field(default="", max_length=4000)


class RemoveNodeRequest(BaseModel):
    node_id: int


class UpdateNodeRequest(BaseModel):
    node_id: int
    text: str = Field(default="", max_length=4000)
    link_id: int = -1
    link_text: str = Field(default="", max_length=4000)


class MoveNodeRequest(BaseModel):
    node_id: int
    parent_id: int
    target_index: int = 0


class SubTextRequest(BaseModel):
    node_id: int
    value: str = Field(default="", max_length=4000)


class SaveVersionRequest(BaseModel):
    note: str = Field(default="", max_length=1000)


class ProtocolVersionListResponse(BaseModel):
    versions: list[ProtocolVersionInfo] = Field(default_factory=list)


app = FastAPI(title="sleepedit protocol editor service")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_config() -> EditorConfig:
    existing = getattr(app.state, "editor_config", None)
    if isinstance(existing, EditorConfig):
        return existing
    created = load_config()
    logging.getLogger("sleepedit").setLevel(created.SLEEPEDIT_LOG_LEVEL.upper())
    setattr(app.state, "editor_config", created)
    return created


def _get_session_store() -> InMemorySessionStore:
    existing = getattr(app.state, "editor_sessions", None)
    if isinstance(existing, InMemorySessionStore):
        return existing
    created = InMemorySessionStore(ttl_seconds=_get_config().SLEEPEDIT_SESSION_TTL_SECONDS)
    setattr(app.state, "editor_sessions", created)
    return created


def _get_repository() -> ProtocolRepository:
    existing = getattr(app.state, "protocol_repository", None)
    if isinstance(existing, ProtocolRepository):
        return existing
    created = build_repository(_get_config().version_db_path())
    setattr(app.state, "protocol_repository", created)
    return created


def _get_starter() -> ProtocolStarterService:
    existing = getattr(app.state, "protocol_starter", None)
    if isinstance(existing, ProtocolStarterService):
        return existing
    config = _get_config()
    created = ProtocolStarterService(
        default_protocol_path=config.SLEEPEDIT_DEFAULT_PROTOCOL_PATH,
        startup_protocol_path=config.SLEEPEDIT_STARTUP_PROTOCOL_PATH,
    )
    setattr(app.state, "protocol_starter", created)
    return created


def _ensure_enabled(action: str) -> None:
    if _get_config().SLEEPEDIT_PROTOCOL_EDITOR_ENABLED:
        return
    logger.warning("%s denied because the protocol editor is disabled.", action)
    raise HTTPException(status_code=404, detail="Not Found")


def _resolve_session(request: Request) -> str:
    sessions = _get_session_store()
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id and sessions.has_session(session_id):
        return session_id
    removed = sessions.cleanup_expired_sessions()
    if removed:
        logger.debug("Expired protocol editor sessions removed. count=%s", removed)
    return sessions.create_session()


def _attach_session_cookie(response: Response, session_id: str) -> None:
    response.set_cookie(SESSION_COOKIE, session_id, httponly=True, samesite="lax")


def _editor_service(request: Request, response: Response) -> ProtocolEditorService:
    session_id = _resolve_session(request)
    _attach_session_cookie(response, session_id)
    return _build_editor_service(session_id)


def _build_editor_service(session_id: str) -> ProtocolEditorService:
    store = ProtocolEditorSessionStore(
        sessions=_get_session_store(),
        session_id=session_id,
        starter=_get_starter(),
        repository=_get_repository(),
    )
    return ProtocolEditorService(store, max_undo_depth=_get_config().SLEEPEDIT_MAX_UNDO_DEPTH)


def _to_state(snapshot: ProtocolEditorSnapshot, error: Optional[ProtocolEditorError] = None) -> ProtocolEditorState:
    return ProtocolEditorState(
        document=snapshot.document,
        undo_count=len(snapshot.undo_history),
        redo_count=len(snapshot.redo_history),
        last_updated_utc=snapshot.last_updated_utc,
        error=error,
    )


def _outcome_to_state(outcome: EditorOutcome) -> ProtocolEditorState:
    error = None
    if not outcome.applied:
        error = ProtocolEditorError(code=outcome.error_code, message=outcome.user_message)
    return _to_state(outcome.snapshot, error)


def _to_version_info(version: ProtocolVersion) -> ProtocolVersionInfo:
    return ProtocolVersionInfo(
        version_id=version.version_id,
        saved_utc=version.saved_utc,
        source=version.source,
        note=version.note,
        section_count=len(version.document.sections),
    )


def _try_persist_version(document: ProtocolDocumentModel, source: str, note: str) -> ProtocolVersion | None:
    try:
        return _get_repository().save_version(to_domain(document), source, note)
    except Exception:
        logger.warning(
            "Protocol version persistence failed for source %s. Continuing with session snapshot behavior.",
            source,
            exc_info=True,
        )
        return None


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/protocol-editor/state", response_model=ProtocolEditorState)
def protocol_editor_state(request: Request, response: Response) -> ProtocolEditorState:
    _ensure_enabled("state")
    logger.debug("Protocol editor state requested.")
    return _to_state(_editor_service(request, response).load())


@app.get("/protocol-editor/nodes/{node_id}", response_model=ProtocolNodeModel)
def protocol_editor_node(node_id: int, request: Request, response: Response) -> ProtocolNodeModel:
    _ensure_enabled("find_node")
    result = _editor_service(request, response).find_node(node_id)
    if result.is_failure:
        raise HTTPException(
            status_code=404,
            detail={"code": result.error_code, "message": result.error_message},
        )
    return node_to_model(result.value)


@app.post("/protocol-editor/add-section", response_model=ProtocolEditorState)
def protocol_editor_add_section(
    payload: AddSectionRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("add_section")
    return _outcome_to_state(_editor_service(request, response).add_section(payload.text))


@app.post("/protocol-editor/add-child", response_model=ProtocolEditorState)
def protocol_editor_add_child(
    payload: AddChildRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("add_child")
    return _outcome_to_state(_editor_service(request, response).add_child(payload.parent_id, payload.text))


@app.post("/protocol-editor/remove-node", response_model=ProtocolEditorState)
def protocol_editor_remove_node(
    payload: RemoveNodeRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("remove_node")
    return _outcome_to_state(_editor_service(request, response).remove_node(payload.node_id))


@app.post("/protocol-editor/update-node", response_model=ProtocolEditorState)
def protocol_editor_update_node(
    payload: UpdateNodeRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("update_node")
    outcome = _editor_service(request, response).update_node(
        payload.node_id,
        payload.text,
        payload.link_id,
        payload.link_text,
    )
    return _outcome_to_state(outcome)


@app.post("/protocol-editor/move-node", response_model=ProtocolEditorState)
def protocol_editor_move_node(
    payload: MoveNodeRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("move_node")
    outcome = _editor_service(request, response).move_node(
        payload.node_id,
        payload.parent_id,
        payload.target_index,
    )
    return _outcome_to_state(outcome)


@app.post("/protocol-editor/add-subtext", response_model=ProtocolEditorState)
def protocol_editor_add_subtext(
    payload: SubTextRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("add_sub_text")
    return _outcome_to_state(_editor_service(request, response).add_sub_text(payload.node_id, payload.value))


@app.post("/protocol-editor/remove-subtext", response_model=ProtocolEditorState)
def protocol_editor_remove_subtext(
    payload: SubTextRequest, request: Request, response: Response
) -> ProtocolEditorState:
    _ensure_enabled("remove_sub_text")
    return _outcome_to_state(_editor_service(request, response).remove_sub_text(payload.node_id, payload.value))


@app.post("/protocol-editor/undo", response_model=ProtocolEditorState)
def protocol_editor_undo(request: Request, response: Response) -> ProtocolEditorState:
    _ensure_enabled("undo")
    return _to_state(_editor_service(request, response).undo())


@app.post("/protocol-editor/redo", response_model=ProtocolEditorState)
def protocol_editor_redo(request: Request, response: Response) -> ProtocolEditorState:
    _ensure_enabled("redo")
    return _to_state(_editor_service(request, response).redo())


@app.post("/protocol-editor/reset", response_model=ProtocolEditorState)
def protocol_editor_reset(request: Request, response: Response) -> ProtocolEditorState:
    _ensure_enabled("reset")
    return _to_state(_editor_service(request, response).reset())


@app.get("/protocol-editor/export-xml")
def protocol_editor_export_xml(request: Request) -> Response:
    _ensure_enabled("export_xml")
    session_id = _resolve_session(request)
    xml = _build_editor_service(session_id).export_xml()
    xml_response = Response(
        content=xml,
        media_type="application/xml",
        headers={"Content-Disposition": 'attachment; filename="protocol.xml"'},
    )
    _attach_session_cookie(xml_response, session_id)
    return xml_response


@app.post("/protocol-editor/import-xml", response_model=ProtocolEditorState)
async def protocol_editor_import_xml(request: Request, response: Response) -> ProtocolEditorState:
    _ensure_enabled("import_xml")
    payload = await request.body()
    if not payload or not payload.strip():
        logger.warning("Protocol import aborted because no XML content was uploaded.")
        raise HTTPException(status_code=400, detail="Uploaded XML is empty.")

    max_bytes = _get_config().SLEEPEDIT_MAX_IMPORT_XML_BYTES
    if len(payload) > max_bytes:
        logger.warning(
            "Protocol import rejected because size %s exceeded limit %s.",
            len(payload),
            max_bytes,
        )
        raise HTTPException(status_code=413, detail=f"Uploaded XML exceeds {max_bytes} byte limit.")

    service = _editor_service(request, response)
    try:
        snapshot = service.import_xml(payload.decode("utf-8-sig"))
    except (UnicodeDecodeError, ProtocolXmlFormatError) as exc:
        logger.warning("Protocol import failed due to invalid XML format: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid XML format for protocol import.") from exc

    _try_persist_version(snapshot.document, "ImportXml", "upload")
    return _to_state(snapshot)


@app.post("/protocol-editor/versions", response_model=ProtocolVersionInfo)
def protocol_editor_save_version(
    payload: SaveVersionRequest, request: Request, response: Response
) -> ProtocolVersionInfo:
    _ensure_enabled("save_version")
    snapshot = _editor_service(request, response).load()
    version = _try_persist_version(snapshot.document, "SaveVersion", payload.note)
    if version is None:
        raise HTTPException(status_code=500, detail="Failed to save protocol version.")
    return _to_version_info(version)


@app.get("/protocol-editor/versions", response_model=ProtocolVersionListResponse)
def protocol_editor_list_versions(
    max_count: int = Query(default=20),
) -> ProtocolVersionListResponse:
    _ensure_enabled("list_versions")
    try:
        versions = _get_repository().list_versions(max_count)
    except Exception as exc:
        logger.warning("Protocol version listing failed.", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to list protocol versions.") from exc
    return ProtocolVersionListResponse(versions=[_to_version_info(version) for version in versions])
