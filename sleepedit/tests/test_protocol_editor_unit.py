import pytest

from sleepedit.internal_core.session_store import InMemorySessionStore
from sleepedit.protocol.editor_service import ProtocolEditorService
from sleepedit.protocol.editor_session_store import SNAPSHOT_KEY, ProtocolEditorSessionStore
from sleepedit.protocol.mapper import to_domain
from sleepedit.protocol.repository import InMemoryProtocolRepository, ProtocolRepository
from sleepedit.protocol.starter import STARTER_TITLE, ProtocolStarterService
from sleepedit.protocol.tree import ProtocolTreeDocument, find_node
from sleepedit.protocol.xml_codec import ProtocolXmlFormatError


class _BrokenRepository(ProtocolRepository):
    def save_version(self, document, source, note):
        raise OSError("disk unavailable")

    def get_latest_version(self):
        raise OSError("disk unavailable")

    def list_versions(self, max_count=20):
        raise OSError("disk unavailable")


def _make_store(repository=None, session_id="auto"):
    sessions = InMemorySessionStore(ttl_seconds=3600)
    if session_id == "auto":
        session_id = sessions.create_session()
    store = ProtocolEditorSessionStore(
        sessions=sessions,
        session_id=session_id,
        starter=ProtocolStarterService(),
        repository=repository or InMemoryProtocolRepository(),
    )
    return sessions, session_id, store


def _make_service(max_undo_depth: int = 100):
    sessions, session_id, store = _make_store()
    return sessions, session_id, ProtocolEditorService(store, max_undo_depth=max_undo_depth)


def test_store_load_defaults_to_starter_document() -> None:
    _, _, store = _make_store()
    snapshot = store.load()
    assert snapshot.document.text == STARTER_TITLE
    assert snapshot.undo_history == []
    assert snapshot.redo_history == []


def test_store_load_prefers_latest_repository_version() -> None:
    repository = InMemoryProtocolRepository()
    saved = repository.save_version(ProtocolTreeDocument(id=0, text="Saved"), "ImportXml", "")
    _, _, store = _make_store(repository=repository)
    snapshot = store.load()
    assert snapshot.document.text == "Saved"
    assert snapshot.last_updated_utc == saved.saved_utc


def test_store_load_falls_back_when_repository_fails() -> None:
    _, _, store = _make_store(repository=_BrokenRepository())
    assert store.load().document.text == STARTER_TITLE


def test_store_load_falls_back_on_invalid_payload() -> None:
    sessions, session_id, store = _make_store()
    sessions.set_value(session_id, SNAPSHOT_KEY, "{not json")
    assert store.load().document.text == STARTER_TITLE
    sessions.set_value(session_id, SNAPSHOT_KEY, "   ")
    assert store.load().document.text == STARTER_TITLE


def test_store_save_round_trips_through_session() -> None:
    sessions, session_id, store = _make_store()
    snapshot = store.load()
    store.save(snapshot)
    assert sessions.get_value(session_id, SNAPSHOT_KEY)
    assert store.load() == snapshot


def test_store_without_session_skips_save_and_returns_default() -> None:
    sessions, _, store = _make_store(session_id=None)
    snapshot = store.load()
    store.save(snapshot)
    assert snapshot.document.text == STARTER_TITLE

    _, _, unknown = _make_store(session_id="not-a-session")
    unknown.save(snapshot)
    assert unknown.load().document.text == STARTER_TITLE


def test_store_reset_ignores_repository() -> None:
    repository = InMemoryProtocolRepository()
    repository.save_version(ProtocolTreeDocument(id=0, text="Saved"), "ImportXml", "")
    _, _, store = _make_store(repository=repository)
    store.reset()
    assert store.load().document.text == STARTER_TITLE


def test_mutation_pushes_undo_and_clears_redo() -> None:
    _, _, service = _make_service()
    original = service.load().document

    outcome = service.add_section("Follow-up")
    assert outcome.applied
    assert outcome.snapshot.document.sections[-1].text == "Follow-up"
    assert outcome.snapshot.undo_history == [original]
    assert outcome.snapshot.redo_history == []
    assert service.load() == outcome.snapshot


def test_mutate_undo_redo_restores_documents() -> None:
    _, _, service = _make_service()
    original = service.load().document
    mutated = service.update_node(2, "Changed", -1, "").snapshot.document

    undone = service.undo()
    assert undone.document == original
    assert undone.undo_history == []
    assert undone.redo_history == [mutated]

    redone = service.redo()
    assert redone.document == mutated
    assert redone.undo_history == [original]
    assert redone.redo_history == []


def test_new_mutation_after_undo_clears_redo() -> None:
    _, _, service = _make_service()
    service.add_section("A")
    service.undo()
    outcome = service.add_section("B")
    assert outcome.snapshot.redo_history == []
    assert len(outcome.snapshot.undo_history) == 1


def test_undo_and_redo_on_empty_history_are_no_ops() -> None:
    _, _, service = _make_service()
    before = service.reset()
    assert service.undo() == before
    assert service.redo() == before


def test_failed_mutation_returns_unchanged_snapshot_and_saves_nothing() -> None:
    sessions, session_id, service = _make_service()
    service.reset()
    stored = sessions.get_value(session_id, SNAPSHOT_KEY)
    before = service.load()

    outcome = service.add_child(999999, "orphan")
    assert not outcome.applied
    assert outcome.error_code == "parent_not_found"
    assert outcome.error_message == "Requested parent node could not be resolved."
    assert outcome.user_message == "The selected parent node was not found."
    assert outcome.snapshot == before
    assert sessions.get_value(session_id, SNAPSHOT_KEY) == stored


@pytest.mark.parametrize(
    "call, code",
    [
        (lambda service: service.remove_node(404), "node_not_found"),
        (lambda service: service.move_node(1, 2, 0), "invalid_move"),
        (lambda service: service.add_sub_text(2, "  "), "invalid_subtext"),
        (lambda service: service.remove_sub_text(404, "x"), "node_not_found"),
    ],
)
def test_failed_mutations_leave_history_untouched(call, code) -> None:
    _, _, service = _make_service()
    service.add_section("A")
    before = service.load()
    outcome = call(service)
    assert outcome.error_code == code
    assert service.load() == before


def test_undo_history_is_bounded() -> None:
    _, _, service = _make_service(max_undo_depth=3)
    for index in range(5):
        service.add_section(f"S{index}")
    snapshot = service.load()
    assert len(snapshot.undo_history) == 3
    # Oldest entries are evicted first.
    assert snapshot.undo_history[0].sections[-1].text == "S1"


def test_move_and_sub_text_mutations() -> None:
    _, _, service = _make_service()
    moved = service.move_node(13, 0, 0).snapshot.document
    assert moved.sections[0].id == 13

    added = service.add_sub_text(2, "  value  ").snapshot.document
    assert find_node(to_domain(added), 2).sub_text == ("value",)
    removed = service.remove_sub_text(2, "VALUE").snapshot.document
    assert find_node(to_domain(removed), 2).sub_text == ()


def test_remove_node_clears_links_through_service() -> None:
    _, _, service = _make_service()
    document = to_domain(service.remove_node(15).snapshot.document)
    trigger = find_node(document, 3)
    assert trigger.link_id == -1
    assert trigger.link_text == ""


def test_reset_recreates_starter_and_clears_history() -> None:
    _, _, service = _make_service()
    service.add_section("A")
    snapshot = service.reset()
    assert snapshot.document.text == STARTER_TITLE
    assert snapshot.undo_history == []
    assert snapshot.redo_history == []
    assert all(section.text != "A" for section in snapshot.document.sections)


def test_import_and_export_xml() -> None:
    _, _, service = _make_service()
    service.add_section("A")
    snapshot = service.import_xml("<Protocol><Id>0</Id><text>Imported</text><Section><Id>1</Id><text>S</text></Section></Protocol>")
    assert snapshot.document.text == "Imported"
    assert snapshot.undo_history == []
    assert snapshot.redo_history == []

    xml = service.export_xml()
    assert "<text>Imported</text>" in xml
    assert service.load().undo_history == []


def test_import_invalid_xml_raises_and_keeps_snapshot() -> None:
    _, _, service = _make_service()
    before = service.add_section("A").snapshot
    with pytest.raises(ProtocolXmlFormatError):
        service.import_xml("<Wrong />")
    assert service.load() == before


def test_find_node_uses_current_document() -> None:
    _, _, service = _make_service()
    assert service.find_node(1).value.text == "Diagnostic Polysomnogram:"
    assert service.find_node(999).error_code == "node_not_found"


def test_service_rejects_invalid_undo_depth() -> None:
    _, _, store = _make_store()
    with pytest.raises(ValueError):
        ProtocolEditorService(store, max_undo_depth=0)
