import pytest

from sleepedit.protocol.commands import (
    AddChildCommand,
    AddSectionCommand,
    AddSubTextCommand,
    MoveNodeCommand,
    RemoveNodeCommand,
    RemoveSubTextCommand,
    UpdateNodeCommand,
    handle_add_child,
    handle_command,
)
from sleepedit.protocol.queries import FindNodeByIdQuery, handle_find_node_by_id
from sleepedit.protocol.results import ProtocolResult, to_user_safe_message
from sleepedit.protocol.starter import build_starter_document
from sleepedit.protocol.tree import find_node


def test_add_section_command_always_succeeds() -> None:
    document = build_starter_document()
    result = handle_command(document, AddSectionCommand("Follow-up"))
    assert result.is_success
    assert result.value.sections[-1].text == "Follow-up"
    assert len(result.value.sections) == len(document.sections) + 1


def test_add_child_to_unknown_parent_fails_with_parent_not_found() -> None:
    result = handle_add_child(build_starter_document(), AddChildCommand(999999, "x"))
    assert result.is_failure
    assert result.error_code == "parent_not_found"
    assert result.error_message == "Requested parent node could not be resolved."
    assert to_user_safe_message(result) == "The selected parent node was not found."


def test_update_node_command_sets_link_fields() -> None:
    document = build_starter_document()
    result = handle_command(document, UpdateNodeCommand(2, "X", 15, "Y"))
    assert result.is_success
    node = find_node(result.value, 2)
    assert node.text == "X"
    assert node.link_id == 15
    assert node.link_text == "Y"


@pytest.mark.parametrize(
    "command, code",
    [
        (RemoveNodeCommand(404), "node_not_found"),
        (UpdateNodeCommand(404, "x", -1, ""), "node_not_found"),
        (MoveNodeCommand(1, 2, 0), "invalid_move"),
        (MoveNodeCommand(2, 0, 0), "invalid_move"),
        (AddSubTextCommand(2, "   "), "invalid_subtext"),
        (AddSubTextCommand(404, "value"), "node_not_found"),
        (RemoveSubTextCommand(2, ""), "invalid_subtext"),
        (RemoveSubTextCommand(404, "value"), "node_not_found"),
    ],
)
def test_failed_commands_report_error_codes(command, code) -> None:
    document = build_starter_document()
    result = handle_command(document, command)
    assert result.is_failure
    assert result.error_code == code
    assert result.error_message


def test_sub_text_commands_trim_and_remove_case_insensitively() -> None:
    document = build_starter_document()
    added = handle_command(document, AddSubTextCommand(2, "  value  "))
    assert find_node(added.value, 2).sub_text == ("value",)
    removed = handle_command(added.value, RemoveSubTextCommand(2, "VALUE"))
    assert removed.is_success
    assert find_node(removed.value, 2).sub_text == ()


def test_handle_command_rejects_unknown_command_type() -> None:
    with pytest.raises(TypeError):
        handle_command(build_starter_document(), object())


def test_find_node_query() -> None:
    document = build_starter_document()
    found = handle_find_node_by_id(document, FindNodeByIdQuery(3))
    assert found.is_success
    assert found.value.text == "SpO2 drops below 50%-GOTO BiPAP Titration"

    missing = handle_find_node_by_id(document, FindNodeByIdQuery(999))
    assert missing.error_code == "node_not_found"
    assert missing.error_message == "Requested node could not be found."


def test_result_map_bind_and_tap() -> None:
    seen = []
    success = ProtocolResult.success(2).map(lambda value: value * 3).tap(seen.append)
    assert success.value == 6
    assert seen == [6]

    failure = ProtocolResult.failure("invalid_move", "nope")
    chained = failure.map(lambda value: value + 1).bind(lambda value: ProtocolResult.success(value))
    chained.tap(seen.append)
    assert chained.is_failure
    assert chained.error_code == "invalid_move"
    assert chained.error_message == "nope"
    assert seen == [6]

    bound = ProtocolResult.success(1).bind(lambda value: ProtocolResult.failure("node_not_found", "gone"))
    assert bound.error_code == "node_not_found"


def test_result_value_raises_for_failure() -> None:
    with pytest.raises(RuntimeError):
        _ = ProtocolResult.failure("node_not_found", "missing").value


def test_user_safe_messages() -> None:
    assert to_user_safe_message(ProtocolResult.success(1)) == ""
    assert (
        to_user_safe_message(ProtocolResult.failure("invalid_move", "x"))
        == "The requested move is not valid for this protocol node."
    )
    assert to_user_safe_message(ProtocolResult.failure("something_else", "x")) == "Unable to apply protocol change."
