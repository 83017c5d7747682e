from __future__ import annotations

"""
Starter protocol for new editor sessions.

Design intent:
- Prefer a clinician-maintained XML file when one is configured and readable.
- Otherwise fall back to a built-in sleep-study template so the editor always opens.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Iterator, Sequence

from sleepedit.internal_core.contracts import ProtocolNodeKind
from sleepedit.protocol.tree import ProtocolTreeDocument, ProtocolTreeNode
from sleepedit.protocol.xml_codec import ProtocolXmlFormatError, deserialize_protocol

logger = logging.getLogger(__name__)

STARTER_TITLE = "Saint Luke's Protocol"
DEFAULT_SECTION_ITEM = "Review criteria and document findings."
DIAGNOSTIC_SECTION = "Diagnostic Polysomnogram:"
BIPAP_SECTION = "BiPAP Titration Polysomnogram:"
BIPAP_TRIGGER = "SpO2 drops below 50%-GOTO BiPAP Titration"

_REVIEW_SECTIONS = (
    "Split Night Polysomnogram:",
    "CPAP Titration Polysomnogram:",
    BIPAP_SECTION,
    "Supplemental Oxygen:",
    "Respiratory Event Determination:",
    "Post-Op Polysomnogram:",
    "Treatment Intolerance:",
    "Oral Appliance Protocol:",
    "Ventilator:",
    "CPAP/BIPAP Failure:",
    "End of Study:",
)


class ProtocolStarterService:
    def __init__(self, default_protocol_path: str = "", startup_protocol_path: str = ""):
        self._default_protocol_path = default_protocol_path or ""
        self._startup_protocol_path = startup_protocol_path or ""

    def create(self) -> ProtocolTreeDocument:
        configured = self._try_create_from_configured_file()
        if configured is not None:
            return configured
        return build_starter_document()

    def _candidate_paths(self) -> Iterator[str]:
        default_path = self._default_protocol_path.strip()
        startup_path = self._startup_protocol_path.strip()
        if default_path:
            yield default_path
        if startup_path and startup_path.lower() != default_path.lower():
            yield startup_path

    def _try_create_from_configured_file(self) -> ProtocolTreeDocument | None:
        for raw_path in self._candidate_paths():
            path = Path(raw_path)
            if not path.is_file():
                logger.warning("Protocol startup file not found at configured path: %s", path)
                continue
            try:
                document = deserialize_protocol(path.read_text(encoding="utf-8-sig"))
            except (OSError, UnicodeDecodeError, ProtocolXmlFormatError):
                logger.warning("Failed to load protocol startup file from: %s", path, exc_info=True)
                continue
            logger.info("Protocol starter loaded from %s. sections=%s", path, len(document.sections))
            return document
        return None


class _IdSequence:
    def __init__(self) -> None:
        self._next = 1

    def take(self) -> int:
        value = self._next
        self._next += 1
        return value


def build_starter_document() -> ProtocolTreeDocument:
    ids = _IdSequence()
    diagnostic = _node(
        ids,
        "Section",
        DIAGNOSTIC_SECTION,
        lambda: [
            _node(
                ids,
                "SubSection",
                "Monitor SpO2 and EKG for Emergency Guideline Interventions",
                lambda: [
                    _node(
                        ids,
                        "SubSection",
                        BIPAP_TRIGGER,
                        lambda: [
                            _node(ids, "SubSection", "PaCO2 > 52"),
                            _node(ids, "SubSection", "PaCO2 < 52"),
                            _node(
                                ids,
                                "SubSection",
                                "Recurrent SpO2 desaturation to 70% or less for any 15 minute period",
                                sub_text=("edit",),
                            ),
                        ],
                    )
                ],
            ),
            _node(ids, "SubSection", "Monitor SpO2 for baseline changes below 86% (document 30 minutes)"),
            _node(ids, "SubSection", "PaO2 < 55"),
            _node(ids, "SubSection", "GOAL: Supine/REM sleep obtained"),
            _node(ids, "SubSection", "GOAL: All goals complete"),
        ],
    )
    sections = [diagnostic] + [
        _node(ids, "Section", title, lambda: [_node(ids, "SubSection", DEFAULT_SECTION_ITEM)])
        for title in _REVIEW_SECTIONS
    ]
    return ProtocolTreeDocument(
        id=0,
        text=STARTER_TITLE,
        sections=_wire_reference_links(tuple(sections)),
    )


def _node(
    ids: _IdSequence,
    kind: ProtocolNodeKind,
    text: str,
    children=None,
    sub_text: Sequence[str] = (),
) -> ProtocolTreeNode:
    # Parent id is taken before children are built so ids follow pre-order.
    node_id = ids.take()
    return ProtocolTreeNode(
        id=node_id,
        text=text,
        kind=kind,
        sub_text=tuple(sub_text),
        children=tuple(children()) if children is not None else (),
    )


def _wire_reference_links(sections: tuple[ProtocolTreeNode, ...]) -> tuple[ProtocolTreeNode, ...]:
    diagnostic = next((item for item in sections if item.text == DIAGNOSTIC_SECTION), None)
    bipap = next((item for item in sections if item.text == BIPAP_SECTION), None)
    if diagnostic is None or bipap is None:
        return sections

    children, linked = _link_first_match(diagnostic.children, BIPAP_TRIGGER, bipap)
    if not linked:
        return sections
    linked_diagnostic = replace(diagnostic, children=children)
    return tuple(linked_diagnostic if item is diagnostic else item for item in sections)


def _link_first_match(
    nodes: tuple[ProtocolTreeNode, ...],
    text: str,
    target: ProtocolTreeNode,
) -> tuple[tuple[ProtocolTreeNode, ...], bool]:
    for index, node in enumerate(nodes):
        if node.text == text:
            updated = replace(node, link_id=target.id, link_text=target.text)
        else:
            children, linked = _link_first_match(node.children, text, target)
            if not linked:
                continue
            updated = replace(node, children=children)
        return nodes[:index] + (updated,) + nodes[index + 1 :], True
    return nodes, False
