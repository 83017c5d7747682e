from __future__ import annotations

"""
Protocol XML wire format.

Design intent:
- Field order per level is fixed: Id, LinkId, LinkText, text, SubText*, SubSection*.
- The lowercase `text` element name is kept for compatibility with existing protocol files.
- Parsing is lenient per field (bad integers become -1) but strict on the root element.
"""

import logging
import re
from typing import Iterable

from lxml import etree

from sleepedit.internal_core.contracts import ProtocolNodeKind
from sleepedit.protocol.tree import ProtocolTreeDocument, ProtocolTreeNode

logger = logging.getLogger(__name__)

PROTOCOL_ELEMENT = "Protocol"
SECTION_ELEMENT = "Section"
SUBSECTION_ELEMENT = "SubSection"
ID_ELEMENT = "Id"
LINK_ID_ELEMENT = "LinkId"
LINK_TEXT_ELEMENT = "LinkText"
TEXT_ELEMENT = "text"
SUBTEXT_ELEMENT = "SubText"

XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>'

_MISSING_INT = -1
_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INT_RE = re.compile(r"^\s*[+-]?[0-9]+\s*$")
_DECLARATION_RE = re.compile(r"^\s*<\?xml[^>]*\?>")
# Characters outside the XML 1.0 Char production, including lone surrogates.
_INVALID_XML_CHARS_RE = re.compile("[^\t\n\r\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")


class ProtocolXmlFormatError(ValueError):
    """Raised when protocol XML is empty, malformed, or not rooted at <Protocol>."""


def serialize_protocol(document: ProtocolTreeDocument) -> str:
    if document is None:
        raise ValueError("document is required.")

    root = etree.Element(PROTOCOL_ELEMENT)
    _append_fields(root, document.id, document.link_id, document.link_text, document.text, ())
    for section in document.sections:
        root.append(_node_to_element(section, SECTION_ELEMENT))

    body = etree.tostring(root, encoding="unicode", pretty_print=True)
    xml = f"{XML_DECLARATION}\n{body}"
    logger.debug(
        "Protocol XML serialized. sections=%s length=%s",
        len(document.sections),
        len(xml),
    )
    return xml


def deserialize_protocol(xml: str) -> ProtocolTreeDocument:
    if xml is None or not xml.strip():
        logger.warning("Protocol XML rejected because content was empty.")
        raise ProtocolXmlFormatError("XML content is required.")

    # Input is already decoded text, so any declared encoding is dropped.
    body = _DECLARATION_RE.sub("", xml.lstrip("\ufeff"), count=1)
    parser = etree.XMLParser(
        encoding="utf-8",
        resolve_entities=False,
        no_network=True,
        huge_tree=False,
    )
    try:
        root = etree.fromstring(body.encode("utf-8"), parser)
    except etree.XMLSyntaxError as exc:
        logger.warning("Protocol XML rejected because it could not be parsed: %s", exc)
        raise ProtocolXmlFormatError(f"Malformed protocol XML: {exc}") from exc

    if etree.QName(root).localname != PROTOCOL_ELEMENT:
        logger.warning("Protocol XML rejected because root element was %r.", root.tag)
        raise ProtocolXmlFormatError("XML root element must be Protocol.")

    document = ProtocolTreeDocument(
        id=_read_int(root, ID_ELEMENT),
        link_id=_read_int(root, LINK_ID_ELEMENT),
        link_text=_read_string(root, LINK_TEXT_ELEMENT),
        text=_read_string(root, TEXT_ELEMENT),
        sections=tuple(
            _element_to_node(element, "Section") for element in root.findall(SECTION_ELEMENT)
        ),
    )
    logger.debug("Protocol XML deserialized. sections=%s", len(document.sections))
    return document


def _node_to_element(node: ProtocolTreeNode, element_name: str) -> etree._Element:
    element = etree.Element(element_name)
    _append_fields(element, node.id, node.link_id, node.link_text, node.text, node.sub_text)
    for child in node.children:
        element.append(_node_to_element(child, SUBSECTION_ELEMENT))
    return element


def _append_fields(
    element: etree._Element,
    node_id: int,
    link_id: int,
    link_text: str,
    text: str,
    sub_text: Iterable[str],
) -> None:
    # Empty strings keep an explicit open/close pair instead of a self-closing tag.
    etree.SubElement(element, ID_ELEMENT).text = str(node_id)
    etree.SubElement(element, LINK_ID_ELEMENT).text = str(link_id)
    etree.SubElement(element, LINK_TEXT_ELEMENT).text = _xml_safe(link_text)
    etree.SubElement(element, TEXT_ELEMENT).text = _xml_safe(text)
    for item in sub_text:
        value = _xml_safe(item)
        if value.strip():
            etree.SubElement(element, SUBTEXT_ELEMENT).text = value


def _xml_safe(value: str | None) -> str:
    return _INVALID_XML_CHARS_RE.sub("", value or "")


def _element_to_node(element: etree._Element, kind: ProtocolNodeKind) -> ProtocolTreeNode:
    sub_text = tuple(
        value.strip()
        for value in (_element_text(item) for item in element.findall(SUBTEXT_ELEMENT))
        if value.strip()
    )
    children = tuple(
        _element_to_node(child, "SubSection") for child in element.findall(SUBSECTION_ELEMENT)
    )
    return ProtocolTreeNode(
        id=_read_int(element, ID_ELEMENT),
        link_id=_read_int(element, LINK_ID_ELEMENT),
        link_text=_read_string(element, LINK_TEXT_ELEMENT),
        text=_read_string(element, TEXT_ELEMENT),
        kind=kind,
        sub_text=sub_text,
        children=children,
    )


def _element_text(element: etree._Element) -> str:
    return "".join(element.itertext())


def _read_string(element: etree._Element, name: str) -> str:
    child = element.find(name)
    if child is None:
        return ""
    return _element_text(child)


def _read_int(element: etree._Element, name: str) -> int:
    value = _read_string(element, name)
    if not _INT_RE.match(value):
        return _MISSING_INT
    number = int(value)
    if number < _INT32_MIN or number > _INT32_MAX:
        return _MISSING_INT
    return number
