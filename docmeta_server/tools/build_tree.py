from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from ..ooxml import XmlElement, child_elements, find_first, get_qualified_attribute, local_name
from ..schemas import DOCUMENT_PROPERTY_KEY, AttributeRow, ContentControl

SDT = "sdt"
SDT_PR = "sdtPr"
SDT_CONTENT = "sdtContent"

ID_LABEL = "ID (Unsigned)"
ALIAS_LABEL = "Alias"


@dataclass
class ClassificationCounts:
    fields: int = 0
    clauses: int = 0
    tables: int = 0


@dataclass
class ControlTree:
    controls: List[ContentControl] = field(default_factory=list)
    counts: ClassificationCounts = field(default_factory=ClassificationCounts)


def classify_control_type(type_name: str) -> Optional[str]:
    """Map a control type string to the counter it increments.

    Checked in fixed order, first match wins: "repeatfield" is a field.
    """
    t = (type_name or "").lower()
    if "field" in t:
        return "fields"
    if "clause" in t:
        return "clauses"
    if "repeat" in t:
        return "tables"
    return None


def _sdt_property(pr: Optional[XmlElement], name: str) -> str:
    el = find_first(pr, name)
    return get_qualified_attribute(el, "w:val") or ""


def _record_rows(record: Mapping[str, str]) -> List[AttributeRow]:
    return [AttributeRow(name=str(k), value=str(v if v is not None else "")) for k, v in record.items()]


def create_control(
    node: XmlElement,
    records: Mapping[str, Mapping[str, str]],
    counts: ClassificationCounts,
) -> ContentControl:
    pr = find_first(node, SDT_PR)
    sdt_id = _sdt_property(pr, "id")
    alias = _sdt_property(pr, "alias")
    tag = _sdt_property(pr, "tag")

    record = records.get(sdt_id) or {}

    bucket = classify_control_type(record.get("Alias") or alias)
    if bucket is not None:
        setattr(counts, bucket, getattr(counts, bucket) + 1)

    attributes = [
        AttributeRow(name=ID_LABEL, value=sdt_id),
        AttributeRow(name=ALIAS_LABEL, value=alias),
    ]
    attributes.extend(_record_rows(record))

    children: List[ContentControl] = []
    content = find_first(node, SDT_CONTENT)
    if content is not None:
        children = _build(content, records, counts)

    meta_tag = record.get("Tag")
    return ContentControl(
        title=f"{alias} - {meta_tag}" if meta_tag else alias,
        tag=tag,
        attributes=attributes,
        children=children,
        expanded=False,
    )


def _build(
    parent: XmlElement,
    records: Mapping[str, Mapping[str, str]],
    counts: ClassificationCounts,
) -> List[ContentControl]:
    result: List[ContentControl] = []

    for child in child_elements(parent):
        if local_name(child) == SDT:
            result.append(create_control(child, records, counts))
        else:
            # Non-sdt wrappers (paragraphs, tables, runs...) are transparent.
            result.extend(_build(child, records, counts))

    return result


def build_control_tree(body: XmlElement, records: Mapping[str, Mapping[str, str]]) -> ControlTree:
    """Walk the document body and return its content controls plus classification counts.

    Each call starts from zero counts; nothing is shared between calls.
    """
    counts = ClassificationCounts()
    controls = _build(body, records, counts)
    return ControlTree(controls=controls, counts=counts)


def document_property_control(record: Mapping[str, str]) -> ContentControl:
    """Synthetic node for the document-level record. Never classified."""
    return ContentControl(
        title=DOCUMENT_PROPERTY_KEY,
        tag="",
        attributes=_record_rows(record),
        children=[],
        expanded=False,
    )
