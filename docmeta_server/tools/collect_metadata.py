from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from ..config import get_settings
from ..errors import DecompressionError, InvalidEncodingError, MalformedXmlError
from ..ooxml import (
    XmlElement,
    child_elements,
    decode_compressed_xml,
    find_first,
    get_qualified_attribute,
    iter_by_local_name,
    parse_xml,
    qualified_name,
    text_content,
)
from ..schemas import DOCUMENT_PROPERTY_KEY

logger = logging.getLogger(__name__)

MetadataRecord = Dict[str, str]

_RECORD_ERRORS = (InvalidEncodingError, DecompressionError, MalformedXmlError)


@dataclass
class MetadataCollection:
    # identifier -> record; DOCUMENT_PROPERTY_KEY holds the document-level record
    records: Dict[str, MetadataRecord] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    part_count: int = 0

    @property
    def document_properties(self) -> Optional[MetadataRecord]:
        return self.records.get(DOCUMENT_PROPERTY_KEY)


def flatten_record(el: XmlElement) -> MetadataRecord:
    """Direct children of `el` as {qualified tag: text content}, in document order."""
    record: MetadataRecord = {}
    for child in child_elements(el):
        record[qualified_name(child)] = text_content(child)
    return record


def is_metadata_part(path: str, prefix: str, suffix: str) -> bool:
    return path.startswith(prefix) and path.endswith(suffix)


def node_identifier(node: XmlElement, id_attributes: Sequence[str]) -> Optional[str]:
    """First non-empty identifier attribute, trying each variant in order."""
    for name in id_attributes:
        value = get_qualified_attribute(node, name)
        if value:
            return value
    return None


def _decode_payload(text: str, part: str) -> XmlElement:
    return parse_xml(decode_compressed_xml(text), part=part)


def _collect_node_records(
    root: XmlElement,
    path: str,
    id_attributes: Sequence[str],
    out: MetadataCollection,
) -> None:
    for node in iter_by_local_name(root, "Node", include_self=True):
        node_id = node_identifier(node, id_attributes)
        if not node_id:
            continue

        payload = text_content(node).strip()
        if not payload:
            continue

        try:
            meta_root = _decode_payload(payload, path)
        except _RECORD_ERRORS as e:
            logger.warning("Failed to decode metadata node %s in %s: %s", node_id, path, e)
            out.warnings.append(f"{path}: metadata node {node_id!r} skipped ({e.code}: {e})")
            continue

        metadata_el = find_first(meta_root, "Metadata", include_self=True)
        if metadata_el is None:
            logger.debug("Metadata node %s in %s has no <Metadata> element", node_id, path)
            continue

        if node_id in out.records:
            logger.debug("Metadata node %s in %s overrides an earlier record", node_id, path)
        out.records[node_id] = flatten_record(metadata_el)


def _collect_document_properties(root: XmlElement, path: str, out: MetadataCollection) -> None:
    props = find_first(root, "Properties", include_self=True)
    if props is None:
        return

    payload = text_content(props).strip()
    if not payload:
        return

    try:
        meta_root = _decode_payload(payload, path)
    except _RECORD_ERRORS as e:
        logger.warning("Failed to decode document properties in %s: %s", path, e)
        out.warnings.append(f"{path}: document properties skipped ({e.code}: {e})")
        return

    out.records[DOCUMENT_PROPERTY_KEY] = flatten_record(meta_root)


def collect_metadata(
    parts: Mapping[str, bytes],
    *,
    prefix: Optional[str] = None,
    suffix: Optional[str] = None,
    id_attributes: Optional[Sequence[str]] = None,
) -> MetadataCollection:
    """Build the identifier -> metadata correlation table from customXml parts.

    Parts are visited in archive order and a repeated identifier keeps the last
    record seen. A part that fails to parse, or a single payload that fails to
    decode, is logged and skipped; it never aborts the rest of the collection.
    """

    settings = get_settings()
    prefix = settings.metadata_prefix if prefix is None else prefix
    suffix = settings.metadata_suffix if suffix is None else suffix
    id_attributes = tuple(id_attributes) if id_attributes else settings.id_attribute_lookups

    out = MetadataCollection()

    for path, raw in parts.items():
        if not is_metadata_part(path, prefix, suffix):
            continue
        out.part_count += 1

        try:
            root = parse_xml(raw, part=path)
        except MalformedXmlError as e:
            logger.warning("Failed to parse %s: %s", path, e)
            out.warnings.append(f"{path}: part skipped ({e.code}: {e})")
            continue

        # Both shapes may live in the same part and are handled independently.
        _collect_node_records(root, path, id_attributes, out)
        _collect_document_properties(root, path, out)

    return out
