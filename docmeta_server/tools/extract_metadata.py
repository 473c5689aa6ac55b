from __future__ import annotations

import logging
import os
from typing import Dict, Optional

from ..config import get_settings
from ..errors import (
    ArchiveFormatError,
    InvalidEncodingError,
    LegacyDocumentError,
    MalformedXmlError,
    MissingPartError,
    UnsupportedFileTypeError,
)
from ..ooxml import decode_base64, find_first, looks_like_legacy_doc, open_archive, parse_xml
from ..schemas import DocumentInfo, ExtractionResult, ExtractMetadataInput
from .build_tree import build_control_tree, document_property_control
from .collect_metadata import collect_metadata

logger = logging.getLogger(__name__)


def validate_filename(filename: str) -> None:
    """Reject file names that do not carry an accepted Word extension."""
    accepted = get_settings().accepted_suffixes
    name = (filename or "").strip().lower()
    if not name or not name.endswith(accepted):
        raise UnsupportedFileTypeError(filename, accepted)


def _open_container(data: bytes, filename: Optional[str]) -> Dict[str, bytes]:
    try:
        return open_archive(data)
    except ArchiveFormatError as e:
        if looks_like_legacy_doc(data) or (filename or "").lower().endswith(".doc"):
            raise LegacyDocumentError(
                "Legacy binary .doc files are not supported; save the document as .docx and retry"
            ) from e
        raise


def extract_metadata_from_bytes(data: bytes, filename: Optional[str] = None) -> ExtractionResult:
    """Run one extraction over raw .docx bytes.

    Archive and body failures are fatal and raise; metadata failures are
    recovered and reported in ``ExtractionResult.warnings``.
    """

    settings = get_settings()

    parts = _open_container(data, filename)

    body_part = settings.body_part
    document_xml = parts.get(body_part)
    if document_xml is None:
        raise MissingPartError(body_part)

    root = parse_xml(document_xml, part=body_part)
    body = find_first(root, "body", include_self=True)
    if body is None:
        raise MalformedXmlError("missing w:body", part=body_part)

    metadata = collect_metadata(parts)
    tree = build_control_tree(body, metadata.records)

    controls = list(tree.controls)
    doc_props = metadata.document_properties
    if doc_props is not None:
        controls.insert(0, document_property_control(doc_props))

    result = ExtractionResult(
        document=DocumentInfo(
            filename=os.path.basename(filename) if filename else None,
            part_count=len(parts),
            metadata_part_count=metadata.part_count,
            metadata_record_count=len(metadata.records),
        ),
        controls=controls,
        total_fields=tree.counts.fields,
        total_clauses=tree.counts.clauses,
        total_tables=tree.counts.tables,
        selected_index=0 if controls else None,
        warnings=list(metadata.warnings),
    )

    logger.info(
        "Extracted %d top-level controls from %s (fields=%d clauses=%d tables=%d, %d warnings)",
        len(controls),
        filename or "<bytes>",
        result.total_fields,
        result.total_clauses,
        result.total_tables,
        len(result.warnings),
    )
    return result


def extract_metadata(input_data: ExtractMetadataInput) -> ExtractionResult:
    """Extract the content-control tree from a .docx given by path or base64 contents."""

    filename = input_data.filename
    if not filename and input_data.file_path:
        filename = os.path.basename(input_data.file_path)

    # File type is checked before anything is read.
    if filename:
        validate_filename(filename)

    if input_data.file_path:
        if not os.path.exists(input_data.file_path):
            raise FileNotFoundError(input_data.file_path)
        with open(input_data.file_path, "rb") as f:
            data = f.read()
    else:
        assert input_data.file_base64 is not None
        try:
            data = decode_base64(input_data.file_base64)
        except InvalidEncodingError as e:
            raise ArchiveFormatError("Invalid DOCX: file_base64 is not valid base64") from e

    return extract_metadata_from_bytes(data, filename)
