from __future__ import annotations

"""Low-level adapters over the docx container: zip archive, payload codecs and XML trees."""

from .archive import looks_like_legacy_doc, open_archive
from .payload import decode_base64, decode_compressed_xml, decompress_gzip
from .xml import (
    NAMESPACES,
    XmlElement,
    child_elements,
    find_first,
    get_qualified_attribute,
    iter_by_local_name,
    local_name,
    parse_xml,
    qualified_name,
    text_content,
)

__all__ = [
    "NAMESPACES",
    "XmlElement",
    "child_elements",
    "decode_base64",
    "decode_compressed_xml",
    "decompress_gzip",
    "find_first",
    "get_qualified_attribute",
    "iter_by_local_name",
    "local_name",
    "looks_like_legacy_doc",
    "open_archive",
    "parse_xml",
    "qualified_name",
    "text_content",
]
