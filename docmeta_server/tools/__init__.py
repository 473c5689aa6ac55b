from __future__ import annotations

"""Tool package for the docx metadata MCP server.

This module re-exports the tool callables used by the MCP server dispatcher.
Keeping these exports explicit makes it easier to:
- import tool handlers in one place
- reference tool names consistently across server/client/tests
"""

from .build_tree import ClassificationCounts, ControlTree, build_control_tree, classify_control_type
from .collect_metadata import MetadataCollection, collect_metadata
from .decode_attribute import INVALID_BASE64_MARKER, decode_attribute, decode_attribute_value
from .extract_metadata import extract_metadata, extract_metadata_from_bytes, validate_filename

# Canonical list of MCP tool names exposed by this server.
MCP_TOOL_NAMES = (
    "extract_metadata",
    "decode_attribute",
)

__all__ = [
    "ClassificationCounts",
    "ControlTree",
    "INVALID_BASE64_MARKER",
    "MetadataCollection",
    "build_control_tree",
    "classify_control_type",
    "collect_metadata",
    "decode_attribute",
    "decode_attribute_value",
    "extract_metadata",
    "extract_metadata_from_bytes",
    "validate_filename",
    "MCP_TOOL_NAMES",
]
