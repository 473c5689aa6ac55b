from __future__ import annotations

"""Error taxonomy for the extraction engine.

Every error derives from ``ValueError`` so callers that only distinguish
"bad input" from "internal failure" keep working. The ``code`` attribute is
stable and is what the HTTP and MCP surfaces report back to clients.
"""

from typing import Optional


class ExtractionError(ValueError):
    code = "extraction_error"


class UnsupportedFileTypeError(ExtractionError):
    code = "unsupported_file_type"

    def __init__(self, filename: str, accepted: tuple[str, ...] = (".doc", ".docx")) -> None:
        self.filename = filename
        self.accepted = accepted
        super().__init__(f"Unsupported file type: {filename!r} (accepted: {', '.join(accepted)})")


class ArchiveFormatError(ExtractionError):
    code = "invalid_archive"


class LegacyDocumentError(ArchiveFormatError):
    """The bytes are a legacy binary Word document rather than a zip container."""

    code = "legacy_doc_unsupported"


class MissingPartError(ExtractionError):
    code = "missing_part"

    def __init__(self, part: str) -> None:
        self.part = part
        super().__init__(f"Invalid DOCX: missing {part}")


class MalformedXmlError(ExtractionError):
    code = "malformed_xml"

    def __init__(self, message: str, part: Optional[str] = None) -> None:
        self.part = part
        if part:
            message = f"{part}: {message}"
        super().__init__(message)


class InvalidEncodingError(ExtractionError):
    code = "invalid_encoding"


class DecompressionError(ExtractionError):
    code = "decompression_failed"
