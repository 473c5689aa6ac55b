from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

# Reserved correlation key for the document-level metadata record.
DOCUMENT_PROPERTY_KEY = "DocumentProperty"


class AttributeRow(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    value: str

    # Filled in only by decode_attribute; never during extraction.
    decoded: Optional[str] = None


class ContentControl(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str
    tag: str = ""
    attributes: List[AttributeRow] = Field(default_factory=list)
    children: List["ContentControl"] = Field(default_factory=list)

    # UI state only; extraction always leaves it False.
    expanded: bool = False

    def walk(self) -> List["ContentControl"]:
        """This control followed by all of its descendants, depth first."""
        out: List[ContentControl] = [self]
        for child in self.children:
            out.extend(child.walk())
        return out


ContentControl.model_rebuild()


class DocumentInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filename: Optional[str] = None
    media_type: Literal["application/vnd.openxmlformats-officedocument.wordprocessingml.document"] = DOCX_MEDIA_TYPE
    part_count: int = 0
    metadata_part_count: int = 0
    metadata_record_count: int = 0


class ExtractionResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    document: DocumentInfo = Field(default_factory=DocumentInfo)
    controls: List[ContentControl] = Field(default_factory=list)

    total_fields: int = Field(default=0, ge=0)
    total_clauses: int = Field(default=0, ge=0)
    total_tables: int = Field(default=0, ge=0)

    # Index into `controls` of the initially active control (None for an empty tree).
    selected_index: Optional[int] = None

    # Recovered metadata failures (one per skipped part or record).
    warnings: List[str] = Field(default_factory=list)

    @property
    def selected_control(self) -> Optional[ContentControl]:
        if self.selected_index is None or not (0 <= self.selected_index < len(self.controls)):
            return None
        return self.controls[self.selected_index]

    def iter_controls(self) -> List[ContentControl]:
        out: List[ContentControl] = []
        for c in self.controls:
            out.extend(c.walk())
        return out


# ---------------------------
# Tool input schemas
# ---------------------------


class ExtractMetadataInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_path: Optional[str] = None
    file_base64: Optional[str] = None

    # Original file name; checked against the accepted extensions when given.
    filename: Optional[str] = None

    @field_validator("filename", mode="before")
    @classmethod
    def _blank_filename(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _validate_file_source(self) -> "ExtractMetadataInput":
        if not self.file_path and not self.file_base64:
            raise ValueError("Either file_path or file_base64 must be provided")
        return self


class DecodeAttributeInput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    attribute: AttributeRow


class DecodeAttributeOutput(BaseModel):
    model_config = ConfigDict(extra="ignore")

    attribute: AttributeRow
    valid: bool


# MCP tool registration (for tools/list)
MCP_TOOLS: List[Dict[str, Any]] = [
    {
        "name": "extract_metadata",
        "description": (
            "Extract the content-control tree of a Microsoft Word (.docx) document, enriched with "
            "the custom metadata stored in its customXml parts. Returns the nested controls, "
            "their attributes and field/clause/table counts."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "file_path": {"type": "string", "description": "Path to the .docx file"},
                "file_base64": {"type": "string", "description": "Base64-encoded file contents"},
                "filename": {"type": "string", "description": "Original file name (.doc/.docx)"},
            },
            "oneOf": [{"required": ["file_path"]}, {"required": ["file_base64"]}],
        },
    },
    {
        "name": "decode_attribute",
        "description": (
            "Decode a single attribute value as base64 for display. Invalid content is reported "
            "on the returned attribute instead of failing the call."
        ),
        "inputSchema": {
            "type": "object",
            "properties": {
                "attribute": {
                    "type": "object",
                    "properties": {
                        "name": {"type": "string"},
                        "value": {"type": "string"},
                    },
                    "required": ["name", "value"],
                },
            },
            "required": ["attribute"],
        },
    },
]
