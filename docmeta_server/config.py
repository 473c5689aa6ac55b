from __future__ import annotations

import json
from functools import lru_cache
from typing import List, Optional, Tuple

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _s(v: Optional[str]) -> Optional[str]:
    """Strip whitespace from optional strings."""
    if v is None:
        return None
    vv = str(v).strip()
    return vv if vv else None


def _parse_list(raw: Optional[str], setting: str) -> List[str]:
    """Parse a list setting given either as a JSON array or a comma-separated string."""
    text = _s(raw)
    if not text:
        return []

    if text.startswith("["):
        try:
            items = json.loads(text)
        except Exception as e:
            raise ValueError(f"{setting} is not valid JSON: {e}")
        if not isinstance(items, list):
            raise ValueError(f"{setting} must be a JSON array")
    else:
        items = text.split(",")

    out: List[str] = []
    for item in items:
        v = _s(str(item))
        if v and v not in out:
            out.append(v)
    return out


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore", env_file=".env", env_file_encoding="utf-8")
    # -----------------
    # Server
    # -----------------
    host: str = Field(default="0.0.0.0", alias="MCP_SERVER_HOST")
    port: int = Field(default=8765, alias="MCP_SERVER_PORT")

    # Allowed: CRITICAL, ERROR, WARNING, INFO, DEBUG, NOTSET
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Uvicorn log level (optional). If unset/blank, defaults to LOG_LEVEL (lower-cased).
    uvicorn_log_level: Optional[str] = Field(default=None, alias="UVICORN_LOG_LEVEL")

    # Uploads above this size are rejected before any parsing happens.
    max_upload_bytes: int = Field(default=50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")

    # -----------------
    # DOCX layout
    # -----------------
    body_part: str = Field(default="word/document.xml", alias="DOCX_BODY_PART")
    metadata_prefix: str = Field(default="customXml/item", alias="DOCX_METADATA_PREFIX")
    metadata_suffix: str = Field(default=".xml", alias="DOCX_METADATA_SUFFIX")

    # Identifier attributes tried in order on customXml <Node> elements.
    # Different generators write either a prefixed (p2:id) or a bare (id) attribute;
    # further variants are added here rather than in code.
    metadata_id_attributes_raw: str = Field(default="p2:id,id", alias="METADATA_ID_ATTRIBUTES")

    # File name suffixes accepted at the upload boundary.
    accepted_extensions_raw: str = Field(default=".doc,.docx", alias="ACCEPTED_EXTENSIONS")

    # Parsed lists
    id_attribute_lookups: Tuple[str, ...] = ()
    accepted_suffixes: Tuple[str, ...] = ()

    @model_validator(mode="after")
    def _normalize(self) -> "Settings":
        # -----------------
        # Normalize/validate logging settings early
        # -----------------
        lvl = (self.log_level or "INFO").strip().upper()
        allowed = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG", "NOTSET"}
        if lvl not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)} (got {self.log_level!r})")
        self.log_level = lvl

        # If UVICORN_LOG_LEVEL is not set, mirror LOG_LEVEL (uvicorn expects lower-case names).
        if self.uvicorn_log_level and str(self.uvicorn_log_level).strip():
            self.uvicorn_log_level = str(self.uvicorn_log_level).strip().lower()
        else:
            self.uvicorn_log_level = lvl.lower()

        if self.max_upload_bytes <= 0:
            raise ValueError("MAX_UPLOAD_BYTES must be positive")

        # -----------------
        # DOCX layout
        # -----------------
        self.body_part = (_s(self.body_part) or "word/document.xml").lstrip("/")
        self.metadata_prefix = (_s(self.metadata_prefix) or "customXml/item").lstrip("/")
        self.metadata_suffix = _s(self.metadata_suffix) or ".xml"

        lookups = _parse_list(self.metadata_id_attributes_raw, "METADATA_ID_ATTRIBUTES")
        if not lookups:
            raise ValueError("METADATA_ID_ATTRIBUTES must name at least one attribute")
        self.id_attribute_lookups = tuple(lookups)

        suffixes = [x.lower() for x in _parse_list(self.accepted_extensions_raw, "ACCEPTED_EXTENSIONS")]
        if not suffixes:
            raise ValueError("ACCEPTED_EXTENSIONS must name at least one extension")
        self.accepted_suffixes = tuple(s if s.startswith(".") else f".{s}" for s in suffixes)

        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
