from __future__ import annotations

from typing import Tuple

from ..errors import InvalidEncodingError
from ..ooxml import decode_base64
from ..schemas import AttributeRow, DecodeAttributeInput, DecodeAttributeOutput

INVALID_BASE64_MARKER = "Invalid Base64 content"


def _decode(value: str) -> Tuple[str, bool]:
    try:
        raw = decode_base64(value)
    except InvalidEncodingError:
        return INVALID_BASE64_MARKER, False

    try:
        return raw.decode("utf-8"), True
    except UnicodeDecodeError:
        return raw.decode("latin-1"), True


def decode_attribute_value(value: str) -> str:
    """Decode a base64 attribute value into display text.

    UTF-8 is tried first; other bytes are shown one character per byte
    (Latin-1). Invalid base64 yields INVALID_BASE64_MARKER instead of raising.
    """
    return _decode(value)[0]


def decode_attribute(input_data: DecodeAttributeInput) -> DecodeAttributeOutput:
    """Return a copy of the attribute with `decoded` filled in; the input row is left untouched."""
    text, valid = _decode(input_data.attribute.value)
    row: AttributeRow = input_data.attribute.model_copy(update={"decoded": text})
    return DecodeAttributeOutput(attribute=row, valid=valid)
