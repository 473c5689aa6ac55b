from __future__ import annotations

import base64
import binascii
import gzip
import re
import zlib

from ..errors import DecompressionError, InvalidEncodingError

_WS_RE = re.compile(r"[\t\n\f\r ]+")


def decode_base64(text: str) -> bytes:
    """Decode standard base64, ignoring ASCII whitespace.

    Anything outside the base64 alphabet, or wrong padding, raises
    InvalidEncodingError instead of being silently dropped.
    """

    compact = _WS_RE.sub("", text or "")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidEncodingError(f"Invalid base64 payload: {e}") from e


def decompress_gzip(data: bytes) -> bytes:
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise DecompressionError(f"Invalid gzip payload: {e}") from e


def decode_compressed_xml(text: str) -> bytes:
    """base64 -> gzip, returning the raw XML bytes of an embedded payload."""
    return decompress_gzip(decode_base64(text))
