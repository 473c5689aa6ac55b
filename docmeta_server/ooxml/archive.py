from __future__ import annotations

import io
import zipfile
import zlib
from typing import Dict

from ..errors import ArchiveFormatError

# Compound File Binary header used by Word 97-2003 .doc files.
OLE2_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

# General purpose flag bit 0: member is encrypted.
ENCRYPTED_FLAG = 0x1


def looks_like_legacy_doc(data: bytes) -> bool:
    return bool(data) and data[: len(OLE2_SIGNATURE)] == OLE2_SIGNATURE


def open_archive(data: bytes) -> Dict[str, bytes]:
    """Read every file entry of a zip container into memory.

    Keys are the archive-internal POSIX paths in the order the archive lists
    them; directory entries are skipped.
    """

    if not data:
        raise ArchiveFormatError("Invalid DOCX: empty input")

    parts: Dict[str, bytes] = {}
    try:
        with zipfile.ZipFile(io.BytesIO(data), "r") as z:
            for info in z.infolist():
                if info.is_dir():
                    continue
                if info.flag_bits & ENCRYPTED_FLAG:
                    raise ArchiveFormatError(f"Invalid DOCX: encrypted archive member {info.filename}")
                parts[info.filename] = z.read(info)
    except zipfile.BadZipFile as e:
        raise ArchiveFormatError("Invalid DOCX: not a valid zip archive") from e
    except (zlib.error, EOFError, NotImplementedError, RuntimeError) as e:
        raise ArchiveFormatError(f"Invalid DOCX: corrupt archive member ({e})") from e

    return parts
