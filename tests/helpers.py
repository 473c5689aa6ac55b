from __future__ import annotations

import base64
import gzip
import io
import zipfile
from typing import Dict, Iterable, Optional, Tuple

W_NS = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"
P2_NS = "http://schemas.example.com/contract/metadata"


def _content_types_xml() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Types xmlns=\"http://schemas.openxmlformats.org/package/2006/content-types\">"
        "<Default Extension=\"xml\" ContentType=\"application/xml\"/>"
        "<Override PartName=\"/word/document.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml\"/>"
        "</Types>"
    )


def document_xml(body_inner: str) -> str:
    return (
        f"<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        f"<w:document xmlns:w=\"{W_NS}\"><w:body>{body_inner}</w:body></w:document>"
    )


def sdt(sdt_id: str, alias: str, tag: str = "", content: str = "") -> str:
    """A block-level content control; `content` goes inside w:sdtContent."""
    tag_xml = f"<w:tag w:val=\"{tag}\"/>" if tag else ""
    return (
        "<w:sdt>"
        f"<w:sdtPr><w:alias w:val=\"{alias}\"/>{tag_xml}<w:id w:val=\"{sdt_id}\"/></w:sdtPr>"
        f"<w:sdtContent>{content}</w:sdtContent>"
        "</w:sdt>"
    )


def paragraph(text: str, inner: str = "") -> str:
    return f"<w:p><w:r><w:t>{text}</w:t></w:r>{inner}</w:p>"


def gzip_b64(xml: str) -> str:
    return base64.b64encode(gzip.compress(xml.encode("utf-8"))).decode("ascii")


def node_part(nodes: Iterable[Tuple[str, str]], id_attr: str = "p2:id") -> str:
    """customXml part holding one <Node> per (identifier, metadata xml) pair.

    The metadata xml is compressed and encoded unless it is already a
    pre-encoded payload (prefix "raw:").
    """
    items = []
    for node_id, payload in nodes:
        text = payload[len("raw:"):] if payload.startswith("raw:") else gzip_b64(payload)
        items.append(f"<Node {id_attr}=\"{node_id}\">{text}</Node>")
    return (
        "<?xml version=\"1.0\" encoding=\"utf-8\"?>"
        f"<Nodes xmlns:p2=\"{P2_NS}\">{''.join(items)}</Nodes>"
    )


def properties_part(payload_xml: Optional[str]) -> str:
    text = gzip_b64(payload_xml) if payload_xml else "  "
    return f"<?xml version=\"1.0\" encoding=\"utf-8\"?><Root><Properties>{text}</Properties></Root>"


def build_docx(body_xml: Optional[str], parts: Optional[Dict[str, str]] = None) -> bytes:
    """Zip a minimal docx in memory; parts are written in dict order."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as z:
        z.writestr("[Content_Types].xml", _content_types_xml())
        if body_xml is not None:
            z.writestr("word/document.xml", body_xml)
        for path, xml in (parts or {}).items():
            z.writestr(path, xml)
    return buf.getvalue()


def mark_encrypted(data: bytes) -> bytes:
    """Set the 'encrypted' flag bit on every member, local and central headers."""
    out = bytearray(data)

    with zipfile.ZipFile(io.BytesIO(data)) as z:
        for info in z.infolist():
            out[info.header_offset + 6] |= 0x1

    eocd = out.rindex(b"PK\x05\x06")
    count = int.from_bytes(out[eocd + 10 : eocd + 12], "little")
    pos = int.from_bytes(out[eocd + 16 : eocd + 20], "little")
    for _ in range(count):
        out[pos + 8] |= 0x1
        name_len, extra_len, comment_len = (
            int.from_bytes(out[pos + off : pos + off + 2], "little") for off in (28, 30, 32)
        )
        pos += 46 + name_len + extra_len + comment_len

    return bytes(out)
