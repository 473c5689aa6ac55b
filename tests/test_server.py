from __future__ import annotations

import base64
import json

from fastapi.testclient import TestClient

from docmeta_server.server import SessionRegistry, app, call_tool, handle_jsonrpc
from docmeta_server.tools import MCP_TOOL_NAMES

from tests.helpers import build_docx, document_xml, mark_encrypted, node_part, sdt

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

client = TestClient(app)


def _sample_docx() -> bytes:
    body = document_xml(sdt("1", "A") + sdt("2", "B"))
    parts = {
        "customXml/item1.xml": node_part(
            [
                ("1", "<Metadata><Alias>Clause</Alias><Tag>T1</Tag></Metadata>"),
                ("2", "<Metadata><Alias>Field</Alias></Metadata>"),
            ]
        )
    }
    return build_docx(body, parts)


def _rpc(payload):
    resp = client.post("/messages", params={"session_id": "test-session"}, json=payload)
    assert resp.status_code == 200
    return resp.json()


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_extract_metadata_endpoint():
    b64 = base64.b64encode(_sample_docx()).decode("ascii")

    resp = client.post("/tools/extract_metadata", json={"file_base64": b64, "filename": "contract.docx"})

    assert resp.status_code == 200
    data = resp.json()
    assert [c["title"] for c in data["controls"]] == ["A - T1", "B"]
    assert data["total_clauses"] == 1
    assert data["total_fields"] == 1
    assert data["total_tables"] == 0
    assert data["selected_index"] == 0


def test_extract_metadata_endpoint_errors():
    resp = client.post("/tools/extract_metadata", json={"file_path": "/no/such/file.docx"})
    assert resp.status_code == 404

    resp = client.post("/tools/extract_metadata", json={})
    assert resp.status_code == 400

    b64 = base64.b64encode(build_docx(None)).decode("ascii")
    resp = client.post("/tools/extract_metadata", json={"file_base64": b64})
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "missing_part"


def test_upload_endpoint():
    resp = client.post(
        "/tools/extract_metadata/upload",
        files={"file": ("Contract.DOCX", _sample_docx(), DOCX_MIME)},
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["document"]["filename"] == "Contract.DOCX"
    assert len(data["controls"]) == 2


def test_upload_errors_are_distinguishable():
    resp = client.post("/tools/extract_metadata/upload", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert resp.status_code == 415
    assert resp.json()["detail"]["error"] == "unsupported_file_type"

    resp = client.post("/tools/extract_metadata/upload", files={"file": ("broken.docx", b"not a zip", DOCX_MIME)})
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "invalid_archive"

    resp = client.post("/tools/extract_metadata/upload", files={"file": ("old.doc", b"not a zip", "application/msword")})
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "legacy_doc_unsupported"

    resp = client.post(
        "/tools/extract_metadata/upload",
        files={"file": ("bad-body.docx", build_docx("<w:document"), DOCX_MIME)},
    )
    assert resp.status_code == 422
    assert resp.json()["detail"]["error"] == "malformed_xml"

    resp = client.post(
        "/tools/extract_metadata/upload",
        files={"file": ("locked.docx", mark_encrypted(_sample_docx()), DOCX_MIME)},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["error"] == "invalid_archive"

    resp = client.post("/tools/extract_metadata/upload", files={"file": ("empty.docx", b"", DOCX_MIME)})
    assert resp.status_code == 400


def test_decode_attribute_endpoint():
    resp = client.post("/tools/decode_attribute", json={"attribute": {"name": "x", "value": "SGVsbG8="}})
    assert resp.status_code == 200
    assert resp.json()["attribute"]["decoded"] == "Hello"
    assert resp.json()["valid"] is True

    resp = client.post("/tools/decode_attribute", json={"attribute": {"name": "x", "value": "%%"}})
    assert resp.status_code == 200
    assert resp.json()["attribute"]["decoded"] == "Invalid Base64 content"
    assert resp.json()["valid"] is False


def test_jsonrpc_tools_list_and_call():
    listed = _rpc({"jsonrpc": "2.0", "id": 1, "method": "tools/list"})
    assert [t["name"] for t in listed["result"]["tools"]] == list(MCP_TOOL_NAMES)

    b64 = base64.b64encode(_sample_docx()).decode("ascii")
    called = _rpc(
        {
            "jsonrpc": "2.0",
            "id": 2,
            "method": "tools/call",
            "params": {"name": "extract_metadata", "arguments": {"file_base64": b64}},
        }
    )
    payload = json.loads(called["result"]["content"][0]["text"])
    assert payload["total_clauses"] == 1
    assert payload["controls"][0]["title"] == "A - T1"


def test_jsonrpc_errors():
    unknown = _rpc({"jsonrpc": "2.0", "id": 3, "method": "resources/list"})
    assert unknown["error"]["code"] == -32601

    bad_tool = _rpc({"jsonrpc": "2.0", "id": 4, "method": "tools/call", "params": {"name": "parse_pdf"}})
    assert bad_tool["error"]["code"] == -32603

    b64 = base64.b64encode(b"not a zip").decode("ascii")
    failed = _rpc(
        {
            "jsonrpc": "2.0",
            "id": 5,
            "method": "tools/call",
            "params": {"name": "extract_metadata", "arguments": {"file_base64": b64}},
        }
    )
    assert failed["error"]["data"]["error"] == "invalid_archive"

    notification = client.post("/messages", params={"session_id": "s"}, json={"method": "initialized"})
    assert notification.json() == {"status": "ok"}


def test_handle_jsonrpc_lifecycle_methods():
    init = handle_jsonrpc({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
    assert init["result"]["serverInfo"]["name"] == "mcp-doc-metadata"

    assert handle_jsonrpc({"jsonrpc": "2.0", "id": 2, "method": "ping"})["result"] == {}
    assert handle_jsonrpc({"jsonrpc": "2.0", "method": "ping"}) is None
    assert handle_jsonrpc({"jsonrpc": "2.0", "id": 3})["error"]["code"] == -32600

    bad_args = handle_jsonrpc(
        {"jsonrpc": "2.0", "id": 4, "method": "tools/call", "params": {"name": "decode_attribute", "arguments": [1]}}
    )
    assert bad_args["error"]["code"] == -32603


def test_call_tool_decode_attribute():
    text = call_tool("decode_attribute", {"attribute": {"name": "Data", "value": "SGk="}})
    assert json.loads(text)["attribute"]["decoded"] == "Hi"


def test_session_registry_publishes_only_to_open_sessions():
    registry = SessionRegistry()

    assert registry.publish("missing", {"id": 1}) is False

    queue = registry.open("s1")
    assert registry.open("s1") is queue
    assert registry.publish("s1", {"id": 1}) is True
    assert queue.get_nowait() == {"id": 1}

    registry.close("s1")
    assert registry.publish("s1", {"id": 2}) is False
