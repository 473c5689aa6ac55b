from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, Callable, Dict, Optional, Tuple, Type

import structlog
from fastapi import Body, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from . import __version__
from .config import get_settings
from .errors import (
    ExtractionError,
    MalformedXmlError,
    MissingPartError,
    UnsupportedFileTypeError,
)
from .schemas import MCP_TOOLS, DecodeAttributeInput, ExtractMetadataInput
from .tools import MCP_TOOL_NAMES, decode_attribute, extract_metadata, extract_metadata_from_bytes, validate_filename

PROTOCOL_VERSION = "2024-11-05"


def _configure_logging() -> None:
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))

    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=True,
    )


log = structlog.get_logger()


def _error_status(e: ExtractionError) -> int:
    """HTTP status per failure class, so clients can tell the remediation apart."""
    if isinstance(e, UnsupportedFileTypeError):
        return 415
    if isinstance(e, (MissingPartError, MalformedXmlError)):
        return 422
    # Corrupt archives, legacy .doc files and anything else the caller sent.
    return 400


def _http_error(e: ExtractionError) -> HTTPException:
    return HTTPException(status_code=_error_status(e), detail={"error": e.code, "message": str(e)})


class SessionRegistry:
    """Outbound queues of connected SSE clients, keyed by session id."""

    def __init__(self) -> None:
        self._queues: Dict[str, "asyncio.Queue[Dict[str, Any]]"] = {}

    def open(self, session_id: str) -> "asyncio.Queue[Dict[str, Any]]":
        return self._queues.setdefault(session_id, asyncio.Queue())

    def publish(self, session_id: str, message: Dict[str, Any]) -> bool:
        q = self._queues.get(session_id)
        if q is None:
            return False
        q.put_nowait(message)
        return True

    def close(self, session_id: str) -> None:
        self._queues.pop(session_id, None)


sessions = SessionRegistry()

# tool name -> (input model, handler)
_TOOL_HANDLERS: Dict[str, Tuple[Type[BaseModel], Callable[[Any], BaseModel]]] = {
    "extract_metadata": (ExtractMetadataInput, extract_metadata),
    "decode_attribute": (DecodeAttributeInput, decode_attribute),
}


def create_app() -> FastAPI:
    _configure_logging()

    app = FastAPI(title="mcp-doc-metadata", version=__version__)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {"status": "healthy", "version": __version__}

    # ------------------
    # Direct HTTP endpoints
    # ------------------

    @app.post("/tools/extract_metadata")
    async def http_extract_metadata(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        try:
            inp = ExtractMetadataInput.model_validate(payload)
            result = extract_metadata(inp)
            return result.model_dump(mode="json")
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
        except ExtractionError as e:
            raise _http_error(e)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception as e:
            log.exception("extract_metadata failed", error=str(e))
            raise HTTPException(status_code=500, detail="Internal server error")

    @app.post("/tools/extract_metadata/upload")
    async def http_extract_metadata_upload(file: UploadFile = File(...)) -> Dict[str, Any]:
        settings = get_settings()
        filename = file.filename or ""
        try:
            # Reject unsupported names before reading the body.
            validate_filename(filename)

            blob = await file.read()
            if not blob:
                raise HTTPException(status_code=400, detail="Empty file upload")
            if len(blob) > settings.max_upload_bytes:
                raise HTTPException(
                    status_code=413,
                    detail=f"Upload exceeds {settings.max_upload_bytes} bytes",
                )

            result = extract_metadata_from_bytes(blob, filename)
            return result.model_dump(mode="json")

        except HTTPException:
            raise
        except ExtractionError as e:
            log.info("extract_metadata.upload rejected", filename=filename, error=e.code)
            raise _http_error(e)
        except Exception as e:
            log.exception("extract_metadata.upload failed", filename=filename, error=str(e))
            raise HTTPException(status_code=500, detail="Internal server error")

    @app.post("/tools/decode_attribute")
    async def http_decode_attribute(payload: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        try:
            inp = DecodeAttributeInput.model_validate(payload)
            return decode_attribute(inp).model_dump(mode="json")
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

    # ------------------
    # MCP over SSE transport
    # ------------------

    @app.get("/sse")
    async def sse(session_id: Optional[str] = Query(default=None)):
        sid = session_id or uuid.uuid4().hex
        queue = sessions.open(sid)

        async def events():
            yield {"event": "endpoint", "data": f"/messages?session_id={sid}"}
            try:
                while True:
                    try:
                        msg = await asyncio.wait_for(queue.get(), timeout=15.0)
                    except asyncio.TimeoutError:
                        yield {"event": "ping", "data": "keepalive"}
                        continue
                    yield {"event": "message", "data": json.dumps(msg, ensure_ascii=False)}
            finally:
                sessions.close(sid)

        return EventSourceResponse(events())

    @app.post("/messages")
    async def messages(request: Request, session_id: str = Query(...)):
        try:
            payload = await request.json()
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            return JSONResponse({"status": "ignored"})

        response = handle_jsonrpc(payload)
        if response is None:
            return JSONResponse({"status": "ok"})

        sessions.publish(session_id, response)
        return JSONResponse(response)

    return app


def _rpc_result(rpc_id: Any, result: Dict[str, Any]) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": rpc_id, "result": result}


def _rpc_error(rpc_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": rpc_id, "error": error}


def call_tool(name: str, arguments: Dict[str, Any]) -> str:
    """Validate arguments, run the named tool and return its output as JSON text."""
    if name not in _TOOL_HANDLERS:
        raise ValueError(f"Unknown tool: {name}. Available: {list(MCP_TOOL_NAMES)}")
    model, handler = _TOOL_HANDLERS[name]
    result = handler(model.model_validate(arguments))
    return json.dumps(result.model_dump(mode="json"), ensure_ascii=False)


def _dispatch(method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    if method == "initialize":
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": "mcp-doc-metadata", "version": __version__},
        }
    if method == "ping":
        return {}
    if method == "tools/list":
        return {"tools": MCP_TOOLS}

    # tools/call
    name = params.get("name")
    arguments = params.get("arguments") or {}
    if not isinstance(name, str) or not name.strip():
        raise ValueError("tools/call missing params.name")
    if not isinstance(arguments, dict):
        raise ValueError("tools/call params.arguments must be an object")
    return {"content": [{"type": "text", "text": call_tool(name, arguments)}]}


_METHODS = ("initialize", "ping", "tools/list", "tools/call")


def handle_jsonrpc(msg: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Answer one JSON-RPC message. Notifications (no `id`) get None."""
    method = msg.get("method")
    rpc_id = msg.get("id")
    if rpc_id is None:
        return None

    if not isinstance(method, str) or not method.strip():
        return _rpc_error(rpc_id, -32600, "Invalid Request: missing method")
    if method not in _METHODS:
        return _rpc_error(rpc_id, -32601, f"Method not found: {method}")

    params = msg.get("params") or {}
    try:
        return _rpc_result(rpc_id, _dispatch(method, params))
    except ExtractionError as e:
        log.info("jsonrpc tool rejected input", method=method, error=e.code)
        return _rpc_error(rpc_id, -32603, str(e), {"error": e.code})
    except Exception as e:
        log.exception("jsonrpc handler error", method=method, error=str(e))
        return _rpc_error(rpc_id, -32603, str(e))


app = create_app()
