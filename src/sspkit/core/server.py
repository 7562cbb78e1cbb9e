"""JSON-RPC 2.0 adapter over stdio.

One request object per input line, one response object per output line.
Diagnostics go to stderr so stdout carries nothing but responses.
"""

from __future__ import annotations

import json
from typing import IO, Any, Optional

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ..errors import SspkitError
from .service import ComplianceService

console = Console(stderr=True)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
CORE_ERROR = -32000


def _error(request_id: Any, code: int, message: str, data: Optional[dict] = None) -> dict:
    error: dict = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def handle_request(service: ComplianceService, request: Any) -> dict:
    """Dispatch one decoded request object to the service."""
    if not isinstance(request, dict) or not isinstance(request.get("method"), str):
        return _error(None if not isinstance(request, dict) else request.get("id"),
                      INVALID_REQUEST, "Invalid Request")

    request_id = request.get("id")
    method = request["method"]
    params = request.get("params") or {}

    if method not in service.methods:
        return _error(request_id, METHOD_NOT_FOUND, f"Method not found: {method}")
    if not isinstance(params, dict):
        return _error(request_id, INVALID_PARAMS, "params must be an object")

    try:
        result = service.dispatch(method, params)
    except SspkitError as e:
        payload = e.to_dict()
        return _error(request_id, CORE_ERROR, payload["message"],
                      {"kind": payload["kind"], "context": payload["context"]})
    except (ValidationError, TypeError, ValueError) as e:
        return _error(request_id, INVALID_PARAMS, f"Invalid params: {e}")
    except Exception as e:
        console.print(f"[red]Internal error in {method}:[/red] {type(e).__name__}: {escape(str(e))}")
        return _error(request_id, INTERNAL_ERROR, f"Internal error: {type(e).__name__}")

    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def handle_line(service: ComplianceService, line: str) -> Optional[str]:
    """Handle one input line. Blank lines produce no response."""
    if not line.strip():
        return None
    try:
        request = json.loads(line)
    except json.JSONDecodeError as e:
        return json.dumps(_error(None, PARSE_ERROR, f"Parse error: {e.msg}"))
    return json.dumps(handle_request(service, request))


def serve(service: ComplianceService, stdin: IO[str], stdout: IO[str]) -> int:
    """Answer requests until EOF. Returns the number of requests handled."""
    console.print("[dim]sspkit JSON-RPC server ready on stdio[/dim]")
    handled = 0
    for line in stdin:
        response = handle_line(service, line)
        if response is None:
            continue
        stdout.write(response + "\n")
        stdout.flush()
        handled += 1
    console.print(f"[dim]sspkit server stopped after {handled} requests[/dim]")
    return handled
