"""Stdio tool-provider used by the stdio channel tests.

Serves two tools across two ``tools/list`` pages (``echo`` then ``reverse``).

Modes (first CLI argument):
- ``serve`` (default): answer requests
- ``hang``: read requests but never answer
- ``exit``: exit immediately with status 3
"""

from __future__ import annotations

import json
import sys
from typing import Any

_TOOLS = [
    {
        "name": "echo",
        "description": "Echo back the provided text payload.",
        "inputSchema": {
            "type": "object",
            "properties": {"text": {"type": "string", "description": "Text to echo"}},
            "required": ["text"],
        },
    },
    {
        "name": "reverse",
        "description": "Reverse the provided text.",
        "inputSchema": {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        },
    },
]


def _write(obj: dict[str, Any]) -> None:
    sys.stdout.write(json.dumps(obj) + "\n")
    sys.stdout.flush()


def _result(req_id: Any, result: dict[str, Any]) -> None:
    _write({"jsonrpc": "2.0", "id": req_id, "result": result})


def _error(req_id: Any, code: int, message: str) -> None:
    _write({"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}})


def _call(name: str, arguments: dict[str, Any]) -> str | None:
    text = str(arguments.get("text", ""))
    if name == "echo":
        return f"echo:{text}"
    if name == "reverse":
        return text[::-1]
    return None


def _handle(method: str, req_id: Any, params: dict[str, Any]) -> None:
    if method == "initialize":
        _result(
            req_id,
            {
                "protocolVersion": params.get("protocolVersion") or "2025-06-18",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "test-echo", "version": "0.0.0"},
            },
        )
    elif method == "ping":
        _result(req_id, {})
    elif method == "tools/list":
        if params.get("cursor") == "page-2":
            _result(req_id, {"tools": _TOOLS[1:]})
        else:
            _result(req_id, {"tools": _TOOLS[:1], "nextCursor": "page-2"})
    elif method == "tools/call":
        arguments = params.get("arguments") or {}
        text = _call(str(params.get("name")), arguments if isinstance(arguments, dict) else {})
        if text is None:
            _error(req_id, -32602, f"Unknown tool: {params.get('name')}")
        else:
            _result(req_id, {"content": [{"type": "text", "text": text}]})
    else:
        _error(req_id, -32601, f"Unknown method: {method}")


def main(argv: list[str]) -> int:
    mode = argv[0] if argv else "serve"
    if mode == "exit":
        print("provider refusing to start", file=sys.stderr)
        return 3

    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        try:
            msg = json.loads(line)
        except ValueError:
            continue
        # Notifications carry no id
        if not isinstance(msg, dict) or msg.get("id") is None:
            continue
        if mode == "hang":
            continue
        _handle(str(msg.get("method")), msg["id"], msg.get("params") or {})
    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
