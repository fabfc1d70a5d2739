"""MCP channel over HTTP (JSON-RPC POSTs, JSON or event-stream replies)."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from toolhub.exceptions import ProviderProtocolError, ProviderTimeoutError, ProviderUnreachableError
from toolhub.providers.stdio_client import CLIENT_INFO, LATEST_PROTOCOL_VERSION, collect_tool_pages

logger = logging.getLogger(__name__)

_SESSION_HEADER = "Mcp-Session-Id"


def _parse_event_stream(text: str, req_id: int) -> dict[str, Any] | None:
    """Pick the JSON-RPC message with *req_id* out of an SSE body."""
    for line in text.splitlines():
        if not line.startswith("data:"):
            continue
        data = line[len("data:"):].strip()
        if not data:
            continue
        try:
            msg = json.loads(data)
        except ValueError:
            continue
        if isinstance(msg, dict) and msg.get("id") == req_id:
            return msg
    return None


class McpHttpClient:
    def __init__(
        self,
        server_name: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        timeout_s: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.server_name = server_name
        self._url = url
        self._timeout_s = float(timeout_s)
        self._client = httpx.Client(
            headers={
                "Accept": "application/json, text/event-stream",
                **(headers or {}),
            },
            timeout=self._timeout_s,
            transport=transport,
        )
        self._session_id: str | None = None
        self._id = 0

    def __enter__(self) -> "McpHttpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _post(self, message: dict[str, Any]) -> httpx.Response:
        headers = {_SESSION_HEADER: self._session_id} if self._session_id else {}
        try:
            resp = self._client.post(self._url, json=message, headers=headers)
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(self.server_name, self._timeout_s) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise ProviderUnreachableError(self.server_name, str(exc)) from exc
        if resp.status_code >= 400:
            raise ProviderProtocolError(self.server_name, f"HTTP {resp.status_code} for {message.get('method')}")
        session_id = resp.headers.get(_SESSION_HEADER)
        if session_id and session_id != self._session_id:
            logger.debug("%s: MCP session %s", self.server_name, session_id)
            self._session_id = session_id
        return resp

    def request(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._id += 1
        req_id = self._id
        msg: dict[str, Any] = {"jsonrpc": "2.0", "id": req_id, "method": method}
        if params is not None:
            msg["params"] = params
        resp = self._post(msg)

        if resp.headers.get("content-type", "").startswith("text/event-stream"):
            reply = _parse_event_stream(resp.text, req_id)
        else:
            try:
                reply = resp.json()
            except ValueError as exc:
                raise ProviderProtocolError(self.server_name, f"{method}: invalid JSON reply") from exc

        if not isinstance(reply, dict):
            raise ProviderProtocolError(self.server_name, f"{method}: no reply for request {req_id}")
        if reply.get("error"):
            raise ProviderProtocolError(self.server_name, f"{method} failed: {reply['error']}")
        result = reply.get("result") or {}
        if not isinstance(result, dict):
            raise ProviderProtocolError(self.server_name, f"{method}: non-object result")
        return result

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        msg: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            msg["params"] = params
        self._post(msg)

    def initialize(self) -> dict[str, Any]:
        result = self.request(
            "initialize",
            {
                "protocolVersion": LATEST_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": CLIENT_INFO,
            },
        )
        self.notify("notifications/initialized")
        return result

    def ping(self) -> dict[str, Any]:
        return self.request("ping")

    def list_tools(self) -> list[dict[str, Any]]:
        return collect_tool_pages(self.server_name, self.request)

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.request("tools/call", {"name": name, "arguments": arguments or {}})
