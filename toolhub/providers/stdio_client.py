"""MCP stdio channel (newline-delimited JSON-RPC over a subprocess).

Supports what manifest discovery needs:
- initialize + notifications/initialized
- tools/list (with cursor pagination)
- tools/call
- ping
"""

from __future__ import annotations

import json
import logging
import queue
import subprocess
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any

from toolhub.exceptions import ProviderProtocolError, ProviderTimeoutError, ProviderUnreachableError

logger = logging.getLogger(__name__)

LATEST_PROTOCOL_VERSION = "2025-06-18"
CLIENT_INFO = {"name": "toolhub", "version": "0.1.0"}
_MAX_TOOL_PAGES = 100


@dataclass
class StdioServerSpec:
    command: str
    args: list[str]
    cwd: str | None = None
    env: dict[str, str] | None = None


class McpStdioClient:
    def __init__(self, server_name: str, spec: StdioServerSpec, *, timeout_s: float = 20.0) -> None:
        self.server_name = server_name
        self._spec = spec
        self._timeout_s = float(timeout_s)
        self._proc: subprocess.Popen[str] | None = None
        self._stop = threading.Event()
        self._messages: "queue.Queue[dict[str, Any]]" = queue.Queue()
        self._stderr_tail: deque[str] = deque(maxlen=50)
        self._id = 0

    def __enter__(self) -> "McpStdioClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def stderr_tail(self) -> list[str]:
        return list(self._stderr_tail)

    def start(self) -> None:
        if self._proc is not None:
            return

        cmd = [self._spec.command, *self._spec.args]
        logger.debug("Starting provider %s: %s", self.server_name, cmd)
        try:
            self._proc = subprocess.Popen(
                cmd,
                cwd=self._spec.cwd,
                env=self._spec.env,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                bufsize=1,  # line buffered
            )
        except OSError as exc:
            raise ProviderUnreachableError(self.server_name, f"failed to start {cmd[0]!r}: {exc}") from exc

        threading.Thread(target=self._read_stdout, daemon=True).start()
        threading.Thread(target=self._read_stderr, daemon=True).start()

    def close(self) -> None:
        self._stop.set()
        proc = self._proc
        if proc is None:
            return
        self._proc = None

        if proc.poll() is not None:
            return
        proc.terminate()
        try:
            proc.wait(timeout=3.0)
        except subprocess.TimeoutExpired:
            proc.kill()

    def _read_stdout(self) -> None:
        proc = self._proc
        if proc is None or proc.stdout is None:
            return
        while not self._stop.is_set():
            line = proc.stdout.readline()
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                msg = json.loads(line)
            except ValueError:
                logger.debug("%s: unparseable stdout line: %r", self.server_name, line)
                continue
            if isinstance(msg, dict):
                self._messages.put(msg)

    def _read_stderr(self) -> None:
        proc = self._proc
        if proc is None or proc.stderr is None:
            return
        while not self._stop.is_set():
            line = proc.stderr.readline()
            if not line:
                break
            txt = line.rstrip("\r\n")
            if txt:
                self._stderr_tail.append(txt)
                logger.debug("%s(stderr): %s", self.server_name, txt)

    def _send(self, message: dict[str, Any]) -> None:
        if self._proc is None or self._proc.stdin is None:
            raise ProviderUnreachableError(self.server_name, "process not started")
        payload = json.dumps(message, default=str) + "\n"
        try:
            self._proc.stdin.write(payload)
            self._proc.stdin.flush()
        except OSError as exc:
            raise ProviderUnreachableError(self.server_name, f"write failed: {exc}") from exc

    def _next_id(self) -> int:
        self._id += 1
        return self._id

    def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout_s: float | None = None,
    ) -> dict[str, Any]:
        req_id = self._next_id()
        msg: dict[str, Any] = {"jsonrpc": "2.0", "id": req_id, "method": method}
        if params is not None:
            msg["params"] = params
        self._send(msg)
        return self._wait_for_response(req_id, timeout_s=timeout_s)

    def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        msg: dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            msg["params"] = params
        self._send(msg)

    def _wait_for_response(self, req_id: int, *, timeout_s: float | None) -> dict[str, Any]:
        budget = timeout_s if timeout_s is not None else self._timeout_s
        deadline = time.monotonic() + budget

        while time.monotonic() < deadline:
            try:
                msg = self._messages.get(timeout=0.1)
            except queue.Empty:
                if self._proc is not None and self._proc.poll() is not None and self._messages.empty():
                    raise ProviderUnreachableError(
                        self.server_name, f"process exited with code {self._proc.returncode}"
                    )
                continue

            # Ignore notifications and stale responses
            if msg.get("id") != req_id:
                continue

            if msg.get("error"):
                raise ProviderProtocolError(self.server_name, f"request {req_id} failed: {msg['error']}")

            result = msg.get("result")
            if result is None:
                return {}
            if not isinstance(result, dict):
                raise ProviderProtocolError(self.server_name, f"request {req_id}: non-object result")
            return result

        stderr = "\n".join(self.stderr_tail[-10:])
        if stderr:
            logger.debug("%s stderr tail before timeout:\n%s", self.server_name, stderr)
        raise ProviderTimeoutError(self.server_name, budget)

    # ---------------------------------------------------------------------
    # MCP primitives
    # ---------------------------------------------------------------------

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
        return self.request("ping", None)

    def list_tools(self) -> list[dict[str, Any]]:
        return collect_tool_pages(self.server_name, self.request)

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        return self.request("tools/call", {"name": name, "arguments": arguments or {}})


def collect_tool_pages(server_name: str, request) -> list[dict[str, Any]]:
    """Follow ``nextCursor`` through ``tools/list`` pages."""
    tools: list[dict[str, Any]] = []
    cursor: str | None = None
    for _ in range(_MAX_TOOL_PAGES):
        result = request("tools/list", {"cursor": cursor} if cursor else None)
        page = result.get("tools")
        if page is None:
            page = []
        if not isinstance(page, list):
            raise ProviderProtocolError(server_name, "tools/list returned a non-list 'tools'")
        tools.extend(page)
        cursor = result.get("nextCursor")
        if not cursor:
            return tools
    raise ProviderProtocolError(server_name, f"tools/list exceeded {_MAX_TOOL_PAGES} pages")
