"""Shared test fixtures for toolhub."""

from __future__ import annotations

import copy
import json
import time
from typing import Any

import pytest

from toolhub.exceptions import ProviderProtocolError, ProviderUnreachableError
from toolhub.models import ProviderConfig, ToolDescriptor


class FakeChannel:
    """In-process stand-in for a provider channel."""

    def __init__(
        self,
        server_name: str,
        tools: list[dict[str, Any]],
        *,
        delay_s: float = 0.0,
        error: Exception | None = None,
        calls: list[tuple[str, dict[str, Any]]] | None = None,
    ) -> None:
        self.server_name = server_name
        self._tools = tools
        self._delay_s = delay_s
        self._error = error
        self.calls = calls if calls is not None else []
        self.closed = False

    def __enter__(self) -> "FakeChannel":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.closed = True

    def initialize(self) -> dict[str, Any]:
        return {"protocolVersion": "2025-06-18", "capabilities": {"tools": {}}}

    def list_tools(self) -> list[dict[str, Any]]:
        if self._delay_s:
            time.sleep(self._delay_s)
        if self._error is not None:
            raise self._error
        return copy.deepcopy(self._tools)

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        self.calls.append((name, dict(arguments or {})))
        text = f"{name}:{json.dumps(arguments or {}, sort_keys=True)}"
        return {"content": [{"type": "text", "text": text}]}


class FakeChannelFactory:
    """Channel factory keyed by server name; unknown servers are unreachable."""

    def __init__(self) -> None:
        self._servers: dict[str, dict[str, Any]] = {}
        self.opened: list[str] = []
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def add(self, server_name: str, *tool_names: str, delay_s: float = 0.0, error: Exception | None = None) -> None:
        tools = [
            {
                "name": name,
                "description": f"{name} on {server_name}",
                "inputSchema": {
                    "type": "object",
                    "properties": {"query": {"type": "string"}},
                    "required": ["query"],
                },
            }
            for name in tool_names
        ]
        self.add_raw(server_name, tools, delay_s=delay_s, error=error)

    def add_raw(
        self,
        server_name: str,
        tools: list[Any],
        *,
        delay_s: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self._servers[server_name] = {"tools": tools, "delay_s": delay_s, "error": error}

    def fail(self, server_name: str, detail: str = "bad payload") -> None:
        self.add_raw(server_name, [], error=ProviderProtocolError(server_name, detail))

    def __call__(self, config: ProviderConfig) -> FakeChannel:
        self.opened.append(config.server_name)
        server = self._servers.get(config.server_name)
        if server is None:
            raise ProviderUnreachableError(config.server_name, "connection refused")
        return FakeChannel(
            config.server_name,
            server["tools"],
            delay_s=server["delay_s"],
            error=server["error"],
            calls=self.calls,
        )


@pytest.fixture
def channel_factory() -> FakeChannelFactory:
    return FakeChannelFactory()


@pytest.fixture
def make_config():
    """Build a ProviderConfig with test-friendly defaults."""

    def _make(server_name: str, **kwargs: Any) -> ProviderConfig:
        kwargs.setdefault("transport", "http")
        kwargs.setdefault("url", f"http://{server_name}.invalid/mcp")
        kwargs.setdefault("timeout_ms", 2000)
        return ProviderConfig(server_name=server_name, **kwargs)

    return _make


@pytest.fixture
def make_tool():
    """Build a ToolDescriptor from a plugin key string."""

    def _make(key: str, **kwargs: Any) -> ToolDescriptor:
        kwargs.setdefault("name", key.split("::")[0])
        return ToolDescriptor(key=key, **kwargs)

    return _make


@pytest.fixture(autouse=True)
def clean_credentials(monkeypatch):
    """Keep real credentials out of auth resolution."""
    for var in (
        "GOOGLE_CSE_ID",
        "GOOGLE_SEARCH_API_KEY",
        "DALLE3_API_KEY",
        "DALLE_API_KEY",
        "WOLFRAM_APP_ID",
        "TAVILY_API_KEY",
    ):
        monkeypatch.delenv(var, raising=False)
