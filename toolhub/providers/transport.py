"""Channel construction for configured tool-provider servers."""

from __future__ import annotations

import json
import os
from typing import Any, Protocol

from toolhub.exceptions import ProviderUnreachableError
from toolhub.models import ProviderConfig
from toolhub.providers.http_client import McpHttpClient
from toolhub.providers.stdio_client import McpStdioClient, StdioServerSpec


class ProviderChannel(Protocol):
    """Request/response channel to one provider server."""

    server_name: str

    def __enter__(self) -> "ProviderChannel": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def close(self) -> None: ...

    def initialize(self) -> dict[str, Any]: ...

    def list_tools(self) -> list[dict[str, Any]]: ...

    def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]: ...


_ESSENTIAL_ENV_KEYS = {
    "PATH",
    "HOME",
    "LANG",
    "TMPDIR",
    # Windows essentials for subprocesses
    "SystemRoot",
    "ComSpec",
    "PATHEXT",
    "Path",
    "TEMP",
    "TMP",
    "USERPROFILE",
    "APPDATA",
    "LOCALAPPDATA",
}


def build_stdio_env(env_allow: list[str], env_overrides: dict[str, str]) -> dict[str, str]:
    # Providers do NOT inherit the full process environment: only OS
    # essentials, allowlisted variables and explicit overrides.
    # os.environ is read directly (not copied) so Windows keeps its
    # case-insensitive lookups.
    base: dict[str, str] = {}
    for k in [*_ESSENTIAL_ENV_KEYS, *env_allow]:
        v = os.environ.get(k)
        if v is not None:
            base[str(k)] = v
    for k, v in env_overrides.items():
        if v is None:
            continue
        base[str(k)] = str(v)
    return base


def open_channel(config: ProviderConfig) -> ProviderChannel:
    """Create an unopened channel for *config*; use it as a context manager."""
    if config.transport == "stdio":
        if not config.command:
            raise ProviderUnreachableError(config.server_name, "stdio provider has no command")
        spec = StdioServerSpec(
            command=config.command,
            args=list(config.args),
            cwd=config.cwd,
            env=build_stdio_env(config.env_allow, config.env),
        )
        return McpStdioClient(config.server_name, spec, timeout_s=config.timeout_s)

    if not config.url:
        raise ProviderUnreachableError(config.server_name, f"{config.transport} provider has no url")
    return McpHttpClient(
        config.server_name,
        config.url,
        headers=config.headers,
        timeout_s=config.timeout_s,
    )


def content_to_text(result: dict[str, Any]) -> str:
    """Flatten a ``tools/call`` result into text for the agent."""
    content = result.get("content") or []
    if isinstance(content, list):
        texts = [
            str(block.get("text", ""))
            for block in content
            if isinstance(block, dict) and block.get("type") == "text"
        ]
        if any(texts):
            return "\n".join(t for t in texts if t)
    return json.dumps(result, default=str)
