"""Tenant provider configuration sources.

A source answers "which tool-provider servers does this tenant have?". The
mapping format follows the ``mcpServers`` block of a chat app config::

    acme:
      github:
        type: stdio
        command: npx
        args: ["-y", "@modelcontextprotocol/server-github"]
        timeout: 60000
        customUserVars:
          GITHUB_TOKEN: {title: "GitHub token", description: "PAT with repo scope"}
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import yaml
from pydantic import ValidationError

from toolhub.models import ProviderConfig

logger = logging.getLogger(__name__)

# mcpServers-style keys that differ from ProviderConfig's wire names
_KEY_ALIASES = {"type": "transport", "timeout": "timeoutMs"}


class ProviderConfigSource(Protocol):
    async def get_provider_configs(self, tenant: str) -> list[ProviderConfig]: ...


def configs_from_mcp_servers(servers: Mapping[str, Any] | None) -> list[ProviderConfig]:
    """Convert an ``{serverName: options}`` mapping, dropping invalid servers."""
    configs: list[ProviderConfig] = []
    for server_name, options in (servers or {}).items():
        if not isinstance(options, Mapping):
            logger.warning("Ignoring provider %s: options must be a mapping", server_name)
            continue
        data = {_KEY_ALIASES.get(k, k): v for k, v in options.items()}
        data["serverName"] = str(server_name)
        try:
            configs.append(ProviderConfig.model_validate(data))
        except ValidationError as exc:
            logger.warning("Ignoring provider %s: %s", server_name, exc.errors()[0].get("msg"))
    return configs


class StaticProviderConfigSource:
    """Fixed per-tenant configuration, mostly for tests and single-tenant installs."""

    def __init__(self, configs: Mapping[str, list[ProviderConfig]] | None = None) -> None:
        self._configs = {t: list(c) for t, c in (configs or {}).items()}

    def set_configs(self, tenant: str, configs: list[ProviderConfig]) -> None:
        self._configs[tenant] = list(configs)

    async def get_provider_configs(self, tenant: str) -> list[ProviderConfig]:
        return list(self._configs.get(tenant, []))


class YamlProviderConfigSource:
    """Tenant -> mcpServers mapping read from a YAML file on every lookup."""

    def __init__(self, path: str) -> None:
        self._path = Path(path)

    def _read(self) -> dict[str, Any]:
        try:
            raw = yaml.safe_load(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning("Provider config file %s not found; no providers configured", self._path)
            return {}
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Cannot read provider config %s: %s", self._path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    async def get_provider_configs(self, tenant: str) -> list[ProviderConfig]:
        raw = await asyncio.to_thread(self._read)
        return configs_from_mcp_servers(raw.get(tenant))
