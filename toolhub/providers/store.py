"""PostgreSQL-backed tenant provider configuration.

Reads the ``provider_servers`` table, keyed by ``(tenant_id, server_name)``.
The table is owned by the admin service; this module never writes to it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import psycopg
from psycopg.rows import dict_row

from toolhub.models import ProviderConfig
from toolhub.tenants import configs_from_mcp_servers

logger = logging.getLogger(__name__)


def _json_value(value: Any, default: Any) -> Any:
    if value is None:
        return default
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value


def row_to_options(row: dict[str, Any]) -> dict[str, Any]:
    """Map a ``provider_servers`` row to mcpServers-style options."""
    options: dict[str, Any] = {
        "type": row.get("transport") or "sse",
        "url": row.get("url"),
        "headers": _json_value(row.get("headers"), {}),
        "command": row.get("command"),
        "args": _json_value(row.get("args"), []),
        "env": _json_value(row.get("env_overrides"), {}),
        "timeout": row.get("timeout_ms") or 60000,
        "iconPath": row.get("icon_path"),
        "chatMenu": bool(row.get("chat_menu", True)),
    }
    custom_vars = _json_value(row.get("custom_user_vars"), None)
    if custom_vars is not None:
        options["customUserVars"] = custom_vars
    return options


class PostgresProviderConfigSource:
    """Reads enabled provider servers per tenant, in ``position`` order."""

    def __init__(self, database_url: str) -> None:
        self._database_url = database_url

    def _get_conn(self) -> psycopg.Connection:
        return psycopg.connect(self._database_url, autocommit=True, row_factory=dict_row)

    def list_servers(self, tenant: str) -> list[dict[str, Any]]:
        with self._get_conn() as conn:
            rows = conn.execute(
                """SELECT * FROM provider_servers
                   WHERE tenant_id = %s AND enabled = TRUE
                   ORDER BY position ASC, server_name ASC""",
                (tenant,),
            ).fetchall()
        return [dict(r) for r in rows]

    async def get_provider_configs(self, tenant: str) -> list[ProviderConfig]:
        try:
            rows = await asyncio.to_thread(self.list_servers, tenant)
        except psycopg.Error as exc:
            logger.error("Failed to load provider servers for tenant %s: %s", tenant, exc)
            return []
        return configs_from_mcp_servers({r["server_name"]: row_to_options(r) for r in rows})
