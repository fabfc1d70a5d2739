"""Pydantic models for tool descriptors and provider configuration.

Field names are snake_case in Python and camelCase on the wire
(``pluginKey``, ``authConfig``, ``customUserVars``...).
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, PlainValidator, field_validator, model_validator
from pydantic.alias_generators import to_camel

from toolhub.naming import PROVIDER_DELIMITER, ToolKey

AUTH_FIELD_SEPARATOR = "||"


def _coerce_key(value: Any) -> ToolKey:
    if isinstance(value, ToolKey):
        return value
    if isinstance(value, str):
        return ToolKey.parse(value)
    raise ValueError(f"pluginKey must be a string, got {type(value).__name__}")


ToolKeyField = Annotated[
    ToolKey,
    PlainValidator(_coerce_key),
    PlainSerializer(str, return_type=str),
]


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ManifestKind(str, Enum):
    """Which manifest a cache entry / request refers to."""

    PLUGINS = "plugins"  # every discovered descriptor
    TOOLS = "tools"  # only descriptors with an executor or a populated toolkit


class AuthRequirement(WireModel):
    """One credential requirement; ``auth_field`` may list ``||`` alternatives."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    auth_field: str = Field(min_length=1)
    label: str | None = None
    description: str | None = None

    @property
    def alternatives(self) -> list[str]:
        return [f.strip() for f in self.auth_field.split(AUTH_FIELD_SEPARATOR) if f.strip()]


class ToolDescriptor(WireModel):
    """A discoverable, invocable capability (or a toolkit grouping)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    key: ToolKeyField = Field(alias="pluginKey")
    name: str = Field(min_length=1)
    description: str = ""
    icon: str | None = None
    auth_config: tuple[AuthRequirement, ...] = ()
    authenticated: bool = False
    toolkit: bool = False
    chat_menu: bool = True
    input_schema: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        """Display name falls back to the key's base name."""
        if not isinstance(data, dict) or data.get("name"):
            return data
        raw_key = data.get("pluginKey", data.get("key"))
        if isinstance(raw_key, str):
            try:
                raw_key = ToolKey.parse(raw_key)
            except ValueError:
                return data
        if isinstance(raw_key, ToolKey):
            return {**data, "name": raw_key.base_name}
        return data

    @property
    def plugin_key(self) -> str:
        return str(self.key)

    @property
    def server_name(self) -> str | None:
        return self.key.server_name

    @property
    def is_provider_tool(self) -> bool:
        return self.key.is_provider

    def to_wire(self) -> dict[str, Any]:
        """Serialize for HTTP responses."""
        return self.model_dump(mode="json", by_alias=True, exclude={"input_schema"}, exclude_none=True)

    def to_cache(self) -> dict[str, Any]:
        """Serialize for cache payloads (keeps the input schema)."""
        return self.model_dump(mode="json", by_alias=True)


class CustomUserVar(WireModel):
    title: str = ""
    description: str = ""


class ProviderConfig(WireModel):
    """Tenant-scoped configuration for one tool-provider server."""

    server_name: str = Field(min_length=1)
    transport: Literal["stdio", "http", "sse"] = "stdio"
    url: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)

    # stdio transport
    command: str | None = None
    args: list[str] = Field(default_factory=list)
    cwd: str | None = None
    env_allow: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)

    timeout_ms: int = Field(default=30_000, gt=0)
    custom_user_vars: dict[str, CustomUserVar] | None = None
    icon_path: str | None = None
    chat_menu: bool = True

    @field_validator("server_name")
    @classmethod
    def _no_delimiter(cls, value: str) -> str:
        if PROVIDER_DELIMITER in value:
            raise ValueError(f"server name must not contain {PROVIDER_DELIMITER!r}")
        return value

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0


def dump_manifest(tools: list[ToolDescriptor]) -> list[dict[str, Any]]:
    return [t.to_cache() for t in tools]


def load_manifest(payload: Any) -> list[ToolDescriptor] | None:
    """Parse a cached manifest payload; ``None`` when it is not a list."""
    if not isinstance(payload, list):
        return None
    return [ToolDescriptor.model_validate(item) for item in payload]
