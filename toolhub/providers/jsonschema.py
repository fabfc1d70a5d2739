"""Limited JSON Schema -> Pydantic model conversion for provider tool inputs."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, create_model

_PRIMITIVES: dict[str, type] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "object": dict,
}


def _schema_to_type(schema: dict[str, Any]) -> Any:
    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        values = tuple(v for v in enum if isinstance(v, (str, int, float, bool)))
        if values:
            return Literal[values]  # type: ignore[valid-type]

    t = schema.get("type")
    # ["string", "null"] style unions collapse to the first non-null type
    if isinstance(t, list):
        t = next((x for x in t if x != "null"), None)

    if t == "array":
        items = schema.get("items")
        item_t = _schema_to_type(items) if isinstance(items, dict) else Any
        return list[item_t]  # type: ignore[valid-type]

    if isinstance(t, str):
        return _PRIMITIVES.get(t, Any)
    return Any


def jsonschema_to_pydantic_model(model_name: str, schema: dict[str, Any] | None) -> type[BaseModel]:
    """Convert a subset of JSON schema into a pydantic model class.

    Supported:
    - type=object with properties + required
    - primitives: string, number, integer, boolean, object (as dict)
    - arrays, nested through ``items``
    - enum -> Literal
    """
    schema = schema or {}
    props = schema.get("properties") or {}
    required = set(schema.get("required") or [])

    fields: dict[str, Any] = {}
    if isinstance(props, dict):
        for name, prop_schema in props.items():
            if not isinstance(prop_schema, dict):
                continue
            py_type = _schema_to_type(prop_schema)
            desc = prop_schema.get("description", "")
            if name in required:
                fields[name] = (py_type, Field(..., description=desc))
            else:
                fields[name] = (py_type | None, Field(prop_schema.get("default"), description=desc))

    return create_model(model_name, __base__=BaseModel, **fields)  # type: ignore[call-overload]
