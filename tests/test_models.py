from __future__ import annotations

import pytest
from pydantic import ValidationError

from toolhub.models import ProviderConfig, ToolDescriptor, dump_manifest, load_manifest
from toolhub.naming import ToolKey


class TestToolDescriptor:
    def test_wire_aliases(self):
        tool = ToolDescriptor.model_validate(
            {
                "pluginKey": "search::Foo",
                "name": "search",
                "authConfig": [{"authField": "A||B", "label": "Key"}],
                "chatMenu": False,
                "inputSchema": {"type": "object"},
            }
        )
        assert tool.key == ToolKey("search", "Foo")
        assert tool.server_name == "Foo"
        wire = tool.to_wire()
        assert wire == {
            "pluginKey": "search::Foo",
            "name": "search",
            "description": "",
            "authConfig": [{"authField": "A||B", "label": "Key"}],
            "authenticated": False,
            "toolkit": False,
            "chatMenu": False,
        }

    def test_cache_payload_keeps_schema(self):
        tool = ToolDescriptor(key="search::Foo", name="search", input_schema={"type": "object"})
        assert load_manifest(dump_manifest([tool])) == [tool]

    def test_frozen(self):
        tool = ToolDescriptor(key="calculator", name="Calculator")
        with pytest.raises(ValidationError):
            tool.name = "other"

    @pytest.mark.parametrize(
        "payload",
        [{"name": "x"}, {"pluginKey": ""}, {"pluginKey": "::srv"}, {"pluginKey": 3, "name": "x"}],
    )
    def test_invalid(self, payload):
        with pytest.raises(ValidationError):
            ToolDescriptor.model_validate(payload)

    def test_name_defaults_to_base_name(self):
        assert ToolDescriptor.model_validate({"pluginKey": "search::Foo"}).name == "search"
        assert ToolDescriptor(key=ToolKey("calculator")).name == "calculator"
        assert ToolDescriptor.model_validate({"pluginKey": "x", "name": "Shown"}).name == "Shown"

    def test_load_manifest_non_list(self):
        assert load_manifest(None) is None
        assert load_manifest({"tools": []}) is None


class TestProviderConfig:
    def test_defaults(self):
        config = ProviderConfig.model_validate({"serverName": "s"})
        assert config.transport == "stdio"
        assert config.timeout_s == 30.0
        assert config.custom_user_vars is None
        assert config.chat_menu is True

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            ProviderConfig(server_name="s", timeout_ms=0)

    def test_server_name_rejects_delimiter(self):
        with pytest.raises(ValidationError, match="must not contain"):
            ProviderConfig(server_name="a::b")
