"""Tool-provider (MCP) servers: channels, discovery and tenant configuration storage."""
