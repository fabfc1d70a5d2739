"""Tool manifest aggregation for the chat tool catalog.

This package provides:
- A static catalog of built-in tools
- Concurrent discovery of tools from per-tenant MCP provider servers
- Authentication readiness and toolkit resolution for each tool
- A cached, tenant-aware manifest served over FastAPI
"""

__version__ = "0.1.0"
