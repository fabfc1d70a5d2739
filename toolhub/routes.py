"""FastAPI routes serving tool manifests."""

from __future__ import annotations

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse

from toolhub.manifest.enrichers import EnrichmentContext, enrich
from toolhub.models import ManifestKind

router = APIRouter(tags=["tools"])


def _tenant(request: Request, header_value: str | None) -> str:
    return (header_value or "").strip() or request.app.state.toolhub.settings.default_tenant


async def _serve_manifest(request: Request, kind: ManifestKind, tenant_header: str | None) -> JSONResponse:
    ctx = request.app.state.toolhub
    if ctx.catalog_error is not None:
        raise ctx.catalog_error

    tenant = _tenant(request, tenant_header)
    configs = await ctx.config_source.get_provider_configs(tenant)
    tools = await ctx.gateway.get_or_build(tenant, configs, kind)
    tools = enrich(tools, EnrichmentContext(tenant=tenant, configs=tuple(configs)), ctx.enrichers)
    return JSONResponse([t.to_wire() for t in tools])


@router.get("/plugins")
async def list_plugins(request: Request, x_tenant_id: str | None = Header(default=None)):
    """Every discovered tool, deduplicated and auth-annotated."""
    return await _serve_manifest(request, ManifestKind.PLUGINS, x_tenant_id)


@router.get("/tools")
async def list_tools(request: Request, x_tenant_id: str | None = Header(default=None)):
    """Only tools with an executor, plus toolkits that have members."""
    return await _serve_manifest(request, ManifestKind.TOOLS, x_tenant_id)


@router.get("/servers/{server_name}/tools")
async def list_server_tools(server_name: str, request: Request, x_tenant_id: str | None = Header(default=None)):
    ctx = request.app.state.toolhub
    tenant = _tenant(request, x_tenant_id)
    tools = await ctx.providers.get_server_tools(server_name, tenant=tenant)
    if tools is None:
        return JSONResponse({"error": "No cached tools for server", "tools": [], "count": 0}, status_code=404)
    return {"server_name": server_name, "tools": [t.to_wire() for t in tools], "count": len(tools)}


@router.get("/health")
async def health(request: Request):
    ctx = request.app.state.toolhub
    if ctx.catalog_error is not None:
        return JSONResponse({"status": "error", "error": str(ctx.catalog_error)}, status_code=503)
    return {"status": "ok", "builtin_tools": len(ctx.registry) if ctx.registry else 0}
