"""Health, status, settings and zone mapping endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from threadshift.plugin import ThreadshiftCore

from .deps import get_core

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Health check, with the engine banner once the core is up."""
    core: ThreadshiftCore = request.app.state.core
    return {
        "status": "ok",
        "engine": core.engine.test() if core.engine is not None else None,
    }


@router.get("/status")
async def status(request: Request):
    """Plugin status, including the engine snapshot once initialized."""
    core: ThreadshiftCore = request.app.state.core
    result = core.get_status()
    if core.engine is not None:
        result["engine"] = core.engine.get_status()
    return result


@router.get("/settings")
async def get_settings(core: ThreadshiftCore = Depends(get_core)):
    """Get plugin settings (defaults merged with stored values)."""
    return core.get_settings()


@router.patch("/settings")
async def update_settings(body: dict, core: ThreadshiftCore = Depends(get_core)):
    """Update plugin settings (partial merge, unknown keys ignored)."""
    try:
        return core.update_settings(body)
    except ValidationError as e:
        raise HTTPException(422, str(e))


@router.get("/zone-mappings")
async def get_zone_mappings(core: ThreadshiftCore = Depends(get_core)):
    """Custom garment type → zones overrides."""
    return core.get_zone_mappings()


@router.put("/zone-mappings")
async def set_zone_mappings(body: dict[str, list[str]], core: ThreadshiftCore = Depends(get_core)):
    """Replace the custom zone mappings wholesale."""
    return core.set_zone_mappings(body)
