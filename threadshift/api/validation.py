"""Body map validation and garment lookup endpoints."""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from threadshift.plugin import ThreadshiftCore
from threadshift.validator import validate_body_map
from threadshift.zones import GarmentRefError, parse_garment_ref

from .deps import get_core

router = APIRouter()


@router.post("/validate")
async def validate(body: Any = Body(...)):
    """Validate a body map. Errors are listed only when there are any."""
    return validate_body_map(body).model_dump(exclude_none=True)


@router.get("/garments/{ref}")
async def garment_zones(ref: str, core: ThreadshiftCore = Depends(get_core)):
    """Resolve a garment reference and the zones it covers."""
    try:
        garment = parse_garment_ref(ref)
    except GarmentRefError as e:
        raise HTTPException(400, str(e))
    return {
        "garment": garment.model_dump(),
        "zones": core.engine.get_zones_for_garment(garment.type),
    }
