"""Swap engine endpoints: perform, list, reverse, history."""

from fastapi import APIRouter, Depends, HTTPException

from threadshift.plugin import ThreadshiftCore

from .deps import get_core
from .models import PerformSwap

router = APIRouter()


@router.post("/swaps", status_code=201)
async def perform_swap(body: PerformSwap, core: ThreadshiftCore = Depends(get_core)):
    """Swap the zones a garment covers from source to target.

    Returns the swap id and both characters after the swap.
    """
    swap_id = core.engine.perform_swap(body.source, body.target, body.garment_ref)
    if not swap_id:
        raise HTTPException(422, f"Swap could not be performed for garment '{body.garment_ref}'")
    return {
        "swap_id": swap_id,
        "source": body.source.model_dump(),
        "target": body.target.model_dump(),
    }


@router.get("/swaps")
async def list_active_swaps(core: ThreadshiftCore = Depends(get_core)):
    """List swaps that have not been reversed."""
    return [r.model_dump() for r in core.engine.get_active_swaps()]


@router.get("/swaps/history")
async def swap_history(core: ThreadshiftCore = Depends(get_core)):
    """Full swap history, oldest first."""
    return [r.model_dump() for r in core.engine.get_swap_history()]


@router.delete("/swaps/history")
async def clear_history(core: ThreadshiftCore = Depends(get_core)):
    """Empty the swap history. Active swaps stay reversible."""
    core.engine.clear_history()
    return {"ok": True}


@router.delete("/swaps/{swap_id}")
async def reverse_swap(swap_id: str, core: ThreadshiftCore = Depends(get_core)):
    """Reverse an active swap.

    Returns both characters with their pre-swap zones restored.
    """
    restored = core.engine.restore_swap(swap_id)
    if restored is None:
        raise HTTPException(404, "Swap not found")
    source, target = restored
    return {
        "swap_id": swap_id,
        "source": source.model_dump(),
        "target": target.model_dump(),
    }
