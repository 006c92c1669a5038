"""Reciprocal swap endpoints: single pair, batch, preview."""

from fastapi import APIRouter, Depends, HTTPException

from threadshift.plugin import ThreadshiftCore
from threadshift.reciprocal import InvalidBodyMapError, SwapInputError

from .deps import get_core
from .models import BatchSwapBody, ReciprocalSwapBody

router = APIRouter()


@router.post("/reciprocal")
async def reciprocal_swap(body: ReciprocalSwapBody, core: ThreadshiftCore = Depends(get_core)):
    """Swap garment-covered zones both ways between two body maps."""
    try:
        result = core.reciprocal_handler.reciprocal_swap(body.char_a, body.char_b, body.garments_worn)
    except InvalidBodyMapError as e:
        raise HTTPException(400, {"message": str(e), "errors": e.errors})
    except SwapInputError as e:
        raise HTTPException(400, str(e))
    return result.model_dump(exclude_none=True)


@router.post("/reciprocal/batch")
async def batch_reciprocal_swap(body: BatchSwapBody, core: ThreadshiftCore = Depends(get_core)):
    """Swap several pairs; each result carries its pair_index."""
    try:
        results = core.reciprocal_handler.batch_reciprocal_swap(body.pairs)
    except SwapInputError as e:
        raise HTTPException(400, str(e))
    return [r.model_dump(exclude_none=True) for r in results]


@router.post("/reciprocal/preview")
async def preview_reciprocal_swap(body: ReciprocalSwapBody, core: ThreadshiftCore = Depends(get_core)):
    """Describe what a reciprocal swap would do, without doing it."""
    result = core.reciprocal_handler.preview_reciprocal_swap(body.char_a, body.char_b, body.garments_worn)
    return result.model_dump(exclude_none=True)
