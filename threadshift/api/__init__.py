"""FastAPI endpoints under /api.

Endpoint groups: health/status, settings and zone mappings, body map
validation and garment lookup, engine swaps (perform, list, reverse,
history), and reciprocal swaps (single, batch, preview).

Every route reaches the plugin through the ThreadshiftCore stored on
app.state by create_app().
"""

from fastapi import APIRouter

from .reciprocal import router as reciprocal_router
from .settings import router as settings_router
from .swaps import router as swaps_router
from .validation import router as validation_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(validation_router)
router.include_router(swaps_router)
router.include_router(reciprocal_router)
