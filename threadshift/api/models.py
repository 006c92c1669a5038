"""Pydantic request models for API endpoints."""

from typing import Any

from pydantic import BaseModel, Field

from threadshift.models import Character


class PerformSwap(BaseModel):
    source: Character
    target: Character
    garment_ref: str


class ReciprocalSwapBody(BaseModel):
    char_a: Any
    char_b: Any
    garments_worn: Any = Field(default_factory=list)


class BatchSwapBody(BaseModel):
    pairs: Any
