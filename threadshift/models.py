"""Core domain models.

The validator, swap engine and reciprocal orchestrator exchange these types.
Body maps themselves stay plain dicts (they are validated by
threadshift.validator, which reports every problem instead of stopping at
the first); everything around them is a Pydantic model.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

GarmentType = Literal[
    "bra",
    "panties",
    "dress",
    "pants",
    "shirt",
    "jacket",
    "gloves",
    "socks",
    "hat",
    "wetsuit",
    "unknown",
]

SwapStatus = Literal["active", "reversed"]


class Character(BaseModel):
    """A character taking part in a swap. The host owns the record."""

    id: str
    name: str = ""
    body_map: dict[str, Any] = Field(default_factory=dict)


class Garment(BaseModel):
    """A garment resolved from a reference like ``"5.0103"``."""

    id: str
    type: str  # one of GarmentType; unknown codes resolve to "unknown"
    owner: str
    type_group: str
    sequence: str


class SwapRecord(BaseModel):
    """One executed swap, kept for history and reversal."""

    id: str
    source: str
    target: str
    zones: list[str]
    garment: Garment
    timestamp: str
    status: SwapStatus = "active"
    reversed_at: str | None = None
    reciprocal: bool = False


class EngineSettings(BaseModel):
    bidirectional_swaps: bool = True
    auto_validation: bool = True
    history_limit: int = Field(default=100, ge=1)
    debug_mode: bool = False


class ValidationResult(BaseModel):
    """Outcome of a body map validation.

    ``errors`` is None on success so that ``model_dump(exclude_none=True)``
    yields ``{"valid": True}``.
    """

    valid: bool
    errors: list[str] | None = None


class ZoneSwapResult(BaseModel):
    """Result of exchanging a single zone between two body maps."""

    zone: str
    success: bool
    body_a: dict[str, Any] = Field(default_factory=dict)
    body_b: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None


class ZoneSwapDetail(BaseModel):
    zone: str
    success: bool
    error: str | None = None


class ReciprocalResult(BaseModel):
    """Result of a two-way swap between two body maps.

    The inputs are never mutated; ``updated_a``/``updated_b`` are copies.
    """

    success: bool
    updated_a: dict[str, Any]
    updated_b: dict[str, Any]
    zones_swapped: list[str] = Field(default_factory=list)
    zones_skipped: list[str] = Field(default_factory=list)
    swap_details: list[ZoneSwapDetail] = Field(default_factory=list)
    errors: list[ZoneSwapDetail] | None = None
    message: str = ""


class BatchResult(ReciprocalResult):
    pair_index: int
    error: str | None = None


class PreviewEntry(BaseModel):
    zone: str
    char_a_will_receive: str
    char_b_will_receive: str
    can_swap: bool
    warning: str | None = None


class PreviewResult(BaseModel):
    success: bool
    total_zones: int = 0
    swappable_zones: int = 0
    preview: list[PreviewEntry] = Field(default_factory=list)
    garments: list[Any] = Field(default_factory=list)
    error: str | None = None
