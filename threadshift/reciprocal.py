"""Reciprocal (two-way) swaps between two body maps, driven by worn garments.

reciprocal_swap(char_a, char_b, garments_worn):
  1. Reject non-dict body maps and non-list garment lists (SwapInputError).
  2. Validate both body maps (partial: absent zones are allowed, present
     ones must be well formed). Either failing → InvalidBodyMapError,
     nothing is touched.
  3. Union the zones of every garment, keep only recognized zones.
  4. Exchange those zones:
       engine attached   → per-zone engine.swap_zone; a failing zone is
                           reported and does not stop the others
       no engine         → fallback computed from snapshots of both inputs,
                           zones missing on either side skipped silently
  5. Return copies; the inputs are never mutated.

batch_reciprocal_swap runs many independent pairs and isolates failures.
preview_reciprocal_swap reports what a swap would do without doing it.
handle_reciprocal is the engine's bidirectional hook.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from threadshift import validator as body_validator
from threadshift.models import (
    BatchResult,
    Character,
    PreviewEntry,
    PreviewResult,
    ReciprocalResult,
    SwapRecord,
    ZoneSwapDetail,
)
from threadshift.zones import ZoneMapper

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


class SwapInputError(ValueError):
    """Raised for malformed arguments to a reciprocal swap."""


class InvalidBodyMapError(SwapInputError):
    """Raised when a body map fails validation before a swap."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ReciprocalSwapHandler:
    def __init__(self, validator: Any = None, engine: Any = None, zone_mapper: ZoneMapper | None = None) -> None:
        self.validator = validator
        self.engine = engine
        self.zone_mapper = zone_mapper or ZoneMapper()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _is_valid_zone(self, zone: str) -> bool:
        return body_validator.is_valid_zone(zone)

    def _check_body_maps(self, char_a: Any, char_b: Any) -> None:
        if not isinstance(char_a, dict):
            raise SwapInputError("Character A must be a valid object")
        if not isinstance(char_b, dict):
            raise SwapInputError("Character B must be a valid object")
        if self.validator is None:
            return

        errors: list[str] = []
        for label, body_map in (("A", char_a), ("B", char_b)):
            result = self.validator.validate(body_map, partial=True)
            if not result.valid:
                errors.extend(f"character {label}: {e}" for e in result.errors or [])
        if errors:
            raise InvalidBodyMapError("Invalid body map(s)", errors)

    def resolve_zones(self, garments_worn: list[Any]) -> list[str]:
        """Zones implied by the garments, limited to recognized zones."""
        zones = self.zone_mapper.zones_for_garments(garments_worn)
        return [zone for zone in zones if self._is_valid_zone(zone)]

    # ------------------------------------------------------------------
    # Reciprocal swap
    # ------------------------------------------------------------------

    def reciprocal_swap(
        self, char_a: dict[str, Any], char_b: dict[str, Any], garments_worn: list[Any] | None = None
    ) -> ReciprocalResult:
        if garments_worn is None:
            garments_worn = []
        if not isinstance(garments_worn, list):
            raise SwapInputError("Garments worn must be a list")
        self._check_body_maps(char_a, char_b)

        zones = self.resolve_zones(garments_worn)
        if not zones:
            return ReciprocalResult(
                success=True,
                updated_a=copy.deepcopy(char_a),
                updated_b=copy.deepcopy(char_b),
                message="No valid zones to swap",
            )

        if self.engine is not None:
            return self._swap_with_engine(char_a, char_b, zones)
        return self._swap_fallback(char_a, char_b, zones)

    def _swap_with_engine(
        self, char_a: dict[str, Any], char_b: dict[str, Any], zones: list[str]
    ) -> ReciprocalResult:
        current_a = copy.deepcopy(char_a)
        current_b = copy.deepcopy(char_b)
        details: list[ZoneSwapDetail] = []
        errors: list[ZoneSwapDetail] = []

        for zone in zones:
            result = self.engine.swap_zone(zone, current_a, current_b)
            if result.success:
                current_a, current_b = result.body_a, result.body_b
                details.append(ZoneSwapDetail(zone=zone, success=True))
            else:
                errors.append(ZoneSwapDetail(zone=zone, success=False, error=result.error))

        swapped = [d.zone for d in details]
        if errors:
            message = f"Completed with {len(errors)} errors out of {len(zones)} zones"
        else:
            message = f"Successfully swapped {len(swapped)} zones"
        logger.debug("reciprocal swap via engine swapped=%s failed=%s", swapped, [e.zone for e in errors])

        return ReciprocalResult(
            success=not errors,
            updated_a=current_a,
            updated_b=current_b,
            zones_swapped=swapped,
            zones_skipped=[e.zone for e in errors],
            swap_details=details,
            errors=errors or None,
            message=message,
        )

    def _swap_fallback(
        self, char_a: dict[str, Any], char_b: dict[str, Any], zones: list[str]
    ) -> ReciprocalResult:
        swapped_a = copy.deepcopy(char_a)
        swapped_b = copy.deepcopy(char_b)
        swapped: list[str] = []
        skipped: list[str] = []

        for zone in zones:
            # Read from the untouched inputs so every zone sees pre-swap data
            if zone in char_a and zone in char_b:
                swapped_a[zone] = copy.deepcopy(char_b[zone])
                swapped_b[zone] = copy.deepcopy(char_a[zone])
                swapped.append(zone)
            else:
                skipped.append(zone)

        logger.debug("reciprocal swap fallback swapped=%s skipped=%s", swapped, skipped)
        return ReciprocalResult(
            success=True,
            updated_a=swapped_a,
            updated_b=swapped_b,
            zones_swapped=swapped,
            zones_skipped=skipped,
            swap_details=[ZoneSwapDetail(zone=z, success=True) for z in swapped],
            message=f"Successfully swapped {len(swapped)} zones using fallback method",
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def batch_reciprocal_swap(self, pairs: list[Any]) -> list[BatchResult]:
        """Swap several independent pairs; one pair failing leaves the rest alone.

        Each pair is a dict with char_a, char_b and optional garments_worn.
        """
        if not isinstance(pairs, list):
            raise SwapInputError("Character pairs must be a list")

        results: list[BatchResult] = []
        for index, pair in enumerate(pairs):
            char_a = pair.get("char_a") if isinstance(pair, dict) else None
            char_b = pair.get("char_b") if isinstance(pair, dict) else None
            try:
                if not isinstance(pair, dict):
                    raise SwapInputError(f"Pair {index} must be an object")
                if not char_a or not char_b:
                    raise SwapInputError(f"Pair {index} must have char_a and char_b")
                result = self.reciprocal_swap(char_a, char_b, pair.get("garments_worn") or [])
                results.append(BatchResult(pair_index=index, **result.model_dump()))
            except SwapInputError as e:
                logger.warning("batch pair %d failed: %s", index, e)
                results.append(BatchResult(
                    pair_index=index,
                    success=False,
                    error=str(e),
                    updated_a=char_a if isinstance(char_a, dict) else {},
                    updated_b=char_b if isinstance(char_b, dict) else {},
                ))
        return results

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    def preview_reciprocal_swap(
        self, char_a: dict[str, Any], char_b: dict[str, Any], garments_worn: list[Any] | None = None
    ) -> PreviewResult:
        if garments_worn is None:
            garments_worn = []
        try:
            if not isinstance(garments_worn, list):
                raise SwapInputError("Garments worn must be a list")
            self._check_body_maps(char_a, char_b)
        except SwapInputError as e:
            return PreviewResult(success=False, error=str(e))

        zones = self.resolve_zones(garments_worn)
        preview: list[PreviewEntry] = []
        for zone in zones:
            in_a, in_b = zone in char_a, zone in char_b
            if in_a and in_b:
                preview.append(PreviewEntry(
                    zone=zone,
                    char_a_will_receive=_descriptor(char_b[zone], "Unknown"),
                    char_b_will_receive=_descriptor(char_a[zone], "Unknown"),
                    can_swap=True,
                ))
            elif in_a or in_b:
                missing = "Nothing (zone missing)"
                preview.append(PreviewEntry(
                    zone=zone,
                    char_a_will_receive=_descriptor(char_b.get(zone), missing),
                    char_b_will_receive=_descriptor(char_a.get(zone), missing),
                    can_swap=False,
                    warning="One character is missing this zone",
                ))

        return PreviewResult(
            success=True,
            total_zones=len(zones),
            swappable_zones=sum(1 for p in preview if p.can_swap),
            preview=preview,
            garments=list(garments_worn),
        )

    # ------------------------------------------------------------------
    # Engine hook
    # ------------------------------------------------------------------

    def handle_reciprocal(
        self, record: SwapRecord, source: Character, target: Character, previous: dict[str, Any]
    ) -> bool:
        """Mirror direction of an engine swap: source receives target's old zones.

        ``previous`` holds the target's zone data from before the swap.
        """
        received = []
        for zone in record.zones:
            if zone in previous:
                source.body_map[zone] = copy.deepcopy(previous[zone])
                received.append(zone)
        logger.debug("reciprocal step for %s gave %s zones %s", record.id, source.id, received)
        return True

    def get_status(self) -> dict[str, Any]:
        return {
            "version": VERSION,
            "engine": self.engine is not None,
            "validator": self.validator is not None,
        }


def _descriptor(zone_data: Any, default: str) -> str:
    if isinstance(zone_data, dict):
        value = zone_data.get("descriptor")
        if isinstance(value, str) and value:
            return value
        # genitals: first sub-record's descriptor
        for sub in zone_data.values():
            if isinstance(sub, dict) and isinstance(sub.get("descriptor"), str):
                return sub["descriptor"]
    return default
