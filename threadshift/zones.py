"""Garment → zone lookup table and garment reference parsing.

Garment references look like ``"<characterId>.<typeCode><sequence>"``:

    "5.0103"  →  owner "char_5", type code "01" (panties), sequence "03"

Type codes (first two digits after the dot):
  01 panties   02 bra     03 pants   04 shirt   05 jacket
  06 gloves    07 socks   08 hat     09 dress
Any other code resolves to "unknown", which covers no zones.

Zone numbers give a compact, stable code for each zone name. The numbered
vocabulary is wider than the validator's required zones (it includes head,
hips and arms) because a garment may cover zones a body map is not required
to carry.
"""

from __future__ import annotations

import logging
from typing import Any

from threadshift.models import Garment

logger = logging.getLogger(__name__)

GARMENT_TYPE_CODES: dict[str, str] = {
    "01": "panties",
    "02": "bra",
    "03": "pants",
    "04": "shirt",
    "05": "jacket",
    "06": "gloves",
    "07": "socks",
    "08": "hat",
    "09": "dress",
}

DEFAULT_GARMENT_ZONES: dict[str, tuple[str, ...]] = {
    "bra": ("chest",),
    "panties": ("genitals",),
    "dress": ("chest", "waist", "hips"),
    "shirt": ("chest",),
    "pants": ("waist", "hips", "legs"),
    "jacket": ("chest", "waist"),
    "gloves": ("hands",),
    "socks": ("feet",),
    "hat": ("hair",),
    "wetsuit": ("chest", "waist", "hips", "legs", "hands", "feet"),
    "unknown": (),
}

ZONE_NUMBERS: dict[str, int] = {
    "head": 1,
    "hair": 2,
    "face": 3,
    "neck": 4,
    "chest": 5,
    "waist": 6,
    "hips": 7,
    "genitals": 8,
    "legs": 9,
    "feet": 10,
    "hands": 11,
    "arms": 12,
}

ZONE_NAMES: dict[int, str] = {number: name for name, number in ZONE_NUMBERS.items()}


class GarmentRefError(ValueError):
    """Raised when a garment reference cannot be parsed."""


def zones_for_garment_type(garment_type: Any) -> list[str]:
    """Return the zones a garment type covers, or [] for unknown types."""
    if not isinstance(garment_type, str):
        return []
    return list(DEFAULT_GARMENT_ZONES.get(garment_type, ()))


def zone_name_for_number(number: int) -> str | None:
    return ZONE_NAMES.get(number)


def zone_number_for_name(name: str) -> int | None:
    return ZONE_NUMBERS.get(name)


def parse_garment_ref(ref: Any) -> Garment:
    """Resolve a garment reference into a Garment.

    Raises GarmentRefError unless the reference is a string with exactly
    one dot separating the character id from the type index.
    """
    if not isinstance(ref, str):
        raise GarmentRefError(f"Garment reference must be a string, got {type(ref).__name__}")
    parts = ref.split(".")
    if len(parts) != 2:
        raise GarmentRefError(f"Invalid garment reference format: {ref!r}")

    char_id, type_index = parts
    type_group = type_index[:2]
    return Garment(
        id=ref,
        type=GARMENT_TYPE_CODES.get(type_group, "unknown"),
        owner=f"char_{char_id}",
        type_group=type_group,
        sequence=type_index[2:],
    )


def garment_type_of(garment: Any) -> str | None:
    """Best-effort garment type for a worn-garment entry.

    Accepts a type name ("bra"), a garment reference ("5.0201"), a Garment,
    or a dict with a "type" key. Returns None when nothing usable is found.
    """
    if isinstance(garment, Garment):
        return garment.type
    if isinstance(garment, dict):
        value = garment.get("type")
        return value if isinstance(value, str) else None
    if isinstance(garment, str):
        if "." in garment:
            try:
                return parse_garment_ref(garment).type
            except GarmentRefError:
                return None
        return garment
    return None


class ZoneMapper:
    """Zone lookup with runtime overrides.

    Custom mappings replace the previous custom table wholesale and take
    priority over the defaults for the types they name.
    """

    def __init__(self, custom_mappings: dict[str, list[str]] | None = None) -> None:
        self._custom: dict[str, list[str]] = {}
        if custom_mappings:
            self.set_custom_mappings(custom_mappings)

    def set_custom_mappings(self, mappings: dict[str, list[str]] | None) -> None:
        self._custom = {k: list(v) for k, v in (mappings or {}).items()}
        logger.debug("custom zone mappings set: %s", sorted(self._custom))

    def get_custom_mappings(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._custom.items()}

    def zones_for_garment(self, garment_type: Any) -> list[str]:
        if isinstance(garment_type, str) and garment_type in self._custom:
            return list(self._custom[garment_type])
        return zones_for_garment_type(garment_type)

    def zones_for_garments(self, garments: list[Any]) -> list[str]:
        """Union of zones covered by every garment, in first-seen order."""
        zones: list[str] = []
        for garment in garments:
            for zone in self.zones_for_garment(garment_type_of(garment)):
                if zone not in zones:
                    zones.append(zone)
        return zones

    def zone_name_for_number(self, number: int) -> str | None:
        return zone_name_for_number(number)

    def zone_number_for_name(self, name: str) -> int | None:
        return zone_number_for_name(name)

    def get_status(self) -> dict[str, Any]:
        return {
            "custom_mappings": len(self._custom),
            "garment_types": sorted(set(DEFAULT_GARMENT_ZONES) | set(self._custom)),
        }
