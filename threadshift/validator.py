"""Body map schema validation.

A body map is a dict of zone name → zone record. Validation collects every
problem in one pass instead of stopping at the first, so callers can show
the full list at once.

Zone rules:
  required   hair, face, neck, chest, waist, butt, genitals, hands, legs, feet
  forbidden  torso, height, voice, head   (flagged whatever their value)
  muscle     chest, waist, butt, legs, arms   (also need a "tone" string)
Any other top-level key is tolerated and left unchecked.

Zone record: descriptor (str), care (str), marks (list), _plugin (dict of
scalars). Genitals is a dict of vagina / penis / anal sub-records, each with
descriptor, care, tone and marks, plus optional type-specific structures.

Top-level keys are matched exactly (case-sensitive). The is_valid_zone /
is_invalid_zone helpers are case-insensitive and trim whitespace.
"""

from __future__ import annotations

import logging
from typing import Any

from threadshift.models import ValidationResult

logger = logging.getLogger(__name__)

REQUIRED_ZONES = (
    "hair", "face", "neck", "chest", "waist",
    "butt", "genitals", "hands", "legs", "feet",
)
FORBIDDEN_ZONES = ("torso", "height", "voice", "head")
MUSCLE_ZONES = ("chest", "waist", "butt", "legs", "arms")

REQUIRED_FIELDS = ("descriptor", "care", "marks", "_plugin")

MARK_FIELDS = ("type", "description", "location_detail", "visibility")
MARK_TYPES = ("tattoo", "scar", "freckles", "mole", "birthmark")
MARK_VISIBILITY = ("high", "medium", "low")

GENITAL_TYPES = ("vagina", "penis", "anal")
GENITAL_REQUIRED_FIELDS = ("descriptor", "care", "tone", "marks")

# Optional, type-specific genital structures. A nested dict describes an
# object whose fields are checked only when present.
GENITAL_OPTIONAL_FIELDS: dict[str, dict[str, Any]] = {
    "vagina": {
        "internal": {
            "depth_inches": "number",
            "tightness_level": "string",
            "g_spot_ridge": "string",
            "ridge_presence": "boolean",
            "hymen_intact": "boolean",
        },
    },
    "penis": {
        "size": {
            "length_erect_inches": "number",
            "length_flaccid_inches": "number",
            "girth_inches": "number",
        },
        "circumcised": "boolean",
    },
    "anal": {
        "internal": {
            "depth_inches": "number",
            "tightness_level": "string",
        },
    },
}

_FIELD_KINDS = {
    "descriptor": "string",
    "care": "string",
    "tone": "string",
    "marks": "array",
    "_plugin": "object",
}


# ---------------------------------------------------------------------------
# Type helpers
# ---------------------------------------------------------------------------

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _kind(value: Any) -> str:
    """JSON-style name for a value's type, used in error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, (list, tuple)):
        return "array"
    return type(value).__name__


def _matches(kind: str, value: Any) -> bool:
    if kind == "string":
        return isinstance(value, str)
    if kind == "array":
        return isinstance(value, list)
    if kind == "object":
        return isinstance(value, dict)
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "number":
        return _is_number(value) and value >= 0
    raise ValueError(f"Unknown field kind: {kind}")


_KIND_PHRASES = {
    "string": "a string",
    "array": "an array",
    "object": "an object",
    "boolean": "a boolean",
    "number": "a number >= 0",
}


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------

def validate_body_map(body_map: Any, *, partial: bool = False) -> ValidationResult:
    """Validate a body map and return every problem found.

    With partial=True, absent required zones are not reported; everything
    that is present is still checked. The reciprocal swap uses this because
    it only touches zones both characters carry.
    """
    if not isinstance(body_map, dict):
        return ValidationResult(valid=False, errors=["Body map must be a valid object"])

    errors: list[str] = []
    _check_required_zones(body_map, errors, partial=partial)
    _check_forbidden_zones(body_map, errors)
    _check_zone_structures(body_map, errors)

    if errors:
        logger.debug("body map invalid: %d error(s)", len(errors))
        return ValidationResult(valid=False, errors=errors)
    return ValidationResult(valid=True)


def _check_required_zones(body_map: dict, errors: list[str], *, partial: bool) -> None:
    for zone in REQUIRED_ZONES:
        if zone not in body_map:
            if not partial:
                errors.append(f"Missing zone: {zone}")
        elif not isinstance(body_map[zone], dict):
            errors.append(f"Zone '{zone}' must be an object")


def _check_forbidden_zones(body_map: dict, errors: list[str]) -> None:
    for zone in FORBIDDEN_ZONES:
        if zone in body_map:
            errors.append(f"Invalid zone '{zone}' must not be present")


def _check_zone_structures(body_map: dict, errors: list[str]) -> None:
    for zone_name, zone_data in body_map.items():
        if zone_name in FORBIDDEN_ZONES or zone_name not in REQUIRED_ZONES:
            continue
        if zone_name == "genitals":
            _check_genitals_zone(zone_data, errors)
        else:
            _check_standard_zone(zone_name, zone_data, errors)


# ---------------------------------------------------------------------------
# Zone checks
# ---------------------------------------------------------------------------

def _check_field_type(zone_name: str, field: str, value: Any, errors: list[str]) -> None:
    kind = _FIELD_KINDS[field]
    if not _matches(kind, value):
        errors.append(f"Field '{field}' in zone '{zone_name}' must be {_KIND_PHRASES[kind]}")


def _check_standard_zone(zone_name: str, zone_data: Any, errors: list[str]) -> None:
    if not isinstance(zone_data, dict):
        return  # reported by _check_required_zones

    for field in REQUIRED_FIELDS:
        if field not in zone_data:
            errors.append(f"Missing field '{field}' in zone: {zone_name}")
        else:
            _check_field_type(zone_name, field, zone_data[field], errors)

    if zone_name in MUSCLE_ZONES:
        if "tone" not in zone_data:
            errors.append(f"Missing required field 'tone' in zone: {zone_name}")
        elif not isinstance(zone_data["tone"], str):
            errors.append(f"Field 'tone' in zone '{zone_name}' must be a string")

    if "marks" in zone_data:
        _check_marks(zone_name, zone_data["marks"], errors)
    if "_plugin" in zone_data:
        _check_plugin(zone_name, zone_data["_plugin"], errors)


def _check_genitals_zone(genitals: Any, errors: list[str]) -> None:
    if not isinstance(genitals, dict):
        errors.append("Zone 'genitals' must be an object")
        return

    present = [key for key in genitals if key in GENITAL_TYPES]
    if not present:
        errors.append(
            f"Genitals zone must contain at least one of: {', '.join(GENITAL_TYPES)}"
        )
        return

    for key in genitals:
        if key not in GENITAL_TYPES:
            errors.append(f"Invalid field '{key}' in genitals zone")

    for genital_type in present:
        _check_genital_type(genital_type, genitals[genital_type], errors)


def _check_genital_type(genital_type: str, data: Any, errors: list[str]) -> None:
    prefix = f"genitals.{genital_type}"
    if not isinstance(data, dict):
        errors.append(f"{prefix} must be an object")
        return

    for field in GENITAL_REQUIRED_FIELDS:
        if field not in data:
            errors.append(f"Missing field '{field}' in {prefix}")
        else:
            _check_field_type(prefix, field, data[field], errors)

    if "marks" in data:
        _check_marks(prefix, data["marks"], errors)
    if "_plugin" in data:
        _check_plugin(prefix, data["_plugin"], errors)

    _check_optional_fields(prefix, data, GENITAL_OPTIONAL_FIELDS[genital_type], errors)


def _check_optional_fields(
    prefix: str, data: dict, schema: dict[str, Any], errors: list[str]
) -> None:
    for field, kind in schema.items():
        if field not in data:
            continue
        path = f"{prefix}.{field}"
        value = data[field]
        if isinstance(kind, dict):
            if not isinstance(value, dict):
                errors.append(f"{path} must be an object")
            else:
                _check_optional_fields(path, value, kind, errors)
        elif not _matches(kind, value):
            errors.append(f"{path} must be {_KIND_PHRASES[kind]}")


def _check_marks(zone_name: str, marks: Any, errors: list[str]) -> None:
    if not isinstance(marks, list):
        errors.append(f"Field 'marks' in zone '{zone_name}' must be an array")
        return

    for index, mark in enumerate(marks):
        where = f"Invalid mark in {zone_name}[{index}]"
        if not isinstance(mark, dict):
            errors.append(f"{where}: must be an object")
            continue

        for field in MARK_FIELDS:
            if field not in mark:
                errors.append(f"{where}: missing '{field}'")
            elif not isinstance(mark[field], str):
                errors.append(f"{where}: '{field}' must be a string")

        if "type" in mark and mark["type"] not in MARK_TYPES:
            errors.append(
                f"{where}: type '{mark['type']}' must be one of: {', '.join(MARK_TYPES)}"
            )
        if "visibility" in mark and mark["visibility"] not in MARK_VISIBILITY:
            errors.append(
                f"{where}: visibility '{mark['visibility']}' must be one of: "
                f"{', '.join(MARK_VISIBILITY)}"
            )


def _check_plugin(zone_name: str, plugin: Any, errors: list[str]) -> None:
    if not isinstance(plugin, dict):
        errors.append(f"Field '_plugin' in zone '{zone_name}' must be an object")
        return

    for key, value in plugin.items():
        if not isinstance(value, (str, bool)) and not _is_number(value):
            errors.append(
                f"Invalid _plugin value '{key}' in {zone_name}: "
                f"expected string/number/boolean, got {_kind(value)}"
            )


# ---------------------------------------------------------------------------
# Zone name queries
# ---------------------------------------------------------------------------

def _normalise(zone_name: Any) -> str | None:
    if not isinstance(zone_name, str) or not zone_name:
        return None
    return zone_name.lower().strip()


def is_valid_zone(zone_name: Any) -> bool:
    """True if zone_name (case-insensitive, trimmed) is a required zone."""
    return _normalise(zone_name) in REQUIRED_ZONES


def is_invalid_zone(zone_name: Any) -> bool:
    """True if zone_name (case-insensitive, trimmed) is a forbidden zone."""
    return _normalise(zone_name) in FORBIDDEN_ZONES


def get_required_zones() -> list[str]:
    return list(REQUIRED_ZONES)


def get_invalid_zones() -> list[str]:
    return list(FORBIDDEN_ZONES)


def get_muscle_zones() -> list[str]:
    return list(MUSCLE_ZONES)


# ---------------------------------------------------------------------------
# Injectable validator
# ---------------------------------------------------------------------------

class BodyMapValidator:
    """Validator collaborator for the swap engine and reciprocal handler.

    zone_validation controls whether validate_swap also rejects swaps that
    would touch a zone only one of the two body maps carries.
    """

    version = "1.0.0"

    def __init__(self, zone_validation: bool = True) -> None:
        self.zone_validation = zone_validation

    def configure(self, *, zone_validation: bool | None = None, debug_mode: bool | None = None) -> None:
        if zone_validation is not None:
            self.zone_validation = zone_validation
        if debug_mode is not None:
            logger.setLevel(logging.DEBUG if debug_mode else logging.NOTSET)

    def validate(self, body_map: Any, *, partial: bool = False) -> ValidationResult:
        return validate_body_map(body_map, partial=partial)

    def validate_swap(self, source_map: Any, target_map: Any, zones: list[str]) -> bool:
        """Gate a swap: both maps must validate and agree on which zones exist."""
        for label, body_map in (("source", source_map), ("target", target_map)):
            result = validate_body_map(body_map)
            if not result.valid:
                logger.warning("swap rejected: %s body map invalid (%s)", label, "; ".join(result.errors or []))
                return False

        if self.zone_validation:
            for zone in zones:
                if (zone in source_map) != (zone in target_map):
                    logger.warning("swap rejected: zone %r present on only one side", zone)
                    return False
        return True

    def get_status(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "zone_validation": self.zone_validation,
            "required_zones": get_required_zones(),
            "invalid_zones": get_invalid_zones(),
        }
