"""Zone swap engine — moves zone data between two characters.

Swap flow (perform_swap):
  1. Parse the garment reference → Garment (owner, type, sequence).
  2. Look up the zones the garment type covers (zone mapper if attached,
     built-in table otherwise). No zones → the swap fails.
  3. If auto_validation is on and a validator is attached, gate the swap
     on both body maps.
  4. Record the swap, snapshot both sides, copy each zone subtree from
     source to target (one zone_swap event per zone).
  5. If bidirectional_swaps is on and a reciprocal handler is attached,
     the handler gives the source the target's pre-swap zones.
  6. Emit swap_executed with the final record.

reverse_swap restores both snapshots and emits swap_reversed with the
updated record; clear_history emits swap_history_cleared. Listeners that
mirror the history (the plugin's persistence glue) rely on these.

Expected failures (bad garment, no zones, gate rejection, unknown swap id)
return False instead of raising. Collaborators are optional: anything not
passed to the constructor is looked up in the registry at initialize().
"""

from __future__ import annotations

import copy
import itertools
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from threadshift import zones as zone_table
from threadshift.events import (
    HISTORY_CLEARED,
    SWAP_EXECUTED,
    SWAP_REVERSED,
    ZONE_SWAP,
    EventSink,
    NullEventSink,
)
from threadshift.models import Character, EngineSettings, Garment, SwapRecord, ZoneSwapResult
from threadshift.zones import GarmentRefError, parse_garment_ref

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

# Shared by every engine so ids stay unique for the life of the process.
_swap_counter = itertools.count(1)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def generate_swap_id() -> str:
    """Unique swap id: millisecond timestamp, process-wide counter, random tail."""
    millis = int(time.time() * 1000)
    return f"swap_{millis}_{next(_swap_counter)}_{uuid.uuid4().hex[:8]}"


def set_debug_logging(enabled: bool) -> None:
    """Raise the whole threadshift logger tree to DEBUG, or hand it back to the root config."""
    logging.getLogger("threadshift").setLevel(logging.DEBUG if enabled else logging.NOTSET)


class ZoneSwapEngine:
    version = VERSION

    def __init__(
        self,
        *,
        zone_mapper: Any = None,
        validator: Any = None,
        reciprocal_handler: Any = None,
        events: EventSink | None = None,
        settings: EngineSettings | None = None,
        registry: dict[str, Any] | None = None,
    ) -> None:
        self.zone_mapper = zone_mapper
        self.validator = validator
        self.reciprocal_handler = reciprocal_handler
        self.events: EventSink = events or NullEventSink()
        self.settings = settings or EngineSettings()
        self.initialized = False

        self._registry = registry if registry is not None else {}
        self._active: dict[str, SwapRecord] = {}
        self._history: list[SwapRecord] = []
        # swap id → (source, target, source zones before, target zones before)
        self._undo: dict[str, tuple[Character, Character, dict[str, Any], dict[str, Any]]] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> bool:
        if self.initialized:
            logger.debug("engine already initialized")
            return True

        if self.zone_mapper is None:
            self.zone_mapper = self._registry.get("zone_mapper")
        if self.validator is None:
            self.validator = self._registry.get("validator")
        if self.reciprocal_handler is None:
            self.reciprocal_handler = self._registry.get("reciprocal_handler")

        logger.debug(
            "engine dependencies zone_mapper=%s validator=%s reciprocal_handler=%s",
            self.zone_mapper is not None,
            self.validator is not None,
            self.reciprocal_handler is not None,
        )
        self.initialized = True
        logger.info("zone swap engine %s initialized", self.version)
        return True

    def shutdown(self) -> None:
        self._active.clear()
        self._history = []
        self._undo.clear()
        self.initialized = False
        logger.info("zone swap engine shut down")

    def test(self) -> str:
        return f"ZoneSwapEngine v{self.version} is working!"

    # ------------------------------------------------------------------
    # Swapping
    # ------------------------------------------------------------------

    def perform_swap(self, source: Character, target: Character, garment_ref: str) -> str | bool:
        """Swap the zones covered by a garment. Returns the swap id, or False."""
        if not self.initialized:
            self.initialize()
        logger.debug("perform_swap source=%s target=%s garment=%s", source.id, target.id, garment_ref)

        try:
            garment = parse_garment_ref(garment_ref)
        except GarmentRefError as e:
            logger.error("garment not found: %s", e)
            return False

        zones = self.get_zones_for_garment(garment.type)
        if not zones:
            logger.error("no zones for garment type %r (%s)", garment.type, garment.id)
            return False

        if self.settings.auto_validation and self.validator is not None:
            if not self.validator.validate_swap(source.body_map, target.body_map, zones):
                logger.error("swap validation failed for garment %s", garment.id)
                return False

        swap_id = self._record_and_apply(source, target, zones, garment)
        record = self._active[swap_id]

        if self.settings.bidirectional_swaps and self.reciprocal_handler is not None:
            previous = copy.deepcopy(self._undo[swap_id][3])
            if self.reciprocal_handler.handle_reciprocal(record, source, target, previous):
                record.reciprocal = True
            else:
                logger.warning("reciprocal step failed for %s; primary swap kept", swap_id)

        # Emitted last so listeners see the final record
        self.events.emit(SWAP_EXECUTED, record.model_dump())
        return swap_id

    def execute_swap(
        self, source: Character, target: Character, zones: list[str], garment: Garment
    ) -> str:
        swap_id = self._record_and_apply(source, target, zones, garment)
        self.events.emit(SWAP_EXECUTED, self._active[swap_id].model_dump())
        return swap_id

    def _record_and_apply(
        self, source: Character, target: Character, zones: list[str], garment: Garment
    ) -> str:
        swap_id = generate_swap_id()
        record = SwapRecord(
            id=swap_id,
            source=source.id,
            target=target.id,
            zones=list(zones),
            garment=garment,
            timestamp=_now(),
        )

        self._active[swap_id] = record
        self._add_to_history(record)
        self._undo[swap_id] = (
            source,
            target,
            self._snapshot(source.body_map, zones),
            self._snapshot(target.body_map, zones),
        )

        for zone in zones:
            self._apply_zone_swap(source, target, zone, swap_id)

        logger.debug("swap executed id=%s zones=%s", swap_id, zones)
        return swap_id

    def reverse_swap(self, swap_id: str) -> bool:
        return self.restore_swap(swap_id) is not None

    def restore_swap(self, swap_id: str) -> tuple[Character, Character] | None:
        """Reverse an active swap and return its (source, target) as restored.

        Returns None when swap_id is not an active swap.
        """
        record = self._active.get(swap_id)
        if record is None:
            logger.error("swap not found: %s", swap_id)
            return None

        source, target, source_before, target_before = self._undo.pop(swap_id)
        for zone in record.zones:
            self._restore_zone(source.body_map, zone, source_before)
            self._restore_zone(target.body_map, zone, target_before)
            self._emit_zone_swap(swap_id, record.target, record.source, zone)

        record.status = "reversed"
        record.reversed_at = _now()
        del self._active[swap_id]
        self.events.emit(SWAP_REVERSED, record.model_dump())
        logger.info("swap reversed: %s", swap_id)
        return source, target

    def swap_zone(self, zone: str, body_a: dict[str, Any], body_b: dict[str, Any]) -> ZoneSwapResult:
        """Exchange one zone between copies of two body maps."""
        if zone not in body_a or zone not in body_b:
            return ZoneSwapResult(
                zone=zone, success=False,
                body_a=body_a, body_b=body_b,
                error=f"Zone '{zone}' is missing on one side",
            )
        new_a = copy.deepcopy(body_a)
        new_b = copy.deepcopy(body_b)
        new_a[zone] = copy.deepcopy(body_b[zone])
        new_b[zone] = copy.deepcopy(body_a[zone])
        return ZoneSwapResult(zone=zone, success=True, body_a=new_a, body_b=new_b)

    def get_garment_by_id(self, garment_ref: str) -> Garment | None:
        try:
            return parse_garment_ref(garment_ref)
        except GarmentRefError as e:
            logger.error("invalid garment id: %s", e)
            return None

    def get_zones_for_garment(self, garment_type: str) -> list[str]:
        if self.zone_mapper is not None:
            return self.zone_mapper.zones_for_garment(garment_type)
        return zone_table.zones_for_garment_type(garment_type)

    # ------------------------------------------------------------------
    # Zone helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _snapshot(body_map: dict[str, Any], zones: list[str]) -> dict[str, Any]:
        return {zone: copy.deepcopy(body_map[zone]) for zone in zones if zone in body_map}

    @staticmethod
    def _restore_zone(body_map: dict[str, Any], zone: str, before: dict[str, Any]) -> None:
        if zone in before:
            body_map[zone] = copy.deepcopy(before[zone])
        else:
            body_map.pop(zone, None)

    def _apply_zone_swap(self, giver: Character, receiver: Character, zone: str, swap_id: str) -> None:
        if zone not in giver.body_map:
            logger.debug("zone %r absent on %s, skipped", zone, giver.id)
            return
        receiver.body_map[zone] = copy.deepcopy(giver.body_map[zone])
        self._emit_zone_swap(swap_id, giver.id, receiver.id, zone)

    def _emit_zone_swap(self, swap_id: str, source_id: str, target_id: str, zone: str) -> None:
        self.events.emit(ZONE_SWAP, {
            "swap_id": swap_id,
            "source": source_id,
            "target": target_id,
            "zone": zone,
            "timestamp": _now(),
        })

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def _add_to_history(self, record: SwapRecord) -> None:
        self._history.append(record)
        self._trim_history()

    def _trim_history(self) -> None:
        overflow = len(self._history) - self.settings.history_limit
        if overflow > 0:
            del self._history[:overflow]

    def get_active_swaps(self) -> list[SwapRecord]:
        return [r.model_copy(deep=True) for r in self._active.values()]

    def get_swap_history(self) -> list[SwapRecord]:
        return [r.model_copy(deep=True) for r in self._history]

    def clear_history(self) -> None:
        self._history = []
        self.events.emit(HISTORY_CLEARED, {"timestamp": _now()})
        logger.info("swap history cleared")

    # ------------------------------------------------------------------
    # Settings and status
    # ------------------------------------------------------------------

    def update_settings(self, partial: dict[str, Any]) -> EngineSettings:
        """Merge recognized keys into the settings; unknown keys are ignored."""
        known = {k: v for k, v in partial.items() if k in EngineSettings.model_fields}
        self.settings = EngineSettings.model_validate({**self.settings.model_dump(), **known})
        if "debug_mode" in known:
            set_debug_logging(self.settings.debug_mode)
        self._trim_history()
        logger.debug("settings updated: %s", self.settings.model_dump())
        return self.settings

    def get_status(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "initialized": self.initialized,
            "active_swaps": len(self._active),
            "history_count": len(self._history),
            "settings": self.settings.model_dump(),
            "dependencies": {
                "zone_mapper": self.zone_mapper is not None,
                "validator": self.validator is not None,
                "reciprocal_handler": self.reciprocal_handler is not None,
            },
        }
