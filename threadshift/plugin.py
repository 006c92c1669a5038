"""Plugin bootstrap — wires the core components to the host.

Initialization steps:
  1. Wait for the host settings store (bounded: 50 attempts × 0.1 s).
     No store and no provider → in-memory store, nothing persists.
  2. Seed the namespace with defaults if it is empty.
  3. Build the zone mapper (with persisted zone mappings), the validator,
     the swap engine (configured from stored settings) and the reciprocal
     handler; register them so the engine can resolve its collaborators.
  4. Mirror the engine history into the stored swap_history: append on
     swap_executed (capped at the engine's history limit), rewrite the
     entry on swap_reversed, empty it on swap_history_cleared.
  5. Emit threadshift_core_ready.

A failure at any step is logged, stored under the "error" key and reported
by initialize() returning False.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from threadshift.engine import ZoneSwapEngine
from threadshift.events import CORE_READY, HISTORY_CLEARED, SWAP_EXECUTED, SWAP_REVERSED, EventBus
from threadshift.models import EngineSettings
from threadshift.reciprocal import ReciprocalSwapHandler
from threadshift.storage import (
    STORAGE_NAMESPACE,
    MemorySettingsStore,
    SettingsStore,
    default_namespace,
    merged_settings,
)
from threadshift.validator import BodyMapValidator
from threadshift.zones import ZoneMapper

logger = logging.getLogger(__name__)

PLUGIN_NAME = "threadshift-core-engine"
PLUGIN_VERSION = "1.0.0"
API_VERSION = "1.0.0"

MAX_ATTEMPTS = 50
RETRY_INTERVAL = 0.1


class PluginInitError(RuntimeError):
    """Raised when the plugin cannot finish initializing."""


async def wait_for(
    check: Callable[[], bool],
    *,
    what: str,
    max_attempts: int = MAX_ATTEMPTS,
    interval: float = RETRY_INTERVAL,
) -> None:
    """Poll check() until it returns True; raise PluginInitError when attempts run out."""
    for attempt in range(1, max_attempts + 1):
        if check():
            logger.debug("%s available after %d attempt(s)", what, attempt)
            return
        logger.debug("waiting for %s (attempt %d/%d)", what, attempt, max_attempts)
        await asyncio.sleep(interval)
    raise PluginInitError(f"{what} not available after waiting")


def _engine_settings(settings: dict[str, Any]) -> dict[str, Any]:
    return {
        "bidirectional_swaps": settings["bidirectional_swaps"] is not False,
        "auto_validation": settings["auto_validation"] is not False,
        "history_limit": settings["history_limit"] or 100,
        "debug_mode": bool(settings["enable_debug_logging"]),
    }


class ThreadshiftCore:
    """Entry point the host talks to.

    Args:
        store:          Host settings store. Takes priority over store_provider.
        store_provider: Returns the host store, or None while the host is
                        still starting; polled during initialize().
        events:         Event bus shared with the host.
        max_attempts:   Poll budget for store_provider.
        interval:       Seconds between polls.
    """

    name = PLUGIN_NAME
    version = PLUGIN_VERSION
    api_version = API_VERSION

    def __init__(
        self,
        store: SettingsStore | None = None,
        *,
        store_provider: Callable[[], SettingsStore | None] | None = None,
        events: EventBus | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        interval: float = RETRY_INTERVAL,
    ) -> None:
        self.store = store
        self.events = events or EventBus()
        self._store_provider = store_provider
        self._max_attempts = max_attempts
        self._interval = interval

        self.components: dict[str, Any] = {}
        self.initialized = False

    # ------------------------------------------------------------------
    # Component accessors
    # ------------------------------------------------------------------

    @property
    def engine(self) -> ZoneSwapEngine | None:
        return self.components.get("swap_engine")

    @property
    def zone_mapper(self) -> ZoneMapper | None:
        return self.components.get("zone_mapper")

    @property
    def validator(self) -> BodyMapValidator | None:
        return self.components.get("validator")

    @property
    def reciprocal_handler(self) -> ReciprocalSwapHandler | None:
        return self.components.get("reciprocal_handler")

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        try:
            logger.debug("starting plugin initialization")
            self.store = await self._resolve_store()
            settings = self._init_storage()

            mapper = ZoneMapper(self.store.get("zone_mappings") or {})
            validator = BodyMapValidator()
            validator.configure(
                zone_validation=settings["zone_validation"] is not False,
                debug_mode=bool(settings["enable_debug_logging"]),
            )
            self.components = {"zone_mapper": mapper, "validator": validator}

            engine = ZoneSwapEngine(
                events=self.events,
                settings=EngineSettings(**_engine_settings(settings)),
                registry=self.components,
            )
            self.components["swap_engine"] = engine
            self.components["reciprocal_handler"] = ReciprocalSwapHandler(
                validator=validator, engine=engine, zone_mapper=mapper,
            )
            engine.initialize()

            for name, listener in self._persistence_listeners():
                self.events.unsubscribe(name, listener)
                self.events.subscribe(name, listener)

            self.initialized = True
            self.events.emit(CORE_READY, {
                "plugin_name": self.name,
                "version": self.version,
                "api_version": self.api_version,
            })
            logger.info("%s %s initialized", self.name, self.version)
            return True
        except (PluginInitError, ValueError, OSError) as e:
            return self._handle_initialization_error(e)

    async def reinitialize(self) -> bool:
        if self.engine is not None:
            self.engine.shutdown()
        self.initialized = False
        return await self.initialize()

    async def _resolve_store(self) -> SettingsStore:
        if self.store is not None:
            return self.store
        if self._store_provider is None:
            logger.warning("no host settings store; settings kept in memory only")
            return MemorySettingsStore()

        provider = self._store_provider
        await wait_for(
            lambda: provider() is not None,
            what="host settings store",
            max_attempts=self._max_attempts,
            interval=self._interval,
        )
        return provider()

    def _init_storage(self) -> dict[str, Any]:
        """Seed namespace defaults; return the effective plugin settings."""
        if not self.store.keys():
            for key, value in default_namespace().items():
                self.store.set(key, value)
        settings = merged_settings(self.store.get("settings"))
        logger.debug("storage initialized namespace=%s", STORAGE_NAMESPACE)
        return settings

    def _handle_initialization_error(self, error: Exception) -> bool:
        logger.error("%s initialization failed: %s", self.name, error)
        self.initialized = False
        if self.store is not None:
            self.store.set("error", {
                "message": str(error),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })
        return False

    def shutdown(self) -> None:
        if self.engine is not None:
            self.engine.shutdown()
        for name, listener in self._persistence_listeners():
            self.events.unsubscribe(name, listener)
        self.initialized = False

    # ------------------------------------------------------------------
    # Persistence glue
    # ------------------------------------------------------------------

    def _persist_swap(self, record: dict[str, Any]) -> None:
        limit = self.engine.settings.history_limit if self.engine else 100

        def append(history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            history = list(history or [])
            history.append(record)
            return history[-limit:]

        self.store.update("swap_history", append)

    def _persist_reversal(self, record: dict[str, Any]) -> None:
        def replace(history: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
            return [record if entry.get("id") == record["id"] else entry for entry in history or []]

        self.store.update("swap_history", replace)

    def _persist_clear(self, payload: Any) -> None:
        self.store.set("swap_history", [])

    def _persistence_listeners(self) -> list[tuple[str, Callable[[Any], None]]]:
        return [
            (SWAP_EXECUTED, self._persist_swap),
            (SWAP_REVERSED, self._persist_reversal),
            (HISTORY_CLEARED, self._persist_clear),
        ]

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _require_ready(self) -> None:
        if not self.initialized or self.store is None:
            raise PluginInitError(f"{self.name} is not initialized")

    def get_settings(self) -> dict[str, Any]:
        self._require_ready()
        return merged_settings(self.store.get("settings"))

    def update_settings(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge recognized fields into stored settings and push them to the components."""
        self._require_ready()
        settings = merged_settings({**(self.store.get("settings") or {}), **fields})
        # Engine validates types before anything is persisted
        self.engine.update_settings(_engine_settings(settings))
        self.store.set("settings", settings)
        self.validator.configure(
            zone_validation=settings["zone_validation"] is not False,
            debug_mode=bool(settings["enable_debug_logging"]),
        )
        return settings

    def get_zone_mappings(self) -> dict[str, list[str]]:
        self._require_ready()
        return self.zone_mapper.get_custom_mappings()

    def set_zone_mappings(self, mappings: dict[str, list[str]]) -> dict[str, list[str]]:
        self._require_ready()
        self.zone_mapper.set_custom_mappings(mappings)
        stored = self.zone_mapper.get_custom_mappings()
        self.store.set("zone_mappings", stored)
        return stored

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        return {
            "plugin_name": self.name,
            "version": self.version,
            "api_version": self.api_version,
            "initialized": self.initialized,
            "swap_engine": self.engine is not None,
            "zone_mapper": self.zone_mapper is not None,
            "validator": self.validator is not None,
            "reciprocal_handler": self.reciprocal_handler is not None,
            "settings": self.store.get("settings") if self.store else None,
            "storage": {
                "namespace": STORAGE_NAMESPACE,
                "keys": self.store.keys() if self.store else [],
            },
        }
