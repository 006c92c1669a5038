"""Event surface — how the core tells the host that something happened.

The engine only needs an object matching the protocol:

    def emit(self, name: str, payload: Any) -> None: ...

Two implementations are provided:

    EventBus       — in-process publish/subscribe. Listeners run
                     synchronously in subscription order; a failing listener
                     is logged and does not stop the others.
    NullEventSink  — drops everything. Used when no host surface exists.

Event names emitted by the core are listed below as constants.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SWAP_EXECUTED = "swap_executed"
ZONE_SWAP = "zone_swap"
SWAP_REVERSED = "swap_reversed"
HISTORY_CLEARED = "swap_history_cleared"
CORE_READY = "threadshift_core_ready"

Listener = Callable[[Any], None]


class EventSink(Protocol):
    def emit(self, name: str, payload: Any) -> None: ...


class NullEventSink:
    def emit(self, name: str, payload: Any) -> None:
        logger.debug("event dropped name=%s", name)


class EventBus:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._stats = {"emitted": 0, "delivered": 0, "errors": 0}

    def subscribe(self, name: str, listener: Listener) -> None:
        self._listeners.setdefault(name, []).append(listener)

    def unsubscribe(self, name: str, listener: Listener) -> bool:
        listeners = self._listeners.get(name, [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def emit(self, name: str, payload: Any) -> None:
        self._stats["emitted"] += 1
        # Copy so a listener may unsubscribe itself while being called
        for listener in list(self._listeners.get(name, [])):
            try:
                listener(payload)
                self._stats["delivered"] += 1
            except Exception:
                self._stats["errors"] += 1
                logger.exception("event listener failed name=%s", name)

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
