#!/usr/bin/env python3
"""
Advisory lifecycle notifications.

The engine emits "<operation>:before" and "<operation>:after" around its
operations (plus "restore:failed"). Subscribers are observers only: a failing
subscriber is logged and the operation carries on.
"""

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Listener = Callable[..., None]

ALL_EVENTS = '*'


class EventBus:
    """Synchronous pub/sub for engine lifecycle events."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, event_type: str, listener: Listener) -> Callable[[], None]:
        """Register a listener. Use '*' to receive every event.

        Returns:
            A function that removes the listener again
        """
        self._listeners[event_type].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[event_type]:
                self._listeners[event_type].remove(listener)

        return unsubscribe

    def emit(self, event_type: str, **data: Any) -> None:
        """Call every listener for event_type, then the '*' listeners."""
        listeners = list(self._listeners.get(event_type, [])) + list(self._listeners.get(ALL_EVENTS, []))
        for listener in listeners:
            try:
                listener(event_type, **data)
            except Exception:
                logger.exception(f"Listener for '{event_type}' failed")

        logger.debug(f"Emitted: {event_type}")
