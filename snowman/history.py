#!/usr/bin/env python3
"""
Browser History Adapter

The navigation engine records every step here and listens for back/forward
pops. Payloads are opaque to the adapter:

    {"state": {...}, "history": [1, 2, 3], "checkpointName": "Chapter 1"}

MemoryHistory is an in-process stand-in for a browser's session history. It
starts with one page-load entry whose payload is None, like a freshly opened
tab, and copies payloads in and out the way a browser clones them.
"""

import copy
import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Payload = Optional[Dict[str, Any]]
PopListener = Callable[[Payload], None]


class BrowserHistory:
    """Interface the navigation engine uses for back/forward integration."""

    def push_entry(self, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def replace_entry(self, payload: Dict[str, Any]) -> None:
        raise NotImplementedError

    def on_popped(self, callback: PopListener) -> None:
        raise NotImplementedError


class MemoryHistory(BrowserHistory):
    """Session history kept in a list with a cursor."""

    def __init__(self) -> None:
        self.entries: List[Payload] = [None]
        self.index = 0
        self._listeners: List[PopListener] = []

    def push_entry(self, payload: Dict[str, Any]) -> None:
        # Pushing drops any forward entries
        del self.entries[self.index + 1:]
        self.entries.append(copy.deepcopy(payload))
        self.index = len(self.entries) - 1
        logger.debug(f"Pushed history entry {self.index}")

    def replace_entry(self, payload: Dict[str, Any]) -> None:
        self.entries[self.index] = copy.deepcopy(payload)
        logger.debug(f"Replaced history entry {self.index}")

    def on_popped(self, callback: PopListener) -> None:
        self._listeners.append(callback)

    @property
    def current(self) -> Payload:
        return copy.deepcopy(self.entries[self.index])

    @property
    def can_go_back(self) -> bool:
        return self.index > 0

    @property
    def can_go_forward(self) -> bool:
        return self.index < len(self.entries) - 1

    def back(self) -> bool:
        """Step back one entry and notify listeners. Returns False at the start."""
        if not self.can_go_back:
            return False
        self.index -= 1
        self._pop()
        return True

    def forward(self) -> bool:
        """Step forward one entry and notify listeners. Returns False at the end."""
        if not self.can_go_forward:
            return False
        self.index += 1
        self._pop()
        return True

    def _pop(self) -> None:
        logger.debug(f"Popped to history entry {self.index}")
        for listener in list(self._listeners):
            listener(copy.deepcopy(self.entries[self.index]))
