"""
Handler Registry
================

An explicit, caller-owned collection of content handlers. Insertion order is
significant: URL-based detection asks handlers in the order they were
registered.
"""

from __future__ import annotations

import threading
from typing import Iterable

import structlog

from .handlers.base import Handler

log = structlog.get_logger(__name__)


class HandlerRegistry:
    """Ordered set of handlers with type-tag lookup."""

    def __init__(self, handlers: Iterable[Handler] = ()):
        self._lock = threading.Lock()
        self._handlers: list[Handler] = []
        for handler in handlers:
            self.register(handler)

    def register(self, handler: Handler) -> None:
        """
        Append a handler.

        Duplicate type tags are not rejected; the most recently registered
        handler wins type-tag lookups while both stay in the ordered set.
        """
        with self._lock:
            self._handlers.append(handler)
        log.debug("Registered content handler", type_tag=handler.type_tag)

    def handlers(self) -> list[Handler]:
        """Return a snapshot of the registered handlers in order."""
        with self._lock:
            return list(self._handlers)

    def get(self, type_tag: str) -> Handler | None:
        for handler in reversed(self.handlers()):
            if handler.type_tag == type_tag:
                return handler
        return None

    def type_tags(self) -> list[str]:
        return [handler.type_tag for handler in self.handlers()]

    def __len__(self) -> int:
        return len(self.handlers())
