"""In-memory stores for short-lived conversational state.

Nothing here is persisted: a restart drops every in-flight registration
dialog and captcha window, and users simply start the action again.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from collections.abc import Callable, Iterator
from typing import Generic, TypeVar

K = TypeVar("K")
V = TypeVar("V")

log = logging.getLogger("scrim-bot.sessions")


class SessionStore(Generic[K, V]):
    """Bounded mapping; the oldest entry is dropped once ``max_size`` is hit."""

    def __init__(self, *, max_size: int = 1000, name: str = "session") -> None:
        if max_size < 1:
            raise ValueError("max_size must be positive")
        self._items: OrderedDict[K, V] = OrderedDict()
        self._max_size = max_size
        self._name = name

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._items))

    def get(self, key: K) -> V | None:
        return self._items.get(key)

    def put(self, key: K, value: V) -> None:
        """Insert or replace; a replaced entry counts as the newest."""
        self._items.pop(key, None)
        self._items[key] = value
        while len(self._items) > self._max_size:
            dropped, _ = self._items.popitem(last=False)
            log.warning("Dropping oldest %s %s: store is full", self._name, dropped)

    def pop(self, key: K) -> V | None:
        return self._items.pop(key, None)

    def evict(self, predicate: Callable[[V], bool]) -> list[K]:
        stale = [key for key, value in self._items.items() if predicate(value)]
        for key in stale:
            del self._items[key]
        return stale


__all__ = ["SessionStore"]
