# giftrecs/utils/cache.py
from __future__ import annotations
from collections import OrderedDict
from typing import Any, Callable, Hashable, Optional, Tuple
import time


class TTLCache:
    """
    Bounded in-process cache with per-entry expiry.
    Least-recently-used entries are evicted once `max_size` is reached.
    Owned by whoever builds it (app.state), never a module global.
    """

    def __init__(self, max_size: int = 512, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        if max_size <= 0:
            raise ValueError("max_size must be positive")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._data: "OrderedDict[Hashable, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: Hashable) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        self._data[key] = (self._clock() + (self.ttl if ttl is None else ttl), value)
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
