"""Bounded storage for aggregate statistics shared across calls."""

import threading
from collections import OrderedDict
from typing import Callable, Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

K = TypeVar('K')
V = TypeVar('V')


class BoundedStore(Generic[K, V]):
    """
    Thread-safe map with a fixed capacity and least-recently-used eviction.

    Reads and writes both refresh an entry's recency. When a write would
    exceed the capacity, the least recently used entry is dropped.
    """

    def __init__(self, max_size: int):
        if max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self.max_size = max_size
        self._data: "OrderedDict[K, V]" = OrderedDict()
        self._lock = threading.Lock()

    def set(self, key: K, value: V) -> None:
        with self._lock:
            self._put(key, value)

    def get(self, key: K, default: Optional[V] = None) -> Optional[V]:
        with self._lock:
            if key not in self._data:
                return default
            self._data.move_to_end(key)
            return self._data[key]

    def update(self, key: K, fn: Callable[[Optional[V]], V]) -> V:
        """Atomically replace the value under key with fn(old_value)."""
        with self._lock:
            value = fn(self._data.get(key))
            self._put(key, value)
            return value

    def increment(self, key: K, amount: int = 1) -> int:
        return self.update(key, lambda old: (old or 0) + amount)

    def delete(self, key: K) -> bool:
        with self._lock:
            return self._data.pop(key, None) is not None

    def values(self) -> List[V]:
        """Snapshot of values, least recently used first."""
        with self._lock:
            return list(self._data.values())

    def items(self) -> List[Tuple[K, V]]:
        with self._lock:
            return list(self._data.items())

    def snapshot(self) -> Dict[K, V]:
        with self._lock:
            return dict(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def _put(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        while len(self._data) > self.max_size:
            self._data.popitem(last=False)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._data

    def __iter__(self) -> Iterator[K]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)
