"""Least-frequently-used cache that evicts the oldest key among the least used."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Generic, Hashable, Iterator, Optional, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


@dataclass(slots=True)
class _ValueCounter(Generic[V]):
    value: V
    count: int


class LFUCache(Generic[K, V]):
    """A bounded mapping that evicts its least frequently used key.

    Keys that share the lowest access count are evicted in insertion order.
    Reading through ``get`` counts as a use; indexing with ``[]`` does not.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"Unable to create cache: capacity is {capacity}")
        self.capacity = capacity
        self.min_frequency = 0
        self._values: Dict[K, _ValueCounter[V]] = {}
        # Each bin is a dict used as an insertion-ordered set of keys.
        self._frequency_bin: Dict[int, Dict[K, None]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._values))

    def __getitem__(self, key: K) -> V:
        return self._values[key].value

    def __repr__(self) -> str:
        return f"LFUCache(capacity={self.capacity}, items={dict(self.items())!r})"

    def is_empty(self) -> bool:
        return not self._values

    def remove(self, key: K) -> Optional[V]:
        """Remove ``key`` and return its value, or ``None`` if it is absent."""
        counter = self._values.get(key)
        if counter is None:
            return None
        self._frequency_bin.setdefault(counter.count, {}).pop(key, None)
        del self._values[key]
        return counter.value

    def get(self, key: K) -> Optional[V]:
        """Return the value of ``key`` (or ``None``) and count the access."""
        self._update_frequency_bin(key)
        counter = self._values.get(key)
        return None if counter is None else counter.value

    def _update_frequency_bin(self, key: K) -> None:
        counter = self._values.get(key)
        if counter is None:
            return
        count = counter.count
        bin_ = self._frequency_bin[count]
        bin_.pop(key, None)
        counter.count += 1
        if count == self.min_frequency and not bin_:
            self.min_frequency += 1
        self._frequency_bin.setdefault(count + 1, {})[key] = None

    def _pop_least_used_key(self) -> Optional[K]:
        bin_ = self._frequency_bin.get(self.min_frequency)
        if bin_ is None:
            return None
        if not bin_:
            raise LookupError("no key left with the lowest access count")
        key = next(iter(bin_))
        del bin_[key]
        return key

    def _evict(self) -> None:
        key = self._pop_least_used_key()
        if key is None:
            raise LookupError("no key left with the lowest access count")
        self._values.pop(key, None)

    def evict_and_return_key(self) -> Optional[K]:
        """Evict the least used key and return it, or ``None`` if nothing is tracked."""
        key = self._pop_least_used_key()
        if key is None:
            return None
        self._values.pop(key, None)
        return key

    def evict_and_return_value(self) -> Optional[V]:
        """Evict the least used key and return its value, or ``None``."""
        key = self._pop_least_used_key()
        if key is None:
            return None
        counter = self._values.pop(key, None)
        return None if counter is None else counter.value

    def items(self) -> Iterator[Tuple[K, V]]:
        """Iterate over ``(key, value)`` pairs without counting accesses."""
        return ((key, counter.value) for key, counter in list(self._values.items()))

    def set(self, key: K, value: V) -> None:
        """Insert or replace ``key``; a replacement counts as a use."""
        counter = self._values.get(key)
        if counter is not None:
            counter.value = value
            self._update_frequency_bin(key)
            return
        if len(self) >= self.capacity:
            self._evict()
        self._values[key] = _ValueCounter(value, 1)
        self.min_frequency = 1
        self._frequency_bin.setdefault(self.min_frequency, {})[key] = None

    def copy(self) -> "LFUCache[K, V]":
        """Return an independent cache with the same contents and counters."""
        clone: LFUCache[K, V] = LFUCache(self.capacity)
        clone.min_frequency = self.min_frequency
        clone._values = {
            key: _ValueCounter(counter.value, counter.count)
            for key, counter in self._values.items()
        }
        clone._frequency_bin = {count: dict(bin_) for count, bin_ in self._frequency_bin.items()}
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Return the full state as plain lists and numbers, suitable for JSON."""
        return {
            "capacity": self.capacity,
            "min_frequency": self.min_frequency,
            "values": [
                [key, counter.value, counter.count] for key, counter in self._values.items()
            ],
            "frequency_bin": [
                [count, list(bin_)] for count, bin_ in self._frequency_bin.items()
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LFUCache[Any, Any]":
        """Rebuild a cache from the output of :meth:`to_dict`."""
        try:
            cache: LFUCache[Any, Any] = cls(data["capacity"])
            cache.min_frequency = data["min_frequency"]
            cache._values = {
                key: _ValueCounter(value, count) for key, value, count in data["values"]
            }
            cache._frequency_bin = {
                count: dict.fromkeys(keys) for count, keys in data["frequency_bin"]
            }
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid LFU cache data: {exc}") from exc
        return cache