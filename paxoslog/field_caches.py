"""Field caches with LFU and LRU eviction that encode repeated values as small integers."""

from __future__ import annotations

from collections import OrderedDict
from typing import Any, Dict, Generic, Hashable, List, Optional, Tuple, TypeVar

from paxoslog.lfu import LFUCache
from paxoslog.unicache import Encoded, FieldCache, MaybeEncoded, NotEncoded

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")
E = TypeVar("E", bound=Hashable)

_MISSING = object()


class LFUniCache(FieldCache[E, int]):
    """Field cache that evicts the least frequently used value.

    The leader encodes with :meth:`try_encode`, followers decode with
    :meth:`decode`; both sides evolve their cache in the same way so that an
    encoding always names the same value on every node.
    """

    def __init__(self, size: int) -> None:
        self.size = size
        self._encoder: LFUCache[E, int] = LFUCache(size)
        self._decoder: LFUCache[int, E] = LFUCache(size)
        self._encoding = 0

    def __repr__(self) -> str:
        return f"LFUniCache(size={self.size})"

    def _next_encoding(self) -> int:
        self._encoding += 1
        return self._encoding

    def try_encode(self, field: E) -> MaybeEncoded:
        if field in self._encoder:
            return Encoded(self._encoder.get(field))
        if len(self._encoder) == self.size:
            # Full: the new value takes over the encoding of the evicted one.
            popped = self._encoder.evict_and_return_value()
            self._encoder.set(field, popped)
        else:
            self._encoder.set(field, self._next_encoding())
        return NotEncoded(field)

    def decode(self, result: MaybeEncoded) -> E:
        match result:
            case Encoded(encoding):
                if encoding not in self._decoder:
                    raise KeyError(f"unknown encoding {encoding!r}")
                return self._decoder.get(encoding)
            case NotEncoded(value):
                if len(self._decoder) == self.size:
                    popped_key = self._decoder.evict_and_return_key()
                    self._decoder.set(popped_key, value)
                else:
                    self._decoder.set(self._next_encoding(), value)
                return value
        raise TypeError(f"expected Encoded or NotEncoded, got {type(result).__name__}")

    def clone(self) -> "LFUniCache[E]":
        """Return a copy that holds only the decoder, for handing to followers."""
        clone: LFUniCache[E] = type(self)(self.size)
        clone._encoder = LFUCache(1)
        for encodable, encoded in self._encoder.items():
            clone._decoder.set(encoded, encodable)
        clone._encoding = self._encoding
        return clone


class _LruMap(Generic[K, V]):
    """Bounded mapping ordered from least to most recently used."""

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"Unable to create cache: capacity is {capacity}")
        self.capacity = capacity
        self._data: "OrderedDict[K, V]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: K, default: Any = None) -> Any:
        if key not in self._data:
            return default
        self._data.move_to_end(key)
        return self._data[key]

    def push(self, key: K, value: V) -> None:
        self._data[key] = value
        self._data.move_to_end(key)
        if len(self._data) > self.capacity:
            self._data.popitem(last=False)

    def pop_lru(self) -> Optional[Tuple[K, V]]:
        if not self._data:
            return None
        return self._data.popitem(last=False)

    def items(self) -> List[Tuple[K, V]]:
        return list(self._data.items())


class LRUniCache(FieldCache[E, int]):
    """Field cache that evicts the least recently used value."""

    def __init__(self, size: int) -> None:
        self.size = size
        self._encoder: _LruMap[E, int] = _LruMap(size)
        self._decoder: _LruMap[int, E] = _LruMap(size)
        self._encoding = 0

    def __repr__(self) -> str:
        return "LRUnicache"

    def _next_encoding(self) -> int:
        self._encoding += 1
        return self._encoding

    def try_encode(self, field: E) -> MaybeEncoded:
        encoding = self._encoder.get(field, _MISSING)
        if encoding is not _MISSING:
            return Encoded(encoding)
        if len(self._encoder) == self.size:
            _, popped_encoding = self._encoder.pop_lru()
            self._encoder.push(field, popped_encoding)
        else:
            self._encoder.push(field, self._next_encoding())
        return NotEncoded(field)

    def decode(self, result: MaybeEncoded) -> E:
        match result:
            case Encoded(encoding):
                value = self._decoder.get(encoding, _MISSING)
                if value is _MISSING:
                    raise KeyError(f"unknown encoding {encoding!r}")
                return value
            case NotEncoded(value):
                if len(self._decoder) == self.size:
                    popped_encoded, _ = self._decoder.pop_lru()
                    self._decoder.push(popped_encoded, value)
                else:
                    self._decoder.push(self._next_encoding(), value)
                return value
        raise TypeError(f"expected Encoded or NotEncoded, got {type(result).__name__}")

    def clone(self) -> "LRUniCache[E]":
        """Return a copy that holds only the decoder, for handing to followers."""
        clone: LRUniCache[E] = type(self)(self.size)
        clone._encoder = _LruMap(1)
        for encodable, encoded in self._encoder.items():
            clone._decoder.push(encoded, encodable)
        clone._encoding = self._encoding
        return clone

    def to_dict(self) -> Dict[str, Any]:
        """Return the state as plain lists and numbers, oldest entries first."""

        def dump(lru: _LruMap[Any, Any]) -> Dict[str, Any]:
            return {"capacity": lru.capacity, "items": [[k, v] for k, v in lru.items()]}

        return {
            "size": self.size,
            "encoding": self._encoding,
            "encoder": dump(self._encoder),
            "decoder": dump(self._decoder),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LRUniCache[Any]":
        """Rebuild a cache from the output of :meth:`to_dict`."""

        def load(part: Dict[str, Any]) -> _LruMap[Any, Any]:
            lru: _LruMap[Any, Any] = _LruMap(part["capacity"])
            for key, value in part["items"]:
                lru.push(key, value)
            return lru

        try:
            cache: LRUniCache[Any] = cls(data["size"])
            cache._encoding = data["encoding"]
            cache._encoder = load(data["encoder"])
            cache._decoder = load(data["decoder"])
        except (KeyError, TypeError) as exc:
            raise ValueError(f"invalid LRU cache data: {exc}") from exc
        return cache