"""Declaring log entry types, their snapshot type and their field caches."""

from __future__ import annotations

from dataclasses import dataclass, fields as dataclass_fields, is_dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Tuple, Type, Union

from paxoslog.field_caches import LFUniCache, LRUniCache
from paxoslog.storage import NoSnapshot
from paxoslog.unicache import FieldCache, UniCache

DEFAULT_CACHE_SIZE = 255

_FIELD_CACHES: Dict[str, Callable[[int], FieldCache]] = {
    "lru": LRUniCache,
    "lfu": LFUniCache,
}

_SNAPSHOT_ATTR = "__paxoslog_snapshot__"
_FIELDS_ATTR = "__paxoslog_unicache_fields__"


@dataclass(frozen=True)
class CacheField:
    """Declares that the field ``name`` of an entry is cached.

    ``size`` bounds the number of cached values and ``cache`` picks the
    eviction policy, ``"lru"`` or ``"lfu"``.
    """

    name: str
    size: int = DEFAULT_CACHE_SIZE
    cache: str = "lru"

    def __post_init__(self) -> None:
        if self.cache not in _FIELD_CACHES:
            raise ValueError(f"Invalid cache type: {self.cache!r}")
        if self.size <= 0:
            raise ValueError(f"cache size must be positive, got {self.size}")

    def new_cache(self) -> FieldCache:
        """Create an empty field cache for this field."""
        return _FIELD_CACHES[self.cache](self.size)


FieldSpec = Union[str, CacheField]


def _normalise_fields(entry_type: type, fields: Iterable[FieldSpec]) -> Tuple[CacheField, ...]:
    if not (isinstance(entry_type, type) and is_dataclass(entry_type)):
        raise TypeError(f"{entry_type!r} must be a dataclass to cache its fields")
    known = {f.name for f in dataclass_fields(entry_type)}
    specs = tuple(f if isinstance(f, CacheField) else CacheField(f) for f in fields)
    seen = set()
    for spec in specs:
        if spec.name not in known:
            raise ValueError(f"{entry_type.__name__} has no field {spec.name!r}")
        if spec.name in seen:
            raise ValueError(f"field {spec.name!r} declared twice")
        seen.add(spec.name)
    return specs


def entry(cls: Optional[type] = None, *, snapshot: type = NoSnapshot) -> Any:
    """Class decorator marking ``cls`` as a log entry type with a snapshot type.

    Usable bare (``@entry``) or with arguments (``@entry(snapshot=MySnapshot)``).
    """

    def mark(target: type) -> type:
        if not isinstance(target, type):
            raise TypeError("entry can only decorate a class")
        setattr(target, _SNAPSHOT_ATTR, snapshot)
        return target

    return mark if cls is None else mark(cls)


def snapshot_type(entry_type: Any) -> type:
    """Return the snapshot type declared for an entry class or instance."""
    target = entry_type if isinstance(entry_type, type) else type(entry_type)
    try:
        return getattr(target, _SNAPSHOT_ATTR)
    except AttributeError:
        raise TypeError(f"{target.__name__} is not an entry type") from None


def unicache_entry(
    cls: Optional[type] = None,
    *,
    fields: Iterable[FieldSpec] = (),
    snapshot: type = NoSnapshot,
) -> Any:
    """Class decorator marking a dataclass as an entry type with cached fields.

    ``fields`` lists field names or :class:`CacheField` declarations.
    """

    def mark(target: type) -> type:
        specs = _normalise_fields(target, fields)
        setattr(target, _SNAPSHOT_ATTR, snapshot)
        setattr(target, _FIELDS_ATTR, specs)
        return target

    return mark if cls is None else mark(cls)


class EntryCache(UniCache):
    """Whole-entry cache combining one field cache per cached field.

    Encoding yields a tuple in the entry's field order: cached fields become
    :class:`Encoded` or :class:`NotEncoded`, others are passed through.
    """

    def __init__(self, entry_type: type, fields: Optional[Iterable[FieldSpec]] = None) -> None:
        if fields is None:
            try:
                fields = getattr(entry_type, _FIELDS_ATTR)
            except AttributeError:
                raise TypeError(
                    f"{getattr(entry_type, '__name__', entry_type)!r} declares no cached fields"
                ) from None
        self.entry_type = entry_type
        self.fields = _normalise_fields(entry_type, fields)
        self._field_names = tuple(f.name for f in dataclass_fields(entry_type))
        self._caches: Dict[str, FieldCache] = {spec.name: spec.new_cache() for spec in self.fields}

    def __repr__(self) -> str:
        return f"EntryCache({self.entry_type.__name__}, fields={list(self._caches)})"

    def try_encode(self, entry: Any) -> Tuple[Any, ...]:
        return tuple(
            self._caches[name].try_encode(getattr(entry, name))
            if name in self._caches
            else getattr(entry, name)
            for name in self._field_names
        )

    def decode(self, processed: Tuple[Any, ...]) -> Any:
        if len(processed) != len(self._field_names):
            raise ValueError(
                f"expected {len(self._field_names)} fields, got {len(processed)}"
            )
        values = {
            name: self._caches[name].decode(item) if name in self._caches else item
            for name, item in zip(self._field_names, processed)
        }
        return self.entry_type(**values)

    def clone(self) -> "EntryCache":
        """Return a copy holding only the decoders, for handing to followers."""
        clone = EntryCache(self.entry_type, self.fields)
        clone._caches = {name: cache.clone() for name, cache in self._caches.items()}
        return clone