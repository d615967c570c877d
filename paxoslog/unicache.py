"""Types shared by caches that shrink repeated entry fields into small encodings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

E = TypeVar("E")
C = TypeVar("C")


@dataclass(frozen=True)
class Encoded(Generic[C]):
    """Cache hit: the field was replaced by its encoded representation."""

    encoding: C


@dataclass(frozen=True)
class NotEncoded(Generic[E]):
    """Cache miss: the field travels in its original form."""

    value: E


MaybeEncoded = Union[Encoded[Any], NotEncoded[Any]]


def is_encoded(result: object) -> bool:
    """Tell whether a field encoding result was a cache hit."""
    if isinstance(result, Encoded):
        return True
    if isinstance(result, NotEncoded):
        return False
    raise TypeError(f"expected Encoded or NotEncoded, got {type(result).__name__}")


class FieldCache(ABC, Generic[E, C]):
    """Cache for a single field of an entry."""

    @abstractmethod
    def try_encode(self, field: E) -> MaybeEncoded:
        """Encode ``field`` if it is cached, otherwise remember it and pass it through."""

    @abstractmethod
    def decode(self, result: MaybeEncoded) -> E:
        """Turn an encoding result back into the original field value."""


class UniCache(ABC):
    """Cache for whole entries, built from per-field caches."""

    @abstractmethod
    def try_encode(self, entry: Any) -> Any:
        """Encode the cachable fields of ``entry``."""

    @abstractmethod
    def decode(self, processed: Any) -> Any:
        """Rebuild the entry from the result of :meth:`try_encode`."""