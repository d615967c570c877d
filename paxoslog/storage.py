"""Storage interface of the replicated log, its operations and snapshot types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union


class StorageError(Exception):
    """Raised by storage back-ends when a read or write fails."""


@dataclass
class StopSign:
    """Marks the end of a configuration; used for reconfiguration."""

    next_config: Any
    metadata: Optional[bytes] = None


class Snapshot(ABC):
    """Snapshot of a prefix of log entries."""

    @classmethod
    @abstractmethod
    def create(cls, entries: Sequence[Any]) -> "Snapshot":
        """Create a snapshot from the log ``entries``."""

    @abstractmethod
    def merge(self, delta: "Snapshot") -> None:
        """Merge another snapshot ``delta`` into this one."""

    @classmethod
    @abstractmethod
    def use_snapshots(cls) -> bool:
        """Whether the entry type can be snapshotted at all."""


@dataclass(frozen=True)
class NoSnapshot(Snapshot):
    """Placeholder snapshot type for entries that are never snapshotted."""

    @classmethod
    def create(cls, entries: Sequence[Any]) -> "NoSnapshot":
        raise RuntimeError("NoSnapshot should not be created")

    def merge(self, delta: Snapshot) -> None:
        raise RuntimeError("NoSnapshot should not be merged")

    @classmethod
    def use_snapshots(cls) -> bool:
        return False


@dataclass(frozen=True)
class CompleteSnapshot:
    """A snapshot holding all snapshotted data."""

    snapshot: Any


@dataclass(frozen=True)
class DeltaSnapshot:
    """A snapshot holding only the changes since an earlier snapshot."""

    snapshot: Any


SnapshotType = Union[CompleteSnapshot, DeltaSnapshot]


@dataclass(frozen=True)
class AppendEntry:
    """Append one entry to the end of the log."""

    entry: Any


@dataclass(frozen=True)
class AppendEntries:
    """Append entries to the end of the log."""

    entries: List[Any]


@dataclass(frozen=True)
class AppendOnPrefix:
    """Replace the log from ``from_idx`` onwards with ``entries``."""

    from_idx: int
    entries: List[Any]


@dataclass(frozen=True)
class SetPromise:
    """Set the promised round."""

    ballot: Any


@dataclass(frozen=True)
class SetDecidedIndex:
    """Set the decided index."""

    idx: int


@dataclass(frozen=True)
class SetAcceptedRound:
    """Set the latest accepted round."""

    ballot: Any


@dataclass(frozen=True)
class SetCompactedIdx:
    """Set the compacted (trimmed or snapshotted) index."""

    idx: int


@dataclass(frozen=True)
class Trim:
    """Remove entries up to ``idx``."""

    idx: int


@dataclass(frozen=True)
class SetStopsign:
    """Set or clear the stop sign."""

    stopsign: Optional[StopSign]


@dataclass(frozen=True)
class SetSnapshot:
    """Set or clear the snapshot."""

    snapshot: Optional[Any]


StorageOp = Union[
    AppendEntry,
    AppendEntries,
    AppendOnPrefix,
    SetPromise,
    SetDecidedIndex,
    SetAcceptedRound,
    SetCompactedIdx,
    Trim,
    SetStopsign,
    SetSnapshot,
]


class Storage(ABC):
    """Back-end that persists the log and the consensus state.

    Implementations raise :class:`StorageError` when an operation fails.
    """

    @abstractmethod
    def write_atomically(self, ops: Sequence[StorageOp]) -> None:
        """Perform all ``ops`` in order, all or none.

        If this raises, the state must be as it was before the call.
        Implementations may use :meth:`_apply` for each operation.
        """

    def _apply(self, op: StorageOp) -> None:
        """Carry out one storage operation through the matching method."""
        match op:
            case AppendEntry(entry):
                self.append_entry(entry)
            case AppendEntries(entries):
                self.append_entries(entries)
            case AppendOnPrefix(from_idx, entries):
                self.append_on_prefix(from_idx, entries)
            case SetPromise(ballot):
                self.set_promise(ballot)
            case SetDecidedIndex(idx):
                self.set_decided_idx(idx)
            case SetAcceptedRound(ballot):
                self.set_accepted_round(ballot)
            case SetCompactedIdx(idx):
                self.set_compacted_idx(idx)
            case Trim(idx):
                self.trim(idx)
            case SetStopsign(stopsign):
                self.set_stopsign(stopsign)
            case SetSnapshot(snapshot):
                self.set_snapshot(snapshot)
            case _:
                raise TypeError(f"unknown storage operation: {op!r}")

    @abstractmethod
    def append_entry(self, entry: Any) -> None:
        """Append an entry to the end of the log."""

    @abstractmethod
    def append_entries(self, entries: List[Any]) -> None:
        """Append ``entries`` to the end of the log."""

    @abstractmethod
    def append_on_prefix(self, from_idx: int, entries: List[Any]) -> None:
        """Append ``entries`` to the prefix ending before ``from_idx``."""

    @abstractmethod
    def set_promise(self, n_prom: Any) -> None:
        """Set the promised round."""

    @abstractmethod
    def get_promise(self) -> Optional[Any]:
        """Return the promised round, or ``None``."""

    @abstractmethod
    def set_decided_idx(self, ld: int) -> None:
        """Set the decided index."""

    @abstractmethod
    def get_decided_idx(self) -> int:
        """Return the decided index."""

    @abstractmethod
    def set_accepted_round(self, na: Any) -> None:
        """Set the latest accepted round."""

    @abstractmethod
    def get_accepted_round(self) -> Optional[Any]:
        """Return the latest accepted round, or ``None`` if nothing was accepted."""

    @abstractmethod
    def get_entries(self, from_idx: int, to_idx: int) -> List[Any]:
        """Return entries in ``[from_idx, to_idx)``, or an empty list if any are missing."""

    @abstractmethod
    def get_log_len(self) -> int:
        """Return the current length of the stored log."""

    @abstractmethod
    def get_suffix(self, from_idx: int) -> List[Any]:
        """Return the entries from ``from_idx`` onwards."""

    @abstractmethod
    def set_stopsign(self, stopsign: Optional[StopSign]) -> None:
        """Set or clear the stop sign."""

    @abstractmethod
    def get_stopsign(self) -> Optional[StopSign]:
        """Return the stored stop sign, or ``None``."""

    @abstractmethod
    def trim(self, idx: int) -> None:
        """Remove entries up to ``idx``."""

    @abstractmethod
    def set_compacted_idx(self, idx: int) -> None:
        """Set the compacted index."""

    @abstractmethod
    def get_compacted_idx(self) -> int:
        """Return the compacted index."""

    @abstractmethod
    def set_snapshot(self, snapshot: Optional[Any]) -> None:
        """Set or clear the snapshot."""

    @abstractmethod
    def get_snapshot(self) -> Optional[Any]:
        """Return the stored snapshot, or ``None``."""