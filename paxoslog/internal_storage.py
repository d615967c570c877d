"""Interface between the consensus protocol and a storage back-end, with a state cache."""

from __future__ import annotations

import copy
import enum
from typing import Any, List, Optional, Tuple, Union

from paxoslog.entries import snapshot_type
from paxoslog.state_cache import StateCache
from paxoslog.storage import (
    AppendOnPrefix,
    CompleteSnapshot,
    DeltaSnapshot,
    SetAcceptedRound,
    SetCompactedIdx,
    SetDecidedIndex,
    SetSnapshot,
    SetStopsign,
    Storage,
    StopSign,
    Trim,
)
from paxoslog.unicache import UniCache
from paxoslog.util import (
    AcceptedMetaData,
    Decided,
    LogEntry,
    LogSync,
    SnapshottedEntry,
    StopSignEntry,
    Trimmed,
    Undecided,
)


class CompactionError(Exception):
    """Raised when the log cannot be trimmed or snapshotted at the requested index."""

    def __init__(self, message: str, idx: Optional[int] = None) -> None:
        super().__init__(message)
        self.idx = idx


class TrimmedIndexError(CompactionError):
    """The requested index has already been compacted; ``idx`` is the compacted index."""

    def __init__(self, idx: int) -> None:
        super().__init__(f"index is already compacted up to {idx}", idx)


class UndecidedIndexError(CompactionError):
    """The requested index is not decided yet; ``idx`` is the decided index."""

    def __init__(self, idx: int) -> None:
        super().__init__(f"index is beyond the decided index {idx}", idx)


class _Kind(enum.Enum):
    ENTRY = enum.auto()
    COMPACTED = enum.auto()


_IndexEntry = Union[_Kind, StopSign]


class InternalStorage:
    """Serves reads and writes of the replicated log on top of a :class:`Storage`.

    Simple state values are cached in memory and entries are appended in batches
    of ``batch_size``. Indexes are positions in the log as if it were never compacted.
    """

    def __init__(
        self,
        storage: Storage,
        batch_size: int,
        pid: Optional[int] = None,
        unicache: Optional[UniCache] = None,
    ) -> None:
        self.storage = storage
        self._state = StateCache(batch_size, pid, unicache)
        self._entry_type: Optional[type] = None
        self._load_cache()

    def _load_cache(self) -> None:
        state = self._state
        state.promise = self.storage.get_promise()
        state.decided_idx = self.storage.get_decided_idx()
        state.accepted_round = self.storage.get_accepted_round()
        state.compacted_idx = self.storage.get_compacted_idx()
        state.stopsign = self.storage.get_stopsign()
        state.accepted_idx = self.storage.get_log_len() + state.compacted_idx
        if state.stopsign is not None:
            state.accepted_idx += 1

    # Cached state

    @property
    def decided_idx(self) -> int:
        return self._state.decided_idx

    @property
    def accepted_idx(self) -> int:
        """The length of the replicated log, as if it was never compacted."""
        return self._state.accepted_idx

    @property
    def compacted_idx(self) -> int:
        return self._state.compacted_idx

    @property
    def promise(self) -> Any:
        return self._state.promise

    @property
    def accepted_round(self) -> Any:
        return self._state.accepted_round

    @property
    def stopsign(self) -> Optional[StopSign]:
        return self._state.stopsign

    @property
    def unicache(self) -> Optional[UniCache]:
        return self._state.unicache

    @unicache.setter
    def unicache(self, unicache: Optional[UniCache]) -> None:
        self._state.unicache = unicache

    def _remember_entry_type(self, entries: List[Any]) -> None:
        if entries:
            self._entry_type = type(entries[-1])

    # Reading

    def read_decided_suffix(self, from_idx: int) -> Optional[List[LogEntry]]:
        """Read all decided entries from ``from_idx``; ``None`` if there are none."""
        decided_idx = self.decided_idx
        if from_idx < decided_idx:
            return self.read(from_idx, decided_idx)
        return None

    def read(self, start: int = 0, stop: Optional[int] = None) -> Optional[List[LogEntry]]:
        """Read the entries in ``[start, stop)``; ``None`` if the range is out of bounds.

        ``stop`` defaults to the end of the accepted log. Compacted entries are
        represented by a single :class:`Trimmed` or :class:`SnapshottedEntry`.
        """
        from_idx = start
        to_idx = self.accepted_idx if stop is None else stop
        if to_idx == 0:
            return None
        compacted_idx = self.compacted_idx
        accepted_idx = self.accepted_idx
        to_type = self._get_entry_type(to_idx - 1, compacted_idx, accepted_idx)
        if to_type is None:
            return None
        if to_type is _Kind.COMPACTED:
            return [self._create_compacted_entry(compacted_idx)]
        from_type = self._get_entry_type(from_idx, compacted_idx, accepted_idx)
        if from_type is None:
            return None

        match (from_type, to_type):
            case (_Kind.ENTRY, _Kind.ENTRY):
                return self._create_read_log_entries(from_idx, to_idx)
            case (_Kind.ENTRY, StopSign() as ss):
                entries = self._create_read_log_entries(from_idx, to_idx - 1)
                entries.append(StopSignEntry(ss, self.stopsign_is_decided()))
                return entries
            case (_Kind.COMPACTED, _Kind.ENTRY):
                return [
                    self._create_compacted_entry(compacted_idx),
                    *self._create_read_log_entries(compacted_idx, to_idx),
                ]
            case (_Kind.COMPACTED, StopSign() as ss):
                return [
                    self._create_compacted_entry(compacted_idx),
                    *self._create_read_log_entries(compacted_idx, to_idx - 1),
                    StopSignEntry(ss, self.stopsign_is_decided()),
                ]
            case (StopSign() as ss, StopSign()):
                return [StopSignEntry(ss, self.stopsign_is_decided())]
        raise ValueError(f"Unexpected read combination: {(from_type, to_type)!r}")

    def _get_entry_type(
        self, idx: int, compacted_idx: int, accepted_idx: int
    ) -> Optional[_IndexEntry]:
        if idx < compacted_idx:
            return _Kind.COMPACTED
        if idx + 1 < accepted_idx:
            return _Kind.ENTRY
        if idx + 1 == accepted_idx:
            ss = self.stopsign
            return ss if ss is not None else _Kind.ENTRY
        return None

    def _create_read_log_entries(self, from_idx: int, to_idx: int) -> List[LogEntry]:
        decided_idx = self.decided_idx
        return [
            Decided(e) if log_idx < decided_idx else Undecided(e)
            for log_idx, e in enumerate(self.get_entries(from_idx, to_idx), start=from_idx)
        ]

    def _create_compacted_entry(self, compacted_idx: int) -> LogEntry:
        snapshot = self.storage.get_snapshot()
        if snapshot is None:
            return Trimmed(compacted_idx)
        return SnapshottedEntry(compacted_idx, snapshot)

    # Appending

    def append_entry_with_batching(self, entry: Any) -> Optional[AcceptedMetaData]:
        """Batch ``entry``; if the batch fills up, flush it and describe what was flushed."""
        self._remember_entry_type([entry])
        return self._flush_if_full_batch(self._state.append_entry(entry))

    def append_entries_with_batching(self, entries: List[Any]) -> Optional[AcceptedMetaData]:
        """Batch ``entries``; if the batch fills up, flush it and describe what was flushed."""
        entries = list(entries)
        self._remember_entry_type(entries)
        return self._flush_if_full_batch(self._state.append_entries(entries))

    def append_stopsign(self, stopsign: StopSign) -> Optional[AcceptedMetaData]:
        """Flush the batch and append ``stopsign``; describe any flushed entries."""
        flushed = self._flush_if_full_batch(self._state.append_stopsign(stopsign))
        self.storage.set_stopsign(stopsign)
        self._state.accepted_idx += 1
        return flushed

    def _flush_if_full_batch(self, flushed: Optional[List[Any]]) -> Optional[AcceptedMetaData]:
        if flushed is None:
            return None
        accepted_idx = self.append_entries_without_batching(list(flushed))
        if self._state.unicache is not None:
            entries = self._state.take_batched_processed()
        else:
            entries = flushed
        return AcceptedMetaData(accepted_idx, entries)

    def append_entries_and_get_accepted_idx(self, entries: List[Any]) -> Optional[int]:
        """Batch ``entries``; if the batch fills up, flush it and return the accepted index."""
        entries = list(entries)
        self._remember_entry_type(entries)
        flushed = self._state.append_entries(entries)
        if flushed is None:
            return None
        return self.append_entries_without_batching(flushed)

    def decode_entries(self, encoded_entries: List[Any]) -> List[Any]:
        """Decode entries encoded by the leader's cache."""
        cache = self._state.unicache
        if cache is None:
            raise RuntimeError("no unicache configured for decoding entries")
        decoded = [cache.decode(e) for e in encoded_entries]
        self._remember_entry_type(decoded)
        return decoded

    def flush_batch(self) -> int:
        """Write the pending batch to storage and return the accepted index."""
        if self._state.unicache is not None:
            self._state.batched_processed_by_leader.clear()
        return self.append_entries_without_batching(self._state.take_batched_entries())

    def flush_batch_and_get_entries(self) -> Optional[AcceptedMetaData]:
        """Write the pending batch, if any, and describe what was flushed."""
        flushed = self._state.take_batched_entries() if self._state.batched_entries else None
        return self._flush_if_full_batch(flushed)

    def append_entries_without_batching(self, entries: List[Any]) -> int:
        """Append ``entries`` straight to storage and return the accepted index."""
        entries = list(entries)
        self.storage.append_entries(entries)
        self._remember_entry_type(entries)
        self._state.accepted_idx += len(entries)
        return self._state.accepted_idx

    # Synchronisation

    def sync_log(
        self, accepted_round: Any, decided_idx: int, log_sync: Optional[LogSync]
    ) -> int:
        """Bring the log in line with ``log_sync`` atomically; return the accepted index."""
        state = self._state
        state.accepted_round = accepted_round
        state.decided_idx = decided_idx
        ops: List[Any] = [SetAcceptedRound(accepted_round), SetDecidedIndex(decided_idx)]
        if log_sync is not None:
            sync_idx = log_sync.sync_idx
            match log_sync.decided_snapshot:
                case CompleteSnapshot(complete):
                    state.compacted_idx = sync_idx
                    ops += [Trim(sync_idx), SetCompactedIdx(sync_idx), SetSnapshot(complete)]
                case DeltaSnapshot(delta):
                    snapshot = self._create_decided_snapshot(type(delta))
                    snapshot.merge(delta)
                    state.compacted_idx = sync_idx
                    ops += [Trim(sync_idx), SetCompactedIdx(sync_idx), SetSnapshot(snapshot)]
            suffix = list(log_sync.suffix)
            self._remember_entry_type(suffix)
            state.accepted_idx = sync_idx + len(suffix)
            ops.append(AppendOnPrefix(sync_idx, suffix))
            if log_sync.stopsign is not None:
                state.stopsign = log_sync.stopsign
                state.accepted_idx += 1
                ops.append(SetStopsign(log_sync.stopsign))
            elif state.stopsign is not None:
                state.stopsign = None
                ops.append(SetStopsign(None))
        self.storage.write_atomically(ops)
        return state.accepted_idx

    # Snapshots and compaction

    def _snapshot_class(self, entries: List[Any], stored: Any = None) -> type:
        if stored is not None:
            return type(stored)
        sample = entries[0] if entries else self._entry_type
        if sample is None:
            raise CompactionError("cannot tell the snapshot type: no entries are known")
        return snapshot_type(sample)

    def _create_decided_snapshot(self, snapshot_class: Optional[type] = None) -> Any:
        return self._create_snapshot(self._log_decided_idx(), snapshot_class)

    def create_snapshot(self, compact_idx: int) -> Any:
        """Snapshot the log up to ``compact_idx``, merged onto any stored snapshot."""
        return self._create_snapshot(compact_idx)

    def _create_snapshot(self, compact_idx: int, snapshot_class: Optional[type] = None) -> Any:
        current = self.compacted_idx
        if compact_idx < current:
            raise TrimmedIndexError(current)
        entries = self.storage.get_entries(current, compact_idx)
        stored = self.storage.get_snapshot()
        cls = snapshot_class if stored is None and snapshot_class is not None else None
        delta = (cls or self._snapshot_class(entries, stored)).create(entries)
        if stored is None:
            return delta
        merged = copy.deepcopy(stored)
        merged.merge(delta)
        return merged

    def create_diff_snapshot(
        self, from_idx: int
    ) -> Tuple[Optional[Union[CompleteSnapshot, DeltaSnapshot]], int]:
        """Snapshot the decided log from ``from_idx``; also return its compacted index.

        If part of the range is already compacted, a complete snapshot of the
        whole decided log is made instead of a delta.
        """
        log_decided_idx = self._log_decided_idx()
        compacted_idx = self.compacted_idx
        snapshot: Optional[Union[CompleteSnapshot, DeltaSnapshot]]
        if from_idx <= compacted_idx:
            if compacted_idx < log_decided_idx:
                snapshot = CompleteSnapshot(self.create_snapshot(log_decided_idx))
            else:
                stored = self.get_snapshot()
                snapshot = None if stored is None else CompleteSnapshot(stored)
        else:
            diff_entries = self.get_entries(from_idx, log_decided_idx)
            cls = self._snapshot_class(diff_entries, self.storage.get_snapshot())
            snapshot = DeltaSnapshot(cls.create(diff_entries))
        return snapshot, log_decided_idx

    def _compaction_target(self, idx: int) -> int:
        decided_idx = self.decided_idx
        if idx < decided_idx:
            return idx
        if idx == decided_idx:
            return self._log_decided_idx()
        raise UndecidedIndexError(decided_idx)

    def try_trim(self, idx: int) -> None:
        """Remove the decided entries before ``idx`` from storage."""
        new_compacted_idx = self._compaction_target(idx)
        if new_compacted_idx > self.compacted_idx:
            self.storage.write_atomically(
                [Trim(new_compacted_idx), SetCompactedIdx(new_compacted_idx)]
            )
            self._state.compacted_idx = new_compacted_idx

    def try_snapshot(self, snapshot_idx: Optional[int]) -> None:
        """Fold the decided entries before ``snapshot_idx`` (default: all) into the snapshot."""
        if snapshot_idx is None:
            new_compacted_idx = self._log_decided_idx()
        else:
            new_compacted_idx = self._compaction_target(snapshot_idx)
        if new_compacted_idx > self.compacted_idx:
            snapshot = self.create_snapshot(new_compacted_idx)
            self.storage.write_atomically(
                [
                    Trim(new_compacted_idx),
                    SetCompactedIdx(new_compacted_idx),
                    SetSnapshot(snapshot),
                ]
            )
            self._state.compacted_idx = new_compacted_idx

    # State writes and pass-through reads

    def set_promise(self, n_prom: Any) -> None:
        self._state.promise = n_prom
        self.storage.set_promise(n_prom)

    def set_decided_idx(self, idx: int) -> None:
        self._state.decided_idx = idx
        self.storage.set_decided_idx(idx)

    def _log_decided_idx(self) -> int:
        decided = self.decided_idx
        return decided - 1 if self.stopsign_is_decided() else decided

    def get_entries(self, from_idx: int, to_idx: int) -> List[Any]:
        return self.storage.get_entries(from_idx, to_idx)

    def get_suffix(self, from_idx: int) -> List[Any]:
        return self.storage.get_suffix(from_idx)

    def set_stopsign(self, stopsign: Optional[StopSign]) -> int:
        """Set or clear the stop sign and return the accepted index."""
        state = self._state
        if stopsign is not None and state.stopsign is None:
            state.accepted_idx += 1
        elif stopsign is None and state.stopsign is not None:
            state.accepted_idx -= 1
        state.stopsign = stopsign
        self.storage.set_stopsign(stopsign)
        return state.accepted_idx

    def stopsign_is_decided(self) -> bool:
        return self._state.stopsign_is_decided()

    def get_snapshot(self) -> Any:
        return self.storage.get_snapshot()