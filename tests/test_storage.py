import copy
from dataclasses import dataclass, field

import pytest

from paxoslog.storage import (
    AppendEntries,
    AppendEntry,
    AppendOnPrefix,
    CompleteSnapshot,
    DeltaSnapshot,
    NoSnapshot,
    SetAcceptedRound,
    SetCompactedIdx,
    SetDecidedIndex,
    SetPromise,
    SetSnapshot,
    SetStopsign,
    Snapshot,
    StopSign,
    Storage,
    StorageError,
    Trim,
)


@dataclass
class ValueSnapshot(Snapshot):
    latest_value: int = 0
    snapshotted: list = field(default_factory=list)

    @classmethod
    def create(cls, entries):
        return cls(entries[-1] if entries else 0, list(entries))

    def merge(self, delta):
        if delta.snapshotted:
            self.latest_value = delta.snapshotted[-1]
            self.snapshotted.extend(delta.snapshotted)

    @classmethod
    def use_snapshots(cls):
        return True


class MemoryStorage(Storage):
    def __init__(self):
        self.log = []
        self.n_prom = None
        self.acc_round = None
        self.ld = 0
        self.compacted = 0
        self.stopsign = None
        self.snapshot = None

    def write_atomically(self, ops):
        saved = copy.deepcopy(self.__dict__)
        try:
            for op in ops:
                self._apply(op)
        except Exception:
            self.__dict__.update(saved)
            raise

    def append_entry(self, entry):
        self.log.append(entry)

    def append_entries(self, entries):
        self.log.extend(entries)

    def append_on_prefix(self, from_idx, entries):
        del self.log[from_idx - self.compacted:]
        self.log.extend(entries)

    def set_promise(self, n_prom):
        self.n_prom = n_prom

    def get_promise(self):
        return self.n_prom

    def set_decided_idx(self, ld):
        self.ld = ld

    def get_decided_idx(self):
        return self.ld

    def set_accepted_round(self, na):
        self.acc_round = na

    def get_accepted_round(self):
        return self.acc_round

    def get_entries(self, from_idx, to_idx):
        start, stop = from_idx - self.compacted, to_idx - self.compacted
        if start < 0 or stop > len(self.log):
            return []
        return self.log[start:stop]

    def get_log_len(self):
        return len(self.log)

    def get_suffix(self, from_idx):
        return self.log[max(from_idx - self.compacted, 0):]

    def set_stopsign(self, stopsign):
        self.stopsign = stopsign

    def get_stopsign(self):
        return self.stopsign

    def trim(self, idx):
        if idx <= self.compacted:
            raise StorageError("index already trimmed")
        del self.log[: min(idx - self.compacted, len(self.log))]

    def set_compacted_idx(self, idx):
        self.compacted = idx

    def get_compacted_idx(self):
        return self.compacted

    def set_snapshot(self, snapshot):
        self.snapshot = snapshot

    def get_snapshot(self):
        return self.snapshot


def test_storage_is_abstract():
    with pytest.raises(TypeError):
        Storage()


def test_snapshot_is_abstract():
    with pytest.raises(TypeError):
        Snapshot()


def test_write_atomically_applies_every_operation():
    storage = MemoryStorage()
    stopsign = StopSign(next_config="config-2", metadata=b"\xff")
    snap = ValueSnapshot.create([1, 2])
    storage.write_atomically(
        [
            AppendEntries([1, 2, 3]),
            AppendEntry(4),
            SetPromise("ballot"),
            SetDecidedIndex(3),
            SetAcceptedRound("ballot"),
            Trim(2),
            SetCompactedIdx(2),
            SetStopsign(stopsign),
            SetSnapshot(snap),
        ]
    )
    assert storage.get_log_len() == 2
    assert storage.get_entries(2, 4) == [3, 4]
    assert storage.get_suffix(3) == [4]
    assert storage.get_promise() == "ballot"
    assert storage.get_accepted_round() == "ballot"
    assert storage.get_decided_idx() == 3
    assert storage.get_compacted_idx() == 2
    assert storage.get_stopsign() == stopsign
    assert storage.get_snapshot() == snap


def test_append_on_prefix_replaces_suffix():
    storage = MemoryStorage()
    storage.write_atomically([AppendEntries([1, 2, 3]), AppendOnPrefix(1, [7, 8])])
    assert storage.get_suffix(0) == [1, 7, 8]


def test_clearing_stopsign_and_snapshot():
    storage = MemoryStorage()
    storage.write_atomically([SetStopsign(StopSign("cfg")), SetSnapshot(ValueSnapshot())])
    storage.write_atomically([SetStopsign(None), SetSnapshot(None)])
    assert storage.get_stopsign() is None
    assert storage.get_snapshot() is None


def test_unknown_operation_raises_and_rolls_back():
    storage = MemoryStorage()
    storage.write_atomically([AppendEntries([1, 2])])
    with pytest.raises(TypeError):
        storage.write_atomically([AppendEntry(3), "not an op"])
    assert storage.get_suffix(0) == [1, 2]


def test_storage_error_rolls_back():
    storage = MemoryStorage()
    storage.write_atomically([AppendEntries([1, 2]), Trim(1), SetCompactedIdx(1)])
    with pytest.raises(StorageError):
        storage.write_atomically([SetDecidedIndex(2), Trim(1)])
    assert storage.get_decided_idx() == 0
    assert storage.get_suffix(1) == [2]


def test_no_snapshot_cannot_be_created_or_merged():
    with pytest.raises(RuntimeError):
        NoSnapshot.create([1, 2])
    with pytest.raises(RuntimeError):
        NoSnapshot().merge(NoSnapshot())
    assert NoSnapshot.use_snapshots() is False
    assert NoSnapshot() == NoSnapshot()


def test_snapshot_create_and_merge():
    snap = ValueSnapshot.create([1, 2, 3])
    snap.merge(ValueSnapshot.create([4, 5]))
    assert snap.snapshotted == [1, 2, 3, 4, 5]
    assert snap.latest_value == 5
    assert ValueSnapshot.use_snapshots() is True
    assert CompleteSnapshot(snap) == CompleteSnapshot(ValueSnapshot.create([1, 2, 3, 4, 5]))
    assert DeltaSnapshot(snap) != DeltaSnapshot(ValueSnapshot.create([1, 2, 3]))


def test_stopsign_equality_and_default_metadata():
    assert StopSign("cfg").metadata is None
    assert StopSign("cfg", b"\xff") == StopSign("cfg", b"\xff")
    assert StopSign("cfg", b"\xff") != StopSign("cfg", None)


def test_snapshot_kinds_are_distinct():
    snap = ValueSnapshot.create([1])
    assert CompleteSnapshot(snap) == CompleteSnapshot(snap)
    assert CompleteSnapshot(snap) != DeltaSnapshot(snap)


def test_operations_compare_by_value():
    assert AppendOnPrefix(3, [1]) == AppendOnPrefix(3, [1])
    assert Trim(3) != SetCompactedIdx(3)