# paxoslog

Building blocks for a Sequence Paxos replicated log. The package holds the
pieces that sit around the protocol:

- `paxoslog.storage` defines the abstract `Storage` back end and the storage
  operations that `Storage.write_atomically` receives: `AppendEntry`,
  `AppendEntries`, `AppendOnPrefix`, `SetPromise`, `SetDecidedIndex`,
  `SetAcceptedRound`, `SetCompactedIdx`, `Trim`, `SetStopsign` and
  `SetSnapshot`. It also defines `StopSign`, `StorageError`, the `Snapshot`
  base class with its `NoSnapshot` placeholder, and the `CompleteSnapshot` and
  `DeltaSnapshot` wrappers. `Storage._apply` sends one operation to the
  method that matches it.
- `paxoslog.internal_storage` provides `InternalStorage`, which wraps a
  `Storage`. It keeps the promise, the accepted round, the decided, accepted
  and compacted indexes and the stop sign in memory. It appends entries in
  batches of `batch_size` and reads ranges with `read(start, stop)` and
  `read_decided_suffix(from_idx)`. A read gives back `Decided`, `Undecided`,
  `Trimmed`, `SnapshottedEntry` and `StopSignEntry` values, or `None` when the
  range is out of bounds. `sync_log` brings the log in line with a `LogSync`.
  `try_trim` and `try_snapshot` compact the decided prefix. They raise
  `UndecidedIndexError` for an index past the decided one, and
  `create_snapshot` raises `TrimmedIndexError` for an index that is already
  compacted. Both errors derive from `CompactionError`.
- `paxoslog.state_cache` provides `StateCache`, which holds the state values
  and the pending batch of entries.
- `paxoslog.util` holds the leader's bookkeeping (`LeaderState`,
  `PromiseMetaData`), quorums (`Quorum.with_config`, `FlexibleQuorum`),
  `SequenceNumber.check_msg_status` with `MessageStatus`, `LogicalClock`,
  `LogSync` and `AcceptedMetaData`, and the log entry views listed above.
- `paxoslog.lfu` provides `LFUCache`. It is a bounded mapping that evicts the
  least frequently used key, and the oldest such key when several tie. It can
  be saved with `to_dict` and rebuilt with `from_dict`.
- `paxoslog.unicache` and `paxoslog.field_caches` hold the field caches
  `LFUniCache` and `LRUniCache`. A cache turns a value it has already seen
  into a small integer code (`Encoded`) and passes a new value through as it
  is (`NotEncoded`). `clone()` gives a copy that holds only the decoder, for a
  follower.
- `paxoslog.entries` provides the `entry` and `unicache_entry` class
  decorators, which declare a log entry type, its snapshot type and its
  cached fields (`CacheField`). `snapshot_type` looks up the declared snapshot
  type. `EntryCache` encodes and decodes whole entries.
- `paxoslog.ui` holds `ClusterState` (built with
  `ClusterState.from_leader_state`) and `OmniPaxosStates`, the state that a
  view of the cluster shows.
- `paxoslog.logger` provides `create_logger(file_path)`. It returns a standard
  `logging.Logger` that writes to stderr and to the given file. The file is
  truncated first and any missing directories are created.

## What it does not do

The package does not run consensus. It has no leader election, no message
types or message handling, and no network transport. It does not ship a
concrete storage back end either: to use `InternalStorage` you write your own
`Storage` subclass, kept in memory or on disk.

## Install

```
pip install .
```

## Examples

An LFU cache:

```python
from paxoslog.lfu import LFUCache

cache = LFUCache(2)
cache.set(1, 1)
cache.set(2, 2)
cache.get(1)           # 1 is now used more often than 2
cache.set(3, 3)        # evicts 2
assert cache.get(2) is None
assert cache[3] == 3
```

Caching the repeated fields of an entry:

```python
from dataclasses import dataclass

from paxoslog.entries import CacheField, EntryCache, unicache_entry
from paxoslog.unicache import Encoded, NotEncoded

@unicache_entry(fields=[CacheField("first_name", size=100)])
@dataclass
class Person:
    id: int
    first_name: str

leader = EntryCache(Person)
first = leader.try_encode(Person(1, "John"))    # (1, NotEncoded("John"))
second = leader.try_encode(Person(2, "John"))   # (2, Encoded(1))
assert first == (1, NotEncoded("John"))
assert second == (2, Encoded(1))

follower = EntryCache(Person)
assert follower.decode(first) == Person(1, "John")
assert follower.decode(second) == Person(2, "John")
```

The follower has to decode the results in the same order in which the leader
encoded them, so that both caches change in step.

## Tests

```
pip install ".[test]"
pytest
```