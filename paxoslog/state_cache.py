"""In-memory cache of the consensus state and the batch of pending entries."""

from __future__ import annotations

from typing import Any, List, Optional

from paxoslog.storage import StopSign
from paxoslog.unicache import UniCache


class StateCache:
    """Keeps the simple state values of a replica and batches appended entries.

    When a ``unicache`` is given, entries appended by the leader are also
    encoded and kept alongside the batch.
    """

    def __init__(
        self,
        batch_size: int,
        pid: Optional[int] = None,
        unicache: Optional[UniCache] = None,
    ) -> None:
        self.pid = pid
        self.batch_size = batch_size
        self.batched_entries: List[Any] = []
        self.promise: Any = None
        self.accepted_round: Any = None
        self.decided_idx = 0
        self.accepted_idx = 0
        self.compacted_idx = 0
        self.stopsign: Optional[StopSign] = None
        self.batched_processed_by_leader: List[Any] = []
        self.unicache = unicache

    def _is_leader(self) -> bool:
        return getattr(self.promise, "pid", None) == self.pid

    def append_entry(self, entry: Any) -> Optional[List[Any]]:
        """Batch ``entry``; return the whole batch if it is now full."""
        if self.unicache is not None:
            self.batched_processed_by_leader.append(self.unicache.try_encode(entry))
        self.batched_entries.append(entry)
        return self._take_entries_if_batch_is_full()

    def append_entries(self, entries: List[Any]) -> Optional[List[Any]]:
        """Batch ``entries``; return the whole batch if it is now full."""
        entries = list(entries)
        if self.unicache is not None and self._is_leader():
            self.batched_processed_by_leader.extend(
                self.unicache.try_encode(e) for e in entries
            )
        self.batched_entries.extend(entries)
        return self._take_entries_if_batch_is_full()

    def append_stopsign(self, stopsign: StopSign) -> Optional[List[Any]]:
        """Record ``stopsign`` and return the pending batch, if there is one."""
        self.stopsign = stopsign
        if not self.batched_entries:
            return None
        return self.take_batched_entries()

    def _take_entries_if_batch_is_full(self) -> Optional[List[Any]]:
        if len(self.batched_entries) >= self.batch_size:
            return self.take_batched_entries()
        return None

    def take_batched_entries(self) -> List[Any]:
        """Empty the batch and return what it held."""
        taken, self.batched_entries = self.batched_entries, []
        return taken

    def take_batched_processed(self) -> List[Any]:
        """Empty the batch of encoded entries and return what it held."""
        taken, self.batched_processed_by_leader = self.batched_processed_by_leader, []
        return taken

    def stopsign_is_decided(self) -> bool:
        """Whether a stop sign is present and the whole log is decided."""
        return self.stopsign is not None and self.decided_idx == self.accepted_idx