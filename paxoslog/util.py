"""Leader bookkeeping, log entry views, sequence numbers, clocks and quorums."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from typing import Any, List, Optional, Tuple, Union

from paxoslog.storage import CompleteSnapshot, DeltaSnapshot, StopSign

BUFFER_SIZE = 100000
BLE_BUFFER_SIZE = 100
ELECTION_TIMEOUT = 10
RESEND_MESSAGE_TIMEOUT = 1000
FLUSH_BATCH_TIMEOUT = 2000

READ_ERROR_MSG = "Error reading from storage."
WRITE_ERROR_MSG = "Error writing to storage."


def _ballot_gt(a: Any, b: Any) -> bool:
    """Compare ballots where ``None`` stands for the default, lowest ballot."""
    if a is None:
        return False
    if b is None:
        return True
    return a > b


@dataclass
class LogSync:
    """Helps another server bring its log in line with ours."""

    decided_snapshot: Optional[Union[CompleteSnapshot, DeltaSnapshot]]
    suffix: List[Any]
    sync_idx: int
    stopsign: Optional[StopSign] = None


@dataclass(eq=False)
class PromiseMetaData:
    """A promise without its log update.

    Equality ignores ``decided_idx``; ordering is by accepted ballot, then
    by accepted index.
    """

    n_accepted: Any = None
    accepted_idx: int = 0
    decided_idx: int = 0
    pid: int = 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PromiseMetaData):
            return NotImplemented
        return (
            self.n_accepted == other.n_accepted
            and self.accepted_idx == other.accepted_idx
            and self.pid == other.pid
        )

    __hash__ = None  # type: ignore[assignment]

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, PromiseMetaData):
            return NotImplemented
        if self == other:
            return False
        return _ballot_gt(self.n_accepted, other.n_accepted) or (
            self.n_accepted == other.n_accepted and self.accepted_idx > other.accepted_idx
        )

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, PromiseMetaData):
            return NotImplemented
        return not self == other and not self > other

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, PromiseMetaData):
            return NotImplemented
        return self == other or self > other

    def __le__(self, other: object) -> bool:
        if not isinstance(other, PromiseMetaData):
            return NotImplemented
        return self == other or self < other


class _PromiseState(enum.Enum):
    NOT_PROMISED = enum.auto()
    PROMISED_HIGHER = enum.auto()


class MessageStatus(enum.Enum):
    """How an incoming accept message relates to the expected sequence."""

    EXPECTED = enum.auto()
    DROPPED_PRECEDING = enum.auto()
    OUTDATED = enum.auto()


@dataclass(frozen=True, order=True)
class SequenceNumber:
    """Position of a message in the accept phase: a session and a counter in it."""

    session: int = 0
    counter: int = 0

    def check_msg_status(self, msg_seq_num: "SequenceNumber") -> MessageStatus:
        """Classify an incoming message's sequence number against this one."""
        if msg_seq_num.session == self.session and msg_seq_num.counter == self.counter + 1:
            return MessageStatus.EXPECTED
        if msg_seq_num <= self:
            return MessageStatus.OUTDATED
        return MessageStatus.DROPPED_PRECEDING


class LogicalClock:
    """Counts ticks and signals every ``timeout`` ticks."""

    def __init__(self, timeout: int) -> None:
        self.time = 0
        self.timeout = timeout

    def tick_and_check_timeout(self) -> bool:
        self.time += 1
        if self.time == self.timeout:
            self.time = 0
            return True
        return False


@dataclass(frozen=True)
class FlexibleQuorum:
    """Read and write quorum sizes chosen by the user."""

    read_quorum_size: int
    write_quorum_size: int


@dataclass(frozen=True)
class Quorum:
    """The number of nodes needed in the prepare and in the accept phase."""

    read_quorum_size: int
    write_quorum_size: int

    @classmethod
    def majority(cls, size: int) -> "Quorum":
        return cls(size, size)

    @classmethod
    def with_config(cls, flexible_quorum: Optional[FlexibleQuorum], num_nodes: int) -> "Quorum":
        if flexible_quorum is None:
            return cls.majority(num_nodes // 2 + 1)
        return cls(flexible_quorum.read_quorum_size, flexible_quorum.write_quorum_size)

    def is_prepare_quorum(self, num_nodes: int) -> bool:
        return num_nodes >= self.read_quorum_size

    def is_accept_quorum(self, num_nodes: int) -> bool:
        return num_nodes >= self.write_quorum_size


class LeaderState:
    """What a leader tracks about its followers during prepare and accept."""

    def __init__(self, n_leader: Any, max_pid: int, quorum: Quorum) -> None:
        self.n_leader = n_leader
        self.max_pid = max_pid
        self.quorum = quorum
        self._promises_meta: List[Union[_PromiseState, PromiseMetaData]] = [
            _PromiseState.NOT_PROMISED
        ] * max_pid
        self._follower_seq_nums: List[SequenceNumber] = [SequenceNumber()] * max_pid
        self.accepted_indexes: List[int] = [0] * max_pid
        self.max_promise_meta = PromiseMetaData()
        self._max_promise_sync: Optional[LogSync] = None
        self._batch_accept_meta: List[Optional[Tuple[Any, int]]] = [None] * max_pid

    def _idx(self, pid: int) -> int:
        if not 1 <= pid <= self.max_pid:
            raise IndexError(f"unknown node id {pid}")
        return pid - 1

    def increment_seq_num_session(self, pid: int) -> None:
        """Start a new session of accepts for ``pid``."""
        idx = self._idx(pid)
        current = self._follower_seq_nums[idx]
        self._follower_seq_nums[idx] = SequenceNumber(current.session + 1, 0)

    def next_seq_num(self, pid: int) -> SequenceNumber:
        idx = self._idx(pid)
        current = self._follower_seq_nums[idx]
        self._follower_seq_nums[idx] = replace(current, counter=current.counter + 1)
        return self._follower_seq_nums[idx]

    def get_seq_num(self, pid: int) -> SequenceNumber:
        return self._follower_seq_nums[self._idx(pid)]

    def set_promise(
        self,
        n_accepted: Any,
        accepted_idx: int,
        decided_idx: int,
        log_sync: Optional[LogSync],
        from_pid: int,
        check_max_prom: bool,
    ) -> bool:
        """Record a promise; return whether a prepare quorum has promised."""
        idx = self._idx(from_pid)
        meta = PromiseMetaData(n_accepted, accepted_idx, decided_idx, from_pid)
        if check_max_prom and meta > self.max_promise_meta:
            self.max_promise_meta = replace(meta)
            self._max_promise_sync = log_sync
        self._promises_meta[idx] = meta
        num_promised = sum(isinstance(p, PromiseMetaData) for p in self._promises_meta)
        return self.quorum.is_prepare_quorum(num_promised)

    def reset_promise(self, pid: int) -> None:
        self._promises_meta[self._idx(pid)] = _PromiseState.NOT_PROMISED

    def lost_promise(self, pid: int) -> None:
        """Node ``pid`` was seen with a ballot greater than ours."""
        self._promises_meta[self._idx(pid)] = _PromiseState.PROMISED_HIGHER

    def take_max_promise_sync(self) -> Optional[LogSync]:
        taken, self._max_promise_sync = self._max_promise_sync, None
        return taken

    def get_max_decided_idx(self) -> int:
        return max(
            (p.decided_idx for p in self._promises_meta if isinstance(p, PromiseMetaData)),
            default=0,
        )

    def get_promise_meta(self, pid: int) -> PromiseMetaData:
        meta = self._promises_meta[self._idx(pid)]
        if not isinstance(meta, PromiseMetaData):
            raise LookupError("No Metadata found for promised follower")
        return meta

    def get_min_all_accepted_idx(self) -> int:
        return min(self.accepted_indexes)

    def reset_batch_accept_meta(self) -> None:
        self._batch_accept_meta = [None] * self.max_pid

    def get_promised_followers(self) -> List[int]:
        leader_pid = getattr(self.n_leader, "pid", None)
        return [
            pid
            for pid, state in enumerate(self._promises_meta, start=1)
            if isinstance(state, PromiseMetaData) and pid != leader_pid
        ]

    def get_preparable_peers(self) -> List[int]:
        """The peers that have not promised a ballot higher than ours."""
        return [
            pid
            for pid, state in enumerate(self._promises_meta, start=1)
            if state is _PromiseState.NOT_PROMISED
        ]

    def set_batch_accept_meta(self, pid: int, idx: Optional[int]) -> None:
        self._batch_accept_meta[self._idx(pid)] = None if idx is None else (self.n_leader, idx)

    def set_accepted_idx(self, pid: int, idx: int) -> None:
        self.accepted_indexes[self._idx(pid)] = idx

    def get_batch_accept_meta(self, pid: int) -> Optional[Tuple[Any, int]]:
        return self._batch_accept_meta[self._idx(pid)]

    def get_decided_idx(self, pid: int) -> Optional[int]:
        meta = self._promises_meta[self._idx(pid)]
        return meta.decided_idx if isinstance(meta, PromiseMetaData) else None

    def get_accepted_idx(self, pid: int) -> int:
        return self.accepted_indexes[self._idx(pid)]

    def is_chosen(self, idx: int) -> bool:
        num_accepted = sum(accepted >= idx for accepted in self.accepted_indexes)
        return self.quorum.is_accept_quorum(num_accepted)


@dataclass(frozen=True)
class Decided:
    """A decided entry."""

    entry: Any


@dataclass(frozen=True)
class Undecided:
    """An entry not yet decided; it may later be removed from the log."""

    entry: Any


@dataclass(frozen=True)
class Trimmed:
    """The entry has been trimmed away."""

    trimmed_idx: int


@dataclass(frozen=True)
class SnapshottedEntry:
    """The entry has been folded into a snapshot."""

    trimmed_idx: int
    snapshot: Any


@dataclass(frozen=True)
class StopSignEntry:
    """The log was stopped for reconfiguration; ``decided`` tells if that is final."""

    stopsign: StopSign
    decided: bool


LogEntry = Union[Decided, Undecided, Trimmed, SnapshottedEntry, StopSignEntry]


@dataclass
class AcceptedMetaData:
    """The entries flushed by an append, and the accepted index after it."""

    accepted_idx: int
    entries: List[Any] = field(default_factory=list)