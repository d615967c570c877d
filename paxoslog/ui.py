"""State of the replica and the cluster as shown to a user interface."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional

from paxoslog.util import LeaderState


@dataclass
class ClusterState:
    """Accepted indexes of all nodes (indexed by node id) and the latest heartbeats."""

    accepted_indexes: List[int] = field(default_factory=list)
    heartbeats: List[Any] = field(default_factory=list)

    @classmethod
    def from_leader_state(cls, leader_state: LeaderState) -> "ClusterState":
        # A leading zero makes the list index equal to the node id.
        return cls(accepted_indexes=[0, *leader_state.accepted_indexes], heartbeats=[])


@dataclass
class OmniPaxosStates:
    """The replica's view of the current round, leader and cluster."""

    current_ballot: Any
    current_leader: Optional[int]
    decided_idx: int
    heartbeats: List[Any] = field(default_factory=list)
    cluster_state: ClusterState = field(default_factory=ClusterState)