"""Building blocks for a Sequence Paxos replicated log: storage, compaction, batching, leader bookkeeping and field caches."""

__version__ = "0.1.0"