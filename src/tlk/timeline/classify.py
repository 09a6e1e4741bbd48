"""Partition a request's flat event list into buckets by kind."""
from __future__ import annotations

from dataclasses import dataclass, field

from tlk.trace.model import (
    CacheOp,
    DBQuery,
    DBTransaction,
    Event,
    Goroutine,
    HTTPCall,
    LogMessage,
    PubSubPublish,
    RPCCall,
)


@dataclass
class EventBuckets:
    """Events of one request grouped by kind, each bucket in input order.

    Transactions keep their nested queries; ``query_count`` counts those
    queries as if they were issued directly.
    """

    goroutines: list[Goroutine] = field(default_factory=list)
    queries: list[DBQuery] = field(default_factory=list)
    transactions: list[DBTransaction] = field(default_factory=list)
    rpc_calls: list[RPCCall] = field(default_factory=list)
    http_calls: list[HTTPCall] = field(default_factory=list)
    publishes: list[PubSubPublish] = field(default_factory=list)
    cache_ops: list[CacheOp] = field(default_factory=list)
    logs: list[LogMessage] = field(default_factory=list)

    @property
    def query_count(self) -> int:
        return len(self.queries) + sum(len(tx.queries) for tx in self.transactions)


_BUCKETS: dict[type, str] = {
    Goroutine: "goroutines",
    DBQuery: "queries",
    DBTransaction: "transactions",
    RPCCall: "rpc_calls",
    HTTPCall: "http_calls",
    PubSubPublish: "publishes",
    CacheOp: "cache_ops",
    LogMessage: "logs",
}


def classify_events(events: list[Event]) -> EventBuckets:
    """Sort events into typed buckets. Unknown kinds land in none of them."""
    buckets = EventBuckets()
    for ev in events:
        name = _BUCKETS.get(type(ev))
        if name is None:
            continue
        getattr(buckets, name).append(ev)
    return buckets
