"""Tests for event classification and request summaries."""
from __future__ import annotations

from tlk.timeline.classify import classify_events
from tlk.timeline.summary import RequestSummary, summarize_request
from tlk.trace.model import (
    DBQuery,
    DBTransaction,
    HTTPCall,
    OpaqueEvent,
    Request,
    RequestType,
)


class TestClassifyEvents:
    """Tests for classify_events."""

    def test_buckets(self, root_request: Request) -> None:
        buckets = classify_events(root_request.events)
        assert len(buckets.goroutines) == 2
        assert [q.query for q in buckets.queries] == ["SELECT 1"]
        assert len(buckets.transactions) == 1
        assert len(buckets.rpc_calls) == 1
        assert buckets.http_calls == []
        assert len(buckets.publishes) == 1
        assert len(buckets.cache_ops) == 1
        assert len(buckets.logs) == 1

    def test_query_count_includes_transactions(self, root_request: Request) -> None:
        assert classify_events(root_request.events).query_count == 3

    def test_unknown_kind_is_dropped(self) -> None:
        buckets = classify_events([OpaqueEvent(goid=1, type_name="Future")])
        assert buckets.query_count == 0
        assert buckets.logs == []

    def test_order_kept_within_bucket(self) -> None:
        a = HTTPCall(goid=1, start_time=20, url="https://a")
        b = HTTPCall(goid=1, start_time=10, url="https://b")
        assert classify_events([a, b]).http_calls == [a, b]

    def test_empty(self) -> None:
        buckets = classify_events([])
        assert buckets.goroutines == []
        assert buckets.query_count == 0


class TestSummarizeRequest:
    """Tests for summarize_request."""

    def test_counts(self, root_request: Request) -> None:
        summary = summarize_request(root_request)
        assert summary.num_calls == 1
        assert summary.num_queries == 3
        assert summary.num_publishes == 1
        assert summary.num_logs == 1
        assert summary.logs[0].msg == "loading order"

    def test_calls_counted_from_children(self, child_request: Request) -> None:
        req = Request(id="r", goid=1, type=RequestType.RPC, start_time=0,
                      children=[child_request])
        assert summarize_request(req).num_calls == 1

    def test_nested_transaction_queries(self) -> None:
        tx = DBTransaction(goid=1, txid=1, queries=[
            DBQuery(goid=1, txid=1), DBQuery(goid=1, txid=1), DBQuery(goid=1, txid=1),
        ])
        req = Request(id="r", goid=1, type=RequestType.RPC, start_time=0,
                      events=[DBQuery(goid=1), tx])
        assert summarize_request(req).num_queries == 4

    def test_query_count_ignores_order(self) -> None:
        events = [
            DBQuery(goid=1, start_time=10),
            DBTransaction(goid=1, txid=1, queries=[DBQuery(goid=1, txid=1), DBQuery(goid=1, txid=1)]),
            HTTPCall(goid=1, start_time=20),
            DBQuery(goid=1, start_time=30),
            DBTransaction(goid=1, txid=2, queries=[DBQuery(goid=1, txid=2)]),
        ]
        forward = Request(id="r", goid=1, type=RequestType.RPC, start_time=0, events=events)
        backward = Request(id="r", goid=1, type=RequestType.RPC, start_time=0,
                           events=list(reversed(events)))

        assert summarize_request(forward).num_queries == 5
        assert summarize_request(backward).num_queries == 5
        assert classify_events(events).query_count == classify_events(list(reversed(events))).query_count == 5

    def test_empty_request(self) -> None:
        req = Request(id="r", goid=1, type=RequestType.RPC, start_time=0)
        assert summarize_request(req) == RequestSummary()

    def test_labels_pluralize(self, root_request: Request) -> None:
        assert summarize_request(root_request).labels() == {
            "calls": "1 API Call",
            "queries": "3 DB Queries",
            "publishes": "1 Publish",
            "logs": "1 Log Line",
        }
        assert RequestSummary().labels()["publishes"] == "0 Publishes"
