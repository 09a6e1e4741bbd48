"""Detail payloads shown in a bar-event's tooltip.

Each bar-event kind gets its own record holding only what the tooltip
shows: labels, code blocks, and the stack a stack-trace button opens.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Optional, Union

from tlk.errors import UnresolvedReferenceError
from tlk.timeline.payload import CodeBlock, ContentMode, CorrelatedPayload, correlate_payload, render_data
from tlk.timeline.style import duration_label, latency_str
from tlk.trace.codec import decode_text
from tlk.trace.model import (
    BarEvent,
    CacheKeyspaceLocation,
    CacheOp,
    CacheResult,
    DBQuery,
    HTTPCall,
    PubSubPublish,
    Request,
    RPCCall,
    RPCDefLocation,
    Stack,
    Trace,
)

SUCCESS_TEXT = "Completed successfully."

CACHE_RESULT_TEXT: dict[CacheResult, str] = {
    CacheResult.NO_SUCH_KEY: "Key not found",
    CacheResult.CONFLICT: "Precondition failed",
    CacheResult.OK: "Completed successfully",
}


def error_text(err: Optional[bytes]) -> Optional[str]:
    return decode_text(err) if err is not None else None


class _Outcome:
    error: Optional[str]

    @property
    def outcome(self) -> str:
        """The error text, or the success line when there is none."""
        return self.error if self.error is not None else SUCCESS_TEXT


@dataclass
class DBQueryDetail(_Outcome):
    duration: str
    stack: Stack
    query: CodeBlock
    error: Optional[str] = None

    title = "DB Query"


@dataclass
class RPCCallDetail(_Outcome):
    duration: str
    stack: Stack
    endpoint: Optional[str]
    request: Optional[CorrelatedPayload]
    response: Optional[CodeBlock]
    error: Optional[str] = None

    @property
    def title(self) -> str:
        return f"API Call: {self.endpoint}" if self.endpoint else "API Call: Unknown Endpoint"


@dataclass
class HTTPPhase:
    label: str
    value: str


@dataclass
class HTTPCallDetail(_Outcome):
    duration: str
    url: str
    title: str
    response: str
    error: Optional[str] = None
    phases: list[HTTPPhase] = field(default_factory=list)


@dataclass
class PubSubPublishDetail(_Outcome):
    duration: str
    stack: Stack
    topic: str
    message_id: str
    message: CodeBlock
    error: Optional[str] = None

    @property
    def title(self) -> str:
        return f"Publish: {self.topic}"


@dataclass
class CacheOpDetail:
    duration: str
    stack: Optional[Stack]
    title: str
    operation: str
    keyspace: Optional[str]
    keys: list[str]
    result: str


EventDetail = Union[DBQueryDetail, RPCCallDetail, HTTPCallDetail, PubSubPublishDetail, CacheOpDetail]


def build_event_detail(trace: Trace, req: Request, ev: BarEvent) -> EventDetail:
    """Tooltip payload for ``ev``, a bar-event in one of ``req``'s lanes.

    Raises:
        UnresolvedReferenceError: ``ev`` is an RPC call whose target request
            is not among ``req``'s children.
    """
    if isinstance(ev, DBQuery):
        return _db_query_detail(trace, ev)
    if isinstance(ev, RPCCall):
        return _rpc_call_detail(trace, req, ev)
    if isinstance(ev, HTTPCall):
        return _http_call_detail(trace, ev)
    if isinstance(ev, PubSubPublish):
        return _publish_detail(trace, ev)
    if isinstance(ev, CacheOp):
        return _cache_op_detail(trace, ev)
    raise TypeError(f"{type(ev).__name__} is not a bar event")


def _db_query_detail(trace: Trace, q: DBQuery) -> DBQueryDetail:
    return DBQueryDetail(
        duration=duration_label(trace, q.start_time, q.end_time),
        stack=q.stack,
        query=render_data([q.query.encode("utf-8")], mode=ContentMode.SQL),
        error=error_text(q.err),
    )


def _rpc_call_detail(trace: Trace, req: Request, call: RPCCall) -> RPCCallDetail:
    target = req.child(call.req_id)
    if target is None:
        raise UnresolvedReferenceError(call.req_id, f"RPC call in request {req.id}")

    loc = trace.location(call.def_loc)
    endpoint = None
    if isinstance(loc, RPCDefLocation):
        endpoint = f"{loc.service_name}.{loc.rpc_name}"

    return RPCCallDetail(
        duration=duration_label(trace, call.start_time, call.end_time),
        stack=call.stack,
        endpoint=endpoint,
        request=correlate_payload(trace, target) if target.inputs else None,
        response=render_data(target.outputs) if target.outputs else None,
        error=error_text(call.err),
    )


def _http_call_detail(trace: Trace, call: HTTPCall) -> HTTPCallDetail:
    return HTTPCallDetail(
        duration=duration_label(trace, call.start_time, call.end_time),
        url=call.url,
        title=f"HTTP {call.method} {call.host}{call.path}",
        response=f"HTTP {call.status_code}" if call.end_time is not None else "No response recorded.",
        error=error_text(call.err),
        phases=http_phases(trace, call),
    )


def http_phases(trace: Trace, call: HTTPCall) -> list[HTTPPhase]:
    """Connection timeline, each phase measured from the last known mark."""
    m = call.metrics

    def since(t: int, mark: int) -> str:
        return latency_str(trace.time_unit.to_ms(t - mark))

    def first(*marks: Optional[int]) -> int:
        return next(t for t in (*marks, call.start_time) if t is not None)

    phases: list[HTTPPhase] = []
    if m.conn_reused:
        phases.append(HTTPPhase("Reused Connection", "Yes"))
    else:
        if m.dns_done is not None:
            phases.append(HTTPPhase("DNS Lookup", since(m.dns_done, call.start_time)))
        if m.tls_handshake_done is not None:
            phases.append(HTTPPhase("TLS Handshake", since(m.tls_handshake_done, first(m.dns_done))))
    if m.wrote_request is not None:
        phases.append(HTTPPhase(
            "Wrote Request", since(m.wrote_request, first(m.tls_handshake_done, m.got_conn)),
        ))
    if m.first_response is not None:
        phases.append(HTTPPhase(
            "Response Start", since(m.first_response, first(m.wrote_headers, m.got_conn)),
        ))
    return phases


def _publish_detail(trace: Trace, pub: PubSubPublish) -> PubSubPublishDetail:
    return PubSubPublishDetail(
        duration=duration_label(trace, pub.start_time, pub.end_time),
        stack=pub.stack,
        topic=pub.topic,
        message_id=pub.message_id if pub.message_id is not None else "Not Sent",
        message=render_data([pub.message]),
        error=error_text(pub.err),
    )


def _cache_op_detail(trace: Trace, op: CacheOp) -> CacheOpDetail:
    loc = trace.location(op.def_loc)
    keyspace = loc.var_name if isinstance(loc, CacheKeyspaceLocation) else None
    if op.err is not None:
        result = decode_text(op.err)
    else:
        result = CACHE_RESULT_TEXT.get(op.result, "Unknown")

    return CacheOpDetail(
        duration=duration_label(trace, op.start_time, op.end_time),
        stack=op.stack if op.stack.frames else None,
        title=f"Cache {'Write' if op.write else 'Read'}",
        operation=op.operation,
        keyspace=keyspace,
        keys=list(op.keys),
        result=result,
    )


def find_call(trace: Trace, req_id: str) -> Optional[RPCCall]:
    """The RPC call event, anywhere in the trace, that started request ``req_id``."""
    queue: deque[Request] = deque()
    if trace.root is not None:
        queue.append(trace.root)

    while queue:
        req = queue.popleft()
        for ev in req.events:
            if isinstance(ev, RPCCall) and ev.req_id == req_id:
                return ev
        queue.extend(req.children)
    return None


def find_request(trace: Trace, req_id: str) -> Request:
    """Look up a request anywhere in the trace by id.

    Raises:
        UnresolvedReferenceError: No request in the trace has that id.
    """
    queue: deque[Request] = deque()
    if trace.root is not None:
        queue.append(trace.root)

    while queue:
        req = queue.popleft()
        if req.id == req_id:
            return req
        queue.extend(req.children)
    raise UnresolvedReferenceError(req_id, f"trace {trace.id}")
