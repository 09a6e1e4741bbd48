"""Trace model: requests, their events, and the definitions they point at.

A Trace is an immutable snapshot produced by an ingestion pipeline. Requests
and events refer to source definitions by integer index into
``Trace.locations``; those references stay indices and are resolved with
``Trace.location`` on demand.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Optional, Union


class TimeUnit(str, Enum):
    """Unit of every trace-relative timestamp in a Trace."""

    NANOSECONDS = "ns"
    MICROSECONDS = "us"
    MILLISECONDS = "ms"
    SECONDS = "s"

    @property
    def per_ms(self) -> float:
        """How many ticks of this unit make up one millisecond."""
        return _TICKS_PER_MS[self]

    def to_ms(self, value: float) -> float:
        return value / self.per_ms


_TICKS_PER_MS: dict[TimeUnit, float] = {
    TimeUnit.NANOSECONDS: 1_000_000.0,
    TimeUnit.MICROSECONDS: 1_000.0,
    TimeUnit.MILLISECONDS: 1.0,
    TimeUnit.SECONDS: 0.001,
}


class RequestType(str, Enum):
    """What kind of work a Request span captured."""

    RPC = "RPC"
    AUTH = "AUTH"
    PUBSUB_MSG = "PUBSUB_MSG"


class CacheResult(str, Enum):
    UNKNOWN = "UNKNOWN"
    OK = "OK"
    NO_SUCH_KEY = "NO_SUCH_KEY"
    CONFLICT = "CONFLICT"
    ERR = "ERR"


class SegmentType(str, Enum):
    LITERAL = "LITERAL"
    PARAM = "PARAM"
    WILDCARD = "WILDCARD"
    FALLBACK = "FALLBACK"


# ============================================================================
# Stacks (passed through to a stack viewer, never inspected)
# ============================================================================


@dataclass(frozen=True)
class StackFrame:
    full_file: str
    short_file: str
    func: str
    line: int


@dataclass(frozen=True)
class Stack:
    frames: list[StackFrame] = field(default_factory=list)


# ============================================================================
# Locations (closed set of definition kinds)
# ============================================================================


@dataclass(frozen=True)
class Location:
    """A source position. Subclasses add the definition found there."""

    filepath: str = ""
    src_line_start: int = 0
    src_line_end: int = 0

    kind: ClassVar[str] = "source"


@dataclass(frozen=True)
class SourceLocation(Location):
    """A plain source position with no endpoint or resource definition."""


@dataclass(frozen=True)
class RPCDefLocation(Location):
    service_name: str = ""
    rpc_name: str = ""

    kind: ClassVar[str] = "rpc_def"


@dataclass(frozen=True)
class AuthHandlerLocation(Location):
    service_name: str = ""
    name: str = ""

    kind: ClassVar[str] = "auth_handler_def"


@dataclass(frozen=True)
class PubSubSubscriberLocation(Location):
    topic_name: str = ""
    subscriber_name: str = ""

    kind: ClassVar[str] = "pubsub_subscriber"


@dataclass(frozen=True)
class CacheKeyspaceLocation(Location):
    var_name: str = ""

    kind: ClassVar[str] = "cache_keyspace"


LOCATION_KINDS: dict[str, type[Location]] = {
    cls.kind: cls
    for cls in (
        RPCDefLocation,
        AuthHandlerLocation,
        PubSubSubscriberLocation,
        CacheKeyspaceLocation,
    )
}


# ============================================================================
# Service metadata
# ============================================================================


@dataclass(frozen=True)
class PathSegment:
    type: SegmentType
    value: str

    @property
    def is_param(self) -> bool:
        return self.type != SegmentType.LITERAL


@dataclass(frozen=True)
class RPCMeta:
    name: str
    path: list[PathSegment] = field(default_factory=list)

    @property
    def param_segments(self) -> list[PathSegment]:
        """Non-literal path segments, in declaration order."""
        return [s for s in self.path if s.is_param]


@dataclass(frozen=True)
class ServiceMeta:
    name: str
    rpcs: list[RPCMeta] = field(default_factory=list)


@dataclass(frozen=True)
class AppMeta:
    svcs: list[ServiceMeta] = field(default_factory=list)


# ============================================================================
# Events
# ============================================================================


@dataclass(frozen=True)
class Event:
    """Base for every sub-event of a Request. ``goid`` names the owning lane."""

    goid: int

    type: ClassVar[str] = "Event"


@dataclass(frozen=True)
class TimedEvent(Event):
    start_time: int = 0
    end_time: Optional[int] = None
    stack: Stack = field(default_factory=Stack)


@dataclass(frozen=True)
class Goroutine(TimedEvent):
    """Spawn of a new concurrent unit; its ``goid`` is the new unit's id."""

    type: ClassVar[str] = "Goroutine"


@dataclass(frozen=True)
class DBQuery(TimedEvent):
    txid: Optional[int] = None
    query: str = ""
    err: Optional[bytes] = None

    type: ClassVar[str] = "DBQuery"


@dataclass(frozen=True)
class DBTransaction(TimedEvent):
    txid: int = 0
    queries: list[DBQuery] = field(default_factory=list)
    completion_type: str = ""
    err: Optional[bytes] = None

    type: ClassVar[str] = "DBTransaction"


@dataclass(frozen=True)
class RPCCall(TimedEvent):
    req_id: str = ""
    def_loc: int = 0
    err: Optional[bytes] = None

    type: ClassVar[str] = "RPCCall"


@dataclass(frozen=True)
class HTTPCallMetrics:
    got_conn: Optional[int] = None
    conn_reused: bool = False
    dns_done: Optional[int] = None
    tls_handshake_done: Optional[int] = None
    wrote_headers: Optional[int] = None
    wrote_request: Optional[int] = None
    first_response: Optional[int] = None


@dataclass(frozen=True)
class HTTPCall(TimedEvent):
    method: str = ""
    host: str = ""
    path: str = ""
    url: str = ""
    status_code: int = 0
    metrics: HTTPCallMetrics = field(default_factory=HTTPCallMetrics)
    err: Optional[bytes] = None

    type: ClassVar[str] = "HTTPCall"


@dataclass(frozen=True)
class PubSubPublish(TimedEvent):
    topic: str = ""
    message: bytes = b""
    message_id: Optional[str] = None
    err: Optional[bytes] = None

    type: ClassVar[str] = "PubSubPublish"


@dataclass(frozen=True)
class CacheOp(TimedEvent):
    operation: str = ""
    keys: list[str] = field(default_factory=list)
    write: bool = False
    result: CacheResult = CacheResult.UNKNOWN
    def_loc: int = 0
    err: Optional[bytes] = None

    type: ClassVar[str] = "CacheOp"


@dataclass(frozen=True)
class LogField:
    key: str
    value: Any = None
    stack: Optional[Stack] = None


@dataclass(frozen=True)
class LogMessage(Event):
    time: int = 0
    level: str = "INFO"
    msg: str = ""
    fields: list[LogField] = field(default_factory=list)
    stack: Stack = field(default_factory=Stack)

    type: ClassVar[str] = "LogMessage"


@dataclass(frozen=True)
class OpaqueEvent(Event):
    """An event kind this version does not know; kept so lanes stay complete."""

    type_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


BarEvent = Union[DBQuery, RPCCall, HTTPCall, PubSubPublish, CacheOp]
BAR_EVENT_TYPES: tuple[type[TimedEvent], ...] = (DBQuery, RPCCall, HTTPCall, PubSubPublish, CacheOp)


# ============================================================================
# Requests and traces
# ============================================================================


@dataclass(frozen=True)
class Request:
    """One captured unit of work (API call, auth call, pub/sub delivery)."""

    id: str
    goid: int
    type: RequestType
    start_time: int
    end_time: Optional[int] = None
    svc_name: str = ""
    rpc_name: str = ""
    def_loc: int = 0

    inputs: list[bytes] = field(default_factory=list)
    outputs: list[bytes] = field(default_factory=list)
    err: Optional[bytes] = None
    err_stack: Optional[Stack] = None

    # Pub/Sub delivery details
    msg_id: Optional[str] = None
    attempt: Optional[int] = None
    published: Optional[int] = None  # epoch milliseconds

    children: list[Request] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)

    def child(self, req_id: str) -> Optional[Request]:
        for c in self.children:
            if c.id == req_id:
                return c
        return None


@dataclass(frozen=True)
class Trace:
    id: str
    date: datetime
    start_time: int
    end_time: Optional[int] = None
    root: Optional[Request] = None
    locations: list[Location] = field(default_factory=list)
    meta: AppMeta = field(default_factory=AppMeta)
    time_unit: TimeUnit = TimeUnit.MILLISECONDS

    def location(self, idx: int) -> Optional[Location]:
        """Resolve a definition index; None when it is out of range."""
        if 0 <= idx < len(self.locations):
            return self.locations[idx]
        return None

    def find_rpc(self, svc_name: str, rpc_name: str) -> Optional[RPCMeta]:
        for svc in self.meta.svcs:
            if svc.name != svc_name:
                continue
            for rpc in svc.rpcs:
                if rpc.name == rpc_name:
                    return rpc
        return None

    def duration_ms(self, start: int, end: Optional[int]) -> Optional[float]:
        """Length of ``[start, end]`` in milliseconds, None when end is unset."""
        if end is None:
            return None
        return self.time_unit.to_ms(end - start)
