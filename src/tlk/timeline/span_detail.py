"""Render model for one request: header, lanes, bodies, and logs.

``build_span_detail`` runs the whole reconstruction pass for a request. It
is a pure function of the trace; callers may cache its result per trace.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from tlk.timeline.details import error_text, find_call
from tlk.timeline.lanes import build_lanes
from tlk.timeline.logs import LogLine, reconstruct_log_timeline, request_base_date
from tlk.timeline.payload import CodeBlock, CorrelatedPayload, PathParams, correlate_payload, render_data
from tlk.timeline.position import LaneLayout, layout_lanes
from tlk.timeline.style import color_for, color_key, duration_label
from tlk.timeline.summary import RequestSummary, summarize_request
from tlk.trace.model import (
    AuthHandlerLocation,
    Location,
    PubSubSubscriberLocation,
    Request,
    RequestType,
    RPCCall,
    RPCDefLocation,
    Stack,
    Trace,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Definition:
    """What a request's definition location says it is."""

    kind: str
    service: str
    name: str

    @property
    def qualified_name(self) -> str:
        return f"{self.service}.{self.name}"


UNKNOWN_DEFINITION = Definition(kind="Unknown Request", service="unknown", name="Unknown")


def describe_definition(loc: Optional[Location]) -> Definition:
    """Label a definition; anything that is not an endpoint is unknown."""
    if isinstance(loc, RPCDefLocation):
        return Definition("API Call", loc.service_name, loc.rpc_name)
    if isinstance(loc, AuthHandlerLocation):
        return Definition("Auth Call", loc.service_name, loc.name)
    if isinstance(loc, PubSubSubscriberLocation):
        return Definition("PubSub Message Received", loc.topic_name, loc.subscriber_name)
    return UNKNOWN_DEFINITION


# ============================================================================
# Body sections by request type
# ============================================================================


@dataclass
class ErrorSection:
    text: str
    stack: Optional[Stack] = None


@dataclass
class AuthBody:
    error: Optional[ErrorSection] = None
    user_id: Optional[CodeBlock] = None
    user_data: Optional[CodeBlock] = None


@dataclass
class PubSubBody:
    message_id: str
    attempt: str
    published: str
    message: Optional[CorrelatedPayload] = None
    error: Optional[ErrorSection] = None


@dataclass
class RPCBody:
    request: Optional[CorrelatedPayload] = None
    response: Optional[CodeBlock] = None
    error: Optional[ErrorSection] = None


RequestBody = Union[AuthBody, PubSubBody, RPCBody]

NOT_KNOWN = "<unknown>"


def build_body(trace: Trace, req: Request) -> RequestBody:
    err = error_text(req.err)
    if req.type == RequestType.AUTH:
        if err is not None:
            return AuthBody(error=ErrorSection(err))
        return AuthBody(
            user_id=render_data(req.outputs[:1]) if req.outputs else None,
            user_data=render_data(req.outputs[1:2]) if len(req.outputs) > 1 else None,
        )

    error = ErrorSection(err, req.err_stack) if err is not None else None
    request = correlate_payload(trace, req) if req.inputs else None

    if req.type == RequestType.PUBSUB_MSG:
        published = NOT_KNOWN
        if req.published is not None:
            published = datetime.fromtimestamp(req.published / 1000, tz=timezone.utc).isoformat()
        return PubSubBody(
            message_id=req.msg_id if req.msg_id is not None else NOT_KNOWN,
            attempt=str(req.attempt) if req.attempt is not None else NOT_KNOWN,
            published=published,
            message=request,
            error=error,
        )

    return RPCBody(
        request=request,
        response=render_data(req.outputs) if error is None and req.outputs else None,
        error=error,
    )


# ============================================================================
# Whole-request model
# ============================================================================


@dataclass
class SpanDetail:
    request_id: str
    definition: Definition
    location: Optional[Location]
    duration: str
    summary: RequestSummary
    lanes: list[LaneLayout]
    body: RequestBody
    logs: list[LogLine] = field(default_factory=list)
    call: Optional[RPCCall] = None

    @property
    def title(self) -> str:
        return self.definition.qualified_name

    @property
    def source(self) -> str:
        if self.location is None:
            return ""
        return f"{self.location.filepath}:{self.location.src_line_start}"

    @property
    def lane_label(self) -> str:
        n = len(self.lanes)
        return f"{n} Goroutine{'' if n == 1 else 's'}"


def build_span_detail(trace: Trace, req: Request) -> SpanDetail:
    """Run the full reconstruction pass for ``req``.

    Raises:
        MissingLaneError: An event of ``req`` names a goroutine with no lane.
    """
    loc = trace.location(req.def_loc)
    summary = summarize_request(req)
    lanes = layout_lanes(req, build_lanes(req), lambda ev: color_for(color_key(trace, ev)))
    logger.debug("Built span detail for %s: %d lane(s)", req.id, len(lanes))

    return SpanDetail(
        request_id=req.id,
        definition=describe_definition(loc),
        location=loc,
        duration=duration_label(trace, req.start_time, req.end_time),
        summary=summary,
        lanes=lanes,
        body=build_body(trace, req),
        logs=reconstruct_log_timeline(trace, req, summary.logs),
        call=find_call(trace, req.id),
    )


# ============================================================================
# Runtime view of a request
# ============================================================================


class TriggerType(str, Enum):
    """How the code a request ran was triggered."""

    NONE = "none"
    API_CALL = "api-call"
    PUBSUB_MESSAGE = "pubsub-message"


@dataclass
class RequestInfo:
    type: TriggerType
    service: str
    endpoint: str
    started: datetime
    path_params: PathParams = field(default_factory=PathParams)


def describe_request(trace: Trace, req: Request) -> RequestInfo:
    """Trigger type, endpoint, start instant, and path parameters of ``req``."""
    if req.type in (RequestType.RPC, RequestType.AUTH):
        trigger = TriggerType.API_CALL
    elif req.type == RequestType.PUBSUB_MSG:
        trigger = TriggerType.PUBSUB_MESSAGE
    else:
        trigger = TriggerType.NONE

    params = PathParams()
    if req.type == RequestType.RPC:
        params = correlate_payload(trace, req).params

    return RequestInfo(
        type=trigger,
        service=req.svc_name,
        endpoint=req.rpc_name,
        started=request_base_date(trace, req),
        path_params=params,
    )
