"""Timeline reconstruction: lanes, positions, payloads, and request details."""
from tlk.timeline.classify import EventBuckets, classify_events
from tlk.timeline.hover import HoverCorrelation, HoverState
from tlk.timeline.lanes import Lane, build_lanes
from tlk.timeline.logs import LogLine, reconstruct_log_timeline
from tlk.timeline.payload import CorrelatedPayload, PathParams, correlate_payload
from tlk.timeline.position import LaneLayout, PercentInterval, layout_lanes, percent_offset
from tlk.timeline.span_detail import SpanDetail, build_span_detail, describe_request
from tlk.timeline.summary import RequestSummary, summarize_request

__all__ = [
    "EventBuckets",
    "classify_events",
    "HoverCorrelation",
    "HoverState",
    "Lane",
    "build_lanes",
    "LogLine",
    "reconstruct_log_timeline",
    "CorrelatedPayload",
    "PathParams",
    "correlate_payload",
    "LaneLayout",
    "PercentInterval",
    "layout_lanes",
    "percent_offset",
    "SpanDetail",
    "build_span_detail",
    "describe_request",
    "RequestSummary",
    "summarize_request",
]
