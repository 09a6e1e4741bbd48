"""Default display collaborators: stable colors and latency labels."""
from __future__ import annotations

import zlib
from typing import Optional

from tlk.trace.model import (
    CacheOp,
    DBQuery,
    HTTPCall,
    PubSubPublish,
    RPCCall,
    RPCDefLocation,
    TimedEvent,
    Trace,
)

# (color, highlight_color) pairs; a key always maps to the same pair.
PALETTE: list[tuple[str, str]] = [
    ("#ff9900", "#ffc266"),
    ("#00a4ef", "#66c8f5"),
    ("#8b5cf6", "#b9a0fa"),
    ("#ff4f8b", "#ff95b9"),
    ("#10b981", "#70d5b3"),
    ("#3b82f6", "#89b4f9"),
    ("#22c55e", "#7adc9e"),
    ("#eab308", "#f2d16b"),
    ("#ef4444", "#f58f8f"),
    ("#6b7280", "#a6abb3"),
]


def color_for(key: str) -> tuple[str, str]:
    """Deterministic color pair for ``key``, stable across runs."""
    return PALETTE[zlib.crc32(key.encode("utf-8")) % len(PALETTE)]


def color_key(trace: Trace, ev: TimedEvent) -> str:
    """The identity an event shares its color with."""
    if isinstance(ev, DBQuery):
        return f"tx:{ev.txid}" if ev.txid is not None else f"query:{ev.start_time}"
    if isinstance(ev, RPCCall):
        loc = trace.location(ev.def_loc)
        return loc.service_name if isinstance(loc, RPCDefLocation) else "unknown"
    if isinstance(ev, HTTPCall):
        return ev.url
    if isinstance(ev, PubSubPublish):
        return f"msg_id:{ev.message_id}" if ev.message_id else f"topic:{ev.topic}"
    if isinstance(ev, CacheOp):
        return ev.operation
    return ev.type


def latency_str(ms: float) -> str:
    """Human-readable latency, e.g. ``850µs``, ``12ms``, ``1.50s``."""
    if ms >= 1000:
        return f"{ms / 1000:.2f}s"
    if ms >= 1:
        return f"{ms:.0f}ms"
    return f"{ms * 1000:.0f}µs"


def duration_label(trace: Trace, start: int, end: Optional[int]) -> str:
    """Latency label for ``[start, end]``, or ``Unknown`` while still open."""
    ms = trace.duration_ms(start, end)
    return latency_str(ms) if ms is not None else "Unknown"
