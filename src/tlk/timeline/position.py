"""Proportional placement of lanes and bar-events.

Positions are whole percentages. Lanes are placed within the request's
duration; bars are placed within their own lane's duration.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Callable, Optional

from tlk.timeline.lanes import Lane
from tlk.trace.model import BAR_EVENT_TYPES, BarEvent, Request

# Presentation hints: a zero-width interval is still drawn this wide.
MIN_LANE_WIDTH_PX = 3
MIN_BAR_WIDTH_PX = 1


def percent_offset(t: float, lo: float, hi: Optional[float]) -> int:
    """Position of ``t`` within ``[lo, hi]`` as a whole percentage in 0..100.

    A zero-length or unbounded interval places everything at 0; drawing it
    is left to the minimum widths above.
    """
    if hi is None or hi <= lo:
        return 0
    pct = math.floor((t - lo) / (hi - lo) * 100 + 0.5)
    return min(100, max(0, pct))


@dataclass(frozen=True)
class PercentInterval:
    start: int
    end: int

    @property
    def width(self) -> int:
        return self.end - self.start

    @property
    def right(self) -> int:
        """Distance of the end edge from the right side of the container."""
        return 100 - self.end


def interval_percent(
    start: float,
    end: Optional[float],
    lo: float,
    hi: Optional[float],
) -> PercentInterval:
    """Place ``[start, end]`` inside ``[lo, hi]``; an open end collapses to the start."""
    s = percent_offset(start, lo, hi)
    e = percent_offset(end, lo, hi) if end is not None else s
    return PercentInterval(start=s, end=max(s, e))


@dataclass
class BarLayout:
    """A bar-event with its position inside the owning lane."""

    key: str
    event: BarEvent
    interval: PercentInterval
    colors: Optional[tuple[str, str]] = None


@dataclass
class LaneLayout:
    lane: Lane
    interval: PercentInterval
    bars: list[BarLayout] = field(default_factory=list)


def bar_events(lane: Lane) -> list[BarEvent]:
    """Events of ``lane`` that are drawn as bars, in lane order."""
    return [e for e in lane.events if isinstance(e, BAR_EVENT_TYPES)]


def layout_lanes(
    req: Request,
    lanes: list[Lane],
    colorize: Optional[Callable[[BarEvent], tuple[str, str]]] = None,
) -> list[LaneLayout]:
    """Place every lane within ``req`` and every bar within its lane."""
    layouts: list[LaneLayout] = []
    for lane in lanes:
        lane_iv = interval_percent(lane.start_time, lane.end_time, req.start_time, req.end_time)
        bars = []
        for i, ev in enumerate(bar_events(lane)):
            bars.append(BarLayout(
                key=f"ev-{req.id}-{lane.goid}-{i}",
                event=ev,
                interval=interval_percent(ev.start_time, ev.end_time, lane.start_time, lane.end_time),
                colors=colorize(ev) if colorize else None,
            ))
        layouts.append(LaneLayout(lane=lane, interval=lane_iv, bars=bars))
    return layouts
