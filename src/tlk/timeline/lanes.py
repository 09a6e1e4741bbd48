"""Group a request's events into per-goroutine lanes.

One lane is seeded for the request's own goroutine and one more for every
goroutine spawn event seen. Transactions are flattened: their queries join
the transaction's lane directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from tlk.errors import MissingLaneError
from tlk.trace.model import DBTransaction, Event, Goroutine, Request

logger = logging.getLogger(__name__)


@dataclass
class Lane:
    """Events of one concurrent unit, bounded by the unit's lifetime."""

    goid: int
    start_time: int
    end_time: Optional[int]
    events: list[Event] = field(default_factory=list)


def build_lanes(req: Request) -> list[Lane]:
    """Build the lanes for ``req`` in spawn order, root lane first.

    Lanes with no events are dropped, except the request's own lane which
    anchors the timeline.

    Raises:
        MissingLaneError: An event belongs to a goroutine that was never
            spawned within this request.
    """
    lanes: dict[int, Lane] = {
        req.goid: Lane(goid=req.goid, start_time=req.start_time, end_time=req.end_time),
    }
    order: list[int] = [req.goid]

    for ev in req.events:
        if isinstance(ev, Goroutine):
            if ev.goid in lanes:
                logger.warning(
                    "Request %s spawns goroutine %d twice; widening its lane",
                    req.id, ev.goid,
                )
                existing = lanes[ev.goid]
                existing.start_time = min(existing.start_time, ev.start_time)
                if existing.end_time is None or ev.end_time is None:
                    existing.end_time = None
                else:
                    existing.end_time = max(existing.end_time, ev.end_time)
                continue
            lanes[ev.goid] = Lane(goid=ev.goid, start_time=ev.start_time, end_time=ev.end_time)
            order.append(ev.goid)
        elif isinstance(ev, DBTransaction):
            _lane_for(lanes, ev, req).events.extend(ev.queries)
        else:
            _lane_for(lanes, ev, req).events.append(ev)

    result = [lanes[g] for g in order if lanes[g].events or g == req.goid]
    logger.debug(
        "Request %s: %d lane(s) shown of %d seeded", req.id, len(result), len(order)
    )
    return result


def _lane_for(lanes: dict[int, Lane], ev: Event, req: Request) -> Lane:
    try:
        return lanes[ev.goid]
    except KeyError:
        raise MissingLaneError(ev.goid, ev.type, req.id) from None
