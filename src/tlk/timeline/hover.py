"""Tooltip hover tracking for one lane.

The bar and the tooltip report pointer enter/leave independently. The
tooltip stays up while the pointer is over either, so it can be reached
(and its stack-trace button clicked) after leaving the bar.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional

from tlk.timeline.details import EventDetail, build_event_detail
from tlk.trace.model import BarEvent, Request, Trace

logger = logging.getLogger(__name__)


class HoverState(str, Enum):
    IDLE = "idle"
    OVER_BAR = "over_bar"
    OVER_TOOLTIP = "over_tooltip"
    OVER_BAR_AND_TOOLTIP = "over_bar_and_tooltip"


_STATES: dict[tuple[bool, bool], HoverState] = {
    (False, False): HoverState.IDLE,
    (True, False): HoverState.OVER_BAR,
    (False, True): HoverState.OVER_TOOLTIP,
    (True, True): HoverState.OVER_BAR_AND_TOOLTIP,
}


class HoverCorrelation:
    """Hover state for the bars of a single lane and their shared tooltip."""

    def __init__(self, trace: Trace, req: Request) -> None:
        self.trace = trace
        self.req = req
        self._over_bar = False
        self._over_tooltip = False
        self._target: Optional[BarEvent] = None

    @property
    def state(self) -> HoverState:
        return _STATES[(self._over_bar, self._over_tooltip)]

    @property
    def target(self) -> Optional[BarEvent]:
        """The last bar-event hovered; kept while the tooltip is reachable."""
        return self._target

    @property
    def tooltip_visible(self) -> bool:
        return self.state != HoverState.IDLE

    def enter_bar(self, ev: BarEvent) -> HoverState:
        self._over_bar = True
        self._target = ev
        return self._transition("enter_bar")

    def leave_bar(self) -> HoverState:
        self._over_bar = False
        return self._transition("leave_bar")

    def enter_tooltip(self) -> HoverState:
        self._over_tooltip = True
        return self._transition("enter_tooltip")

    def leave_tooltip(self) -> HoverState:
        self._over_tooltip = False
        return self._transition("leave_tooltip")

    def reset(self) -> None:
        """Forget everything; used when the lane unmounts or loses the pointer."""
        self._over_bar = False
        self._over_tooltip = False
        self._target = None

    def detail(self) -> Optional[EventDetail]:
        """What the tooltip shows right now, or None when it is hidden.

        Raises:
            UnresolvedReferenceError: The hovered RPC call's target request
                is not a child of this lane's request.
        """
        if not self.tooltip_visible or self._target is None:
            return None
        return build_event_detail(self.trace, self.req, self._target)

    def _transition(self, action: str) -> HoverState:
        state = self.state
        if state == HoverState.IDLE:
            self._target = None
        logger.debug("hover %s -> %s", action, state.value)
        return state
