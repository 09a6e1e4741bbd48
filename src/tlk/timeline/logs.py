"""Turn trace-relative log timestamps into wall-clock log lines.

Out-of-order timestamps are kept as captured; they say something about the
traced program and are not corrected here.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

from tlk.trace.model import LogMessage, Request, Stack, TimeUnit, Trace

LEVEL_ABBREVIATIONS: dict[str, str] = {
    "TRACE": "TRC",
    "DEBUG": "DBG",
    "INFO": "INF",
    "WARN": "WRN",
}


def log_wall_clock(base_date: datetime, origin: int, t: int, unit: TimeUnit) -> datetime:
    """``base_date`` shifted by ``t - origin`` ticks of ``unit``."""
    return base_date + timedelta(milliseconds=unit.to_ms(t - origin))


def format_clock(dt: datetime) -> str:
    """``HH:MM:SS.mmm``"""
    return f"{dt:%H:%M:%S}.{dt.microsecond // 1000:03d}"


def format_field_value(value: Any) -> str:
    if value is None:
        return ""
    return json.dumps(value, ensure_ascii=False)


@dataclass
class LogFieldView:
    key: str
    value: str
    stack: Optional[Stack] = None

    @property
    def is_error(self) -> bool:
        """Fields that carry a stack are errors and are shown as such."""
        return self.stack is not None


@dataclass
class LogLine:
    timestamp: datetime
    level: str
    msg: str
    stack: Stack
    fields: list[LogFieldView] = field(default_factory=list)

    @property
    def clock(self) -> str:
        return format_clock(self.timestamp)

    @property
    def level_abbr(self) -> str:
        return LEVEL_ABBREVIATIONS.get(self.level, "ERR")

    def render(self) -> str:
        parts = [self.clock, self.level_abbr, self.msg]
        parts.extend(f"{f.key}={f.value}" for f in self.fields)
        return " ".join(parts)


def request_base_date(trace: Trace, req: Request) -> datetime:
    """Wall-clock instant of ``req.start_time``; ``trace.date`` marks ``trace.start_time``."""
    return log_wall_clock(trace.date, trace.start_time, req.start_time, trace.time_unit)


def reconstruct_log_timeline(
    trace: Trace,
    req: Request,
    logs: Optional[list[LogMessage]] = None,
) -> list[LogLine]:
    """Wall-clock log lines for ``req``, in capture order.

    Each line is the request's base date plus the log's offset from the
    request start. ``logs`` defaults to the request's own log events.
    """
    if logs is None:
        logs = [e for e in req.events if isinstance(e, LogMessage)]

    base = request_base_date(trace, req)
    lines: list[LogLine] = []
    for log in logs:
        lines.append(LogLine(
            timestamp=log_wall_clock(base, req.start_time, log.time, trace.time_unit),
            level=log.level,
            msg=log.msg,
            stack=log.stack,
            fields=[
                LogFieldView(key=f.key, value=format_field_value(f.value), stack=f.stack)
                for f in log.fields
            ],
        ))
    return lines
