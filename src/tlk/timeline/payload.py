"""Split captured request payloads into path parameters and a JSON body.

A request's ``inputs`` hold one element per path parameter of the RPC's
declared route, in route order, optionally followed by the request body.
Telling them apart needs the RPC's schema from the trace metadata; without
it the last element is shown as an opaque body.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from tlk.trace.codec import JSON_INDENT, decode_text, pretty_json
from tlk.trace.model import Request, Trace

logger = logging.getLogger(__name__)


class ContentMode(str, Enum):
    """How a text viewer should highlight a code block."""

    JSON = "json"
    SQL = "sql"


@dataclass(frozen=True)
class CodeBlock:
    text: str
    mode: ContentMode = ContentMode.JSON


@dataclass(frozen=True)
class PathParam:
    name: str
    value: str


class PathParams(list):
    """Path parameters in route order."""

    def get(self, name: str) -> str:
        """Value of the parameter called ``name``, or ``""`` if there is none."""
        for param in self:
            if param.name == name:
                return param.value
        return ""


@dataclass
class CorrelatedPayload:
    params: PathParams = field(default_factory=PathParams)
    body: Optional[CodeBlock] = None
    schema_resolved: bool = False

    @property
    def body_label(self) -> Optional[str]:
        """Label shown before the body; only needed when parameters precede it."""
        if self.body is not None and self.params:
            return "payload"
        return None


def render_data(
    data: list[bytes],
    mode: ContentMode = ContentMode.JSON,
    indent: int = JSON_INDENT,
) -> CodeBlock:
    """Code block for the first payload element, re-indented when it is JSON."""
    raw = decode_text(data[0]) if data else ""
    return CodeBlock(text=pretty_json(raw, indent=indent), mode=mode)


def correlate_payload(
    trace: Trace,
    req: Request,
    data: Optional[list[bytes]] = None,
    indent: int = JSON_INDENT,
) -> CorrelatedPayload:
    """Pair ``data`` (default: ``req.inputs``) with the RPC's path parameters.

    The first ``P`` elements are the values of the ``P`` non-literal route
    segments. Any element beyond them means the last one is the body.
    """
    data = req.inputs if data is None else data
    rpc = trace.find_rpc(req.svc_name, req.rpc_name)

    if rpc is None:
        logger.debug(
            "No schema for %s.%s, showing last payload element as body",
            req.svc_name or "?", req.rpc_name or "?",
        )
        if not data:
            return CorrelatedPayload()
        return CorrelatedPayload(body=render_data([data[-1]], indent=indent))

    segments = rpc.param_segments
    raw = [decode_text(d) for d in data]
    params = PathParams(
        PathParam(name=seg.value, value=raw[i])
        for i, seg in enumerate(segments)
        if i < len(raw)
    )

    body: Optional[CodeBlock] = None
    if len(raw) > len(segments):
        body = CodeBlock(text=pretty_json(raw[-1], indent=indent))

    return CorrelatedPayload(params=params, body=body, schema_resolved=True)
