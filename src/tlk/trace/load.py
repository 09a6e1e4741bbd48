"""Load and validate trace documents (JSON or YAML)."""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

import yaml
from jsonschema import Draft202012Validator

from tlk.errors import TraceLoadError
from tlk.trace.codec import decode_base64
from tlk.trace.model import (
    LOCATION_KINDS,
    AppMeta,
    CacheOp,
    CacheResult,
    DBQuery,
    DBTransaction,
    Event,
    Goroutine,
    HTTPCall,
    HTTPCallMetrics,
    Location,
    LogField,
    LogMessage,
    OpaqueEvent,
    PathSegment,
    PubSubPublish,
    Request,
    RequestType,
    RPCCall,
    RPCMeta,
    SegmentType,
    ServiceMeta,
    SourceLocation,
    Stack,
    StackFrame,
    TimeUnit,
    Trace,
)

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "trace.schema.json"

# Captures record nanoseconds; datetime holds microseconds.
_FRACTION = re.compile(r"\.(\d+)")


def validate_trace_document(data: Any) -> list[str]:
    """Validate a trace document against the schema. Returns a list of errors (empty if valid)."""
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    validator = Draft202012Validator(schema)
    errors: list[str] = []
    for error in validator.iter_errors(data):
        errors.append(f"{error.json_path}: {error.message}")
    return errors


def load_trace(
    path: Path,
    time_unit: Optional[TimeUnit] = None,
    validate: bool = True,
) -> Trace:
    """Load a trace file and return the materialized Trace.

    Args:
        path: Path to a ``.json``, ``.yaml`` or ``.yml`` trace document
        time_unit: Unit to assume when the document does not declare one
        validate: Check the document against ``trace.schema.json`` first

    Raises:
        FileNotFoundError: If the trace file doesn't exist
        TraceLoadError: If the document is malformed or fails validation
    """
    if not path.exists():
        raise FileNotFoundError(f"Trace file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise TraceLoadError(
            f"Cannot read trace file {path}: encoding error. Ensure the file is saved as UTF-8."
        ) from e

    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
            # YAML turns unquoted timestamps into datetimes
            if isinstance(data, dict) and isinstance(data.get("date"), datetime):
                data["date"] = data["date"].isoformat()
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise TraceLoadError(f"Invalid trace document {path}: {e}") from e

    if not isinstance(data, dict):
        raise TraceLoadError(
            f"Trace document must contain a mapping, got {type(data).__name__}: {path}"
        )

    if validate:
        errors = validate_trace_document(data)
        if errors:
            error_details = "; ".join(errors[:5])  # Show first 5
            raise TraceLoadError(
                f"Trace validation failed for {path}: {error_details}", errors=errors
            )

    trace = parse_trace(data, time_unit=time_unit)
    logger.info("Loaded trace %s from %s", trace.id, path)
    return trace


def parse_trace(data: dict[str, Any], time_unit: Optional[TimeUnit] = None) -> Trace:
    """Build a Trace from an already-decoded document."""
    try:
        unit = TimeUnit(data["time_unit"]) if "time_unit" in data else (time_unit or TimeUnit.MILLISECONDS)
        root = data.get("root")
        return Trace(
            id=str(data["id"]),
            date=_parse_date(data["date"]),
            start_time=int(data["start_time"]),
            end_time=data.get("end_time"),
            root=parse_request(root) if root is not None else None,
            locations=[parse_location(loc) for loc in data.get("locations", [])],
            meta=_parse_meta(data.get("meta") or {}),
            time_unit=unit,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise TraceLoadError(f"Malformed trace document: {e!r}") from e


def _parse_date(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(lambda m: "." + m.group(1).ljust(6, "0")[:6], value, count=1)
    return datetime.fromisoformat(value)


def _parse_meta(data: dict[str, Any]) -> AppMeta:
    svcs = []
    for svc in data.get("svcs", []):
        rpcs = []
        for rpc in svc.get("rpcs", []):
            segments = [
                PathSegment(type=SegmentType(s["type"]), value=s["value"])
                for s in (rpc.get("path") or {}).get("segments", [])
            ]
            rpcs.append(RPCMeta(name=rpc["name"], path=segments))
        svcs.append(ServiceMeta(name=svc["name"], rpcs=rpcs))
    return AppMeta(svcs=svcs)


def parse_location(data: dict[str, Any]) -> Location:
    """Turn a location object into its tagged variant.

    Documents mark the definition kind by which key is present
    (``rpc_def``, ``auth_handler_def`` ...). This is the only place that
    looks at the keys; everything downstream dispatches on the variant.
    """
    common = {
        "filepath": data.get("filepath", ""),
        "src_line_start": data.get("src_line_start", 0),
        "src_line_end": data.get("src_line_end", 0),
    }
    for kind, cls in LOCATION_KINDS.items():
        if kind in data:
            return cls(**common, **data[kind])
    return SourceLocation(**common)


def parse_stack(data: Optional[dict[str, Any]]) -> Stack:
    if not data:
        return Stack()
    return Stack(frames=[
        StackFrame(
            full_file=f.get("full_file", ""),
            short_file=f.get("short_file", ""),
            func=f.get("func", ""),
            line=f.get("line", 0),
        )
        for f in data.get("frames", [])
    ])


def _timed(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "goid": data["goid"],
        "start_time": data.get("start_time", 0),
        "end_time": data.get("end_time"),
        "stack": parse_stack(data.get("stack")),
    }


def _parse_query(data: dict[str, Any]) -> DBQuery:
    return DBQuery(
        **_timed(data),
        txid=data.get("txid"),
        query=data.get("query", ""),
        err=decode_base64(data.get("err")),
    )


def _parse_transaction(data: dict[str, Any]) -> DBTransaction:
    return DBTransaction(
        **_timed(data),
        txid=data.get("txid", 0),
        queries=[_parse_query(q) for q in data.get("queries", [])],
        completion_type=data.get("completion_type", ""),
        err=decode_base64(data.get("err")),
    )


def _parse_rpc_call(data: dict[str, Any]) -> RPCCall:
    return RPCCall(
        **_timed(data),
        req_id=data["req_id"],
        def_loc=data.get("def_loc", 0),
        err=decode_base64(data.get("err")),
    )


def _parse_http_call(data: dict[str, Any]) -> HTTPCall:
    m = data.get("metrics") or {}
    return HTTPCall(
        **_timed(data),
        method=data.get("method", ""),
        host=data.get("host", ""),
        path=data.get("path", ""),
        url=data.get("url", ""),
        status_code=data.get("status_code", 0),
        metrics=HTTPCallMetrics(
            got_conn=m.get("got_conn"),
            conn_reused=bool(m.get("conn_reused", False)),
            dns_done=m.get("dns_done"),
            tls_handshake_done=m.get("tls_handshake_done"),
            wrote_headers=m.get("wrote_headers"),
            wrote_request=m.get("wrote_request"),
            first_response=m.get("first_response"),
        ),
        err=decode_base64(data.get("err")),
    )


def _parse_publish(data: dict[str, Any]) -> PubSubPublish:
    return PubSubPublish(
        **_timed(data),
        topic=data.get("topic", ""),
        message=decode_base64(data.get("message")) or b"",
        message_id=data.get("message_id"),
        err=decode_base64(data.get("err")),
    )


def _parse_cache_op(data: dict[str, Any]) -> CacheOp:
    return CacheOp(
        **_timed(data),
        operation=data.get("operation", ""),
        keys=list(data.get("keys", [])),
        write=bool(data.get("write", False)),
        result=CacheResult(data.get("result", "UNKNOWN")),
        def_loc=data.get("def_loc", 0),
        err=decode_base64(data.get("err")),
    )


def _parse_log(data: dict[str, Any]) -> LogMessage:
    return LogMessage(
        goid=data["goid"],
        time=data.get("time", 0),
        level=data.get("level", "INFO"),
        msg=data.get("msg", ""),
        fields=[
            LogField(
                key=f["key"],
                value=f.get("value"),
                stack=parse_stack(f["stack"]) if f.get("stack") else None,
            )
            for f in data.get("fields", [])
        ],
        stack=parse_stack(data.get("stack")),
    )


def _parse_goroutine(data: dict[str, Any]) -> Goroutine:
    return Goroutine(**_timed(data))


_EVENT_PARSERS: dict[str, Callable[[dict[str, Any]], Event]] = {
    Goroutine.type: _parse_goroutine,
    DBQuery.type: _parse_query,
    DBTransaction.type: _parse_transaction,
    RPCCall.type: _parse_rpc_call,
    HTTPCall.type: _parse_http_call,
    PubSubPublish.type: _parse_publish,
    CacheOp.type: _parse_cache_op,
    LogMessage.type: _parse_log,
}


def parse_event(data: dict[str, Any]) -> Event:
    """Build the event variant named by ``data["type"]``; unknown kinds stay opaque."""
    parser = _EVENT_PARSERS.get(data["type"])
    if parser is None:
        logger.debug("Keeping unknown event type %r as opaque", data["type"])
        return OpaqueEvent(goid=data["goid"], type_name=data["type"], raw=dict(data))
    return parser(data)


def parse_request(data: dict[str, Any]) -> Request:
    err_stack = data.get("err_stack")
    return Request(
        id=str(data["id"]),
        goid=data["goid"],
        type=RequestType(data["type"]),
        start_time=data["start_time"],
        end_time=data.get("end_time"),
        svc_name=data.get("svc_name", ""),
        rpc_name=data.get("rpc_name", ""),
        def_loc=data.get("def_loc", 0),
        inputs=[decode_base64(p) for p in data.get("inputs", [])],
        outputs=[decode_base64(p) for p in data.get("outputs", [])],
        err=decode_base64(data.get("err")),
        err_stack=parse_stack(err_stack) if err_stack else None,
        msg_id=data.get("msg_id"),
        attempt=data.get("attempt"),
        published=data.get("published"),
        children=[parse_request(c) for c in data.get("children", [])],
        events=[parse_event(e) for e in data.get("events", [])],
    )
