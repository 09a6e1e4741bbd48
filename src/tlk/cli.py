from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import fields, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from tlk.config import Config, load_config
from tlk.errors import ErrorCode, TraceError, handle_exception, set_verbose
from tlk.logging_config import setup_logging
from tlk.timeline.details import find_request
from tlk.timeline.lanes import build_lanes
from tlk.timeline.logs import reconstruct_log_timeline
from tlk.timeline.payload import correlate_payload
from tlk.timeline.position import layout_lanes
from tlk.timeline.span_detail import build_span_detail
from tlk.timeline.summary import summarize_request
from tlk.trace.load import load_trace
from tlk.trace.model import Event, Location, Request, Trace

logger = logging.getLogger(__name__)

COMMANDS = ("summary", "lanes", "payload", "logs", "detail")


def _to_jsonable(obj: Any) -> Any:
    """Convert render-model objects into JSON-serializable values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        data = {f.name: _to_jsonable(getattr(obj, f.name)) for f in fields(obj)}
        if isinstance(obj, Event):
            data["type"] = obj.type
        elif isinstance(obj, Location):
            data["kind"] = obj.kind
        return data
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    return obj


def _select_request(trace: Trace, req_id: str | None) -> Request:
    if req_id:
        return find_request(trace, req_id)
    if trace.root is None:
        raise TraceError(f"trace {trace.id} has no root request")
    return trace.root


def _emit(payload: Any, config: Config) -> None:
    print(json.dumps(_to_jsonable(payload), indent=config.json_indent, ensure_ascii=False))


def _cmd_summary(trace: Trace, req: Request, config: Config) -> Any:
    summary = summarize_request(req)
    return {
        "request_id": req.id,
        "calls": summary.num_calls,
        "queries": summary.num_queries,
        "publishes": summary.num_publishes,
        "logs": summary.num_logs,
        "labels": summary.labels(),
        "children": [c.id for c in req.children],
    }


def _cmd_lanes(trace: Trace, req: Request, config: Config) -> Any:
    return [
        {
            "goid": layout.lane.goid,
            "start": layout.interval.start,
            "end": layout.interval.end,
            "bars": [
                {
                    "key": bar.key,
                    "type": bar.event.type,
                    "start": bar.interval.start,
                    "end": bar.interval.end,
                }
                for bar in layout.bars
            ],
        }
        for layout in layout_lanes(req, build_lanes(req))
    ]


def _cmd_payload(trace: Trace, req: Request, config: Config) -> Any:
    correlated = correlate_payload(trace, req, indent=config.json_indent)
    return {
        "schema_resolved": correlated.schema_resolved,
        "params": [{"name": p.name, "value": p.value} for p in correlated.params],
        "body": correlated.body.text if correlated.body else None,
    }


def _cmd_logs(trace: Trace, req: Request, config: Config) -> Any:
    return [line.render() for line in reconstruct_log_timeline(trace, req)]


def _cmd_detail(trace: Trace, req: Request, config: Config) -> Any:
    return build_span_detail(trace, req)


_HANDLERS = {
    "summary": _cmd_summary,
    "lanes": _cmd_lanes,
    "payload": _cmd_payload,
    "logs": _cmd_logs,
    "detail": _cmd_detail,
}


def _run(args: argparse.Namespace) -> int:
    config = load_config(
        env_file=args.env_file,
        cli_overrides={
            "time_unit": args.time_unit,
            "log_level": "DEBUG" if args.verbose else None,
        },
    )
    setup_logging(config.log_level)

    trace = load_trace(
        Path(args.trace),
        time_unit=config.time_unit,
        validate=config.validate_schema,
    )
    req = _select_request(trace, args.request)
    logger.debug("Running %s for request %s", args.cmd, req.id)
    _emit(_HANDLERS[args.cmd](trace, req, config), config)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tlk",
        description="Trace lane kit: rebuild timeline lanes and request details from a trace",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging and full tracebacks on errors",
    )
    p.add_argument("--env-file", help="Path to a .env file (default: auto-discover)")
    p.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    sub = p.add_subparsers(dest="cmd", required=True)
    helps = {
        "summary": "Count API calls, DB queries, publishes and log lines",
        "lanes": "Show goroutine lanes and bar positions (percent)",
        "payload": "Split the request payload into path parameters and body",
        "logs": "Show log lines with wall-clock timestamps",
        "detail": "Dump the full render model for a request",
    }
    for name in COMMANDS:
        sp = sub.add_parser(name, help=helps[name])
        sp.add_argument("--trace", required=True, help="Path to a JSON or YAML trace document")
        sp.add_argument("--request", help="Request id (default: the root request)")
        sp.add_argument(
            "--time-unit",
            choices=["ns", "us", "ms", "s"],
            help="Timestamp unit when the trace does not declare one",
        )
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    set_verbose(args.verbose)

    try:
        return _run(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130
    except FileNotFoundError as e:
        handle_exception(e, ErrorCode.E300, args.trace)
        return 1
    except OSError as e:
        handle_exception(e, ErrorCode.E302, args.trace)
        return 1
    except TraceError as e:
        handle_exception(e, e.code)
        return 1
    except ValueError as e:
        handle_exception(e, ErrorCode.E002)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
