"""TLK test configuration and fixtures."""
from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

import pytest

# Add src to path for imports
SRC_DIR = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC_DIR))

from tlk.trace.model import (  # noqa: E402
    AppMeta,
    CacheKeyspaceLocation,
    CacheOp,
    CacheResult,
    DBQuery,
    DBTransaction,
    Goroutine,
    LogField,
    LogMessage,
    PathSegment,
    PubSubPublish,
    Request,
    RequestType,
    RPCCall,
    RPCDefLocation,
    RPCMeta,
    SegmentType,
    ServiceMeta,
    Trace,
)


@pytest.fixture(autouse=True)
def reset_tlk_logger():
    """Undo the CLI logging setup so caplog sees tlk records in every test."""
    yield
    tlk_logger = logging.getLogger("tlk")
    tlk_logger.handlers.clear()
    tlk_logger.propagate = True
    tlk_logger.setLevel(logging.NOTSET)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the fixtures directory path."""
    return Path(__file__).parent.parent / "fixtures"


@pytest.fixture
def sample_trace_path(fixtures_dir: Path) -> Path:
    """Return the path to sample_trace.json."""
    return fixtures_dir / "traces" / "sample_trace.json"


@pytest.fixture
def child_request() -> Request:
    return Request(
        id="req-2",
        goid=10,
        type=RequestType.RPC,
        start_time=1250,
        end_time=1750,
        svc_name="billing",
        rpc_name="Charge",
        def_loc=1,
        inputs=[b'{"amount":5}'],
        outputs=[b'{"receipt":"r-1"}'],
    )


@pytest.fixture
def root_request(child_request: Request) -> Request:
    """Request spanning 1000-5000ms with one spawned goroutine at 2000-4000."""
    return Request(
        id="req-1",
        goid=1,
        type=RequestType.RPC,
        start_time=1000,
        end_time=5000,
        svc_name="users",
        rpc_name="GetOrder",
        def_loc=0,
        inputs=[b"42", b"7", b'{"a":1}'],
        outputs=[b'{"ok":true}'],
        children=[child_request],
        events=[
            RPCCall(goid=1, start_time=1200, end_time=1800, req_id="req-2", def_loc=1),
            Goroutine(goid=2, start_time=2000, end_time=4000),
            DBQuery(goid=2, start_time=2500, end_time=3000, query="SELECT 1"),
            LogMessage(goid=1, time=1500, level="INFO", msg="loading order",
                       fields=[LogField(key="order", value=7)]),
            DBTransaction(
                goid=1, start_time=3000, end_time=3500, txid=9,
                queries=[
                    DBQuery(goid=1, start_time=3100, end_time=3200, txid=9, query="UPDATE a"),
                    DBQuery(goid=1, start_time=3300, end_time=3400, txid=9, query="UPDATE b"),
                ],
            ),
            CacheOp(goid=1, start_time=3600, end_time=3700, operation="Get",
                    keys=["order/7"], result=CacheResult.NO_SUCH_KEY, def_loc=2),
            PubSubPublish(goid=1, start_time=4000, end_time=4200, topic="order-viewed",
                          message=b'{"x":1}', message_id="msg-1"),
            Goroutine(goid=3, start_time=4500, end_time=4800),
        ],
    )


@pytest.fixture
def sample_trace(root_request: Request) -> Trace:
    return Trace(
        id="trace-001",
        date=datetime(2024, 1, 1, 0, 0, 0),
        start_time=1000,
        end_time=5000,
        root=root_request,
        locations=[
            RPCDefLocation(filepath="users/api.go", src_line_start=12,
                           service_name="users", rpc_name="GetOrder"),
            RPCDefLocation(filepath="billing/charge.go", src_line_start=8,
                           service_name="billing", rpc_name="Charge"),
            CacheKeyspaceLocation(filepath="users/cache.go", src_line_start=5, var_name="orderCache"),
        ],
        meta=AppMeta(svcs=[
            ServiceMeta(name="users", rpcs=[
                RPCMeta(name="GetOrder", path=[
                    PathSegment(SegmentType.LITERAL, "users"),
                    PathSegment(SegmentType.PARAM, "id"),
                    PathSegment(SegmentType.LITERAL, "orders"),
                    PathSegment(SegmentType.PARAM, "order"),
                ]),
            ]),
            ServiceMeta(name="billing", rpcs=[
                RPCMeta(name="Charge", path=[PathSegment(SegmentType.LITERAL, "charge")]),
            ]),
        ]),
    )
