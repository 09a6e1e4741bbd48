"""Tests for payload correlation."""
from __future__ import annotations

import json

import pytest

from tlk.timeline.payload import (
    CodeBlock,
    ContentMode,
    PathParam,
    PathParams,
    correlate_payload,
    render_data,
)
from tlk.trace.model import Request, RequestType, Trace


def _users_request(inputs: list[bytes], svc: str = "users", rpc: str = "GetOrder") -> Request:
    return Request(id="r", goid=1, type=RequestType.RPC, start_time=1000,
                   svc_name=svc, rpc_name=rpc, inputs=inputs)


class TestCorrelatePayload:
    """Tests for correlate_payload."""

    def test_params_and_body(self, sample_trace: Trace, root_request: Request) -> None:
        result = correlate_payload(sample_trace, root_request)
        assert result.schema_resolved
        assert list(result.params) == [PathParam("id", "42"), PathParam("order", "7")]
        assert result.body == CodeBlock('{\n  "a": 1\n}', ContentMode.JSON)
        assert result.body_label == "payload"

    def test_params_only(self, sample_trace: Trace) -> None:
        result = correlate_payload(sample_trace, _users_request([b"42", b"7"]))
        assert [p.value for p in result.params] == ["42", "7"]
        assert result.body is None
        assert result.body_label is None

    def test_body_only(self, sample_trace: Trace, child_request: Request) -> None:
        result = correlate_payload(sample_trace, child_request)
        assert list(result.params) == []
        assert result.body.text == '{\n  "amount": 5\n}'
        assert result.body_label is None

    def test_fewer_inputs_than_params(self, sample_trace: Trace) -> None:
        result = correlate_payload(sample_trace, _users_request([b"42"]))
        assert list(result.params) == [PathParam("id", "42")]
        assert result.body is None

    def test_unresolvable_rpc_shows_last_element(self, sample_trace: Trace) -> None:
        req = _users_request([b"42", b'{"b":2}'], svc="ghost", rpc="Nope")
        result = correlate_payload(sample_trace, req)
        assert not result.schema_resolved
        assert list(result.params) == []
        assert result.body.text == '{\n  "b": 2\n}'

    def test_unresolvable_rpc_without_inputs(self, sample_trace: Trace) -> None:
        result = correlate_payload(sample_trace, _users_request([], svc="ghost"))
        assert result.body is None

    def test_body_not_json_is_raw(self, sample_trace: Trace) -> None:
        result = correlate_payload(sample_trace, _users_request([b"1", b"2", b"not json"]))
        assert result.body.text == "not json"

    def test_body_reindent_keeps_value(self, sample_trace: Trace) -> None:
        raw = b'{"list":[1,2,{"k":"v"}],"n":null}'
        result = correlate_payload(sample_trace, _users_request([b"1", b"2", raw]))
        assert json.loads(result.body.text) == json.loads(raw)

    def test_explicit_data_overrides_inputs(self, sample_trace: Trace, root_request: Request) -> None:
        result = correlate_payload(sample_trace, root_request, data=[b"9", b"8"])
        assert result.params.get("id") == "9"
        assert result.body is None

    def test_indent(self, sample_trace: Trace, child_request: Request) -> None:
        result = correlate_payload(sample_trace, child_request, indent=4)
        assert result.body.text == '{\n    "amount": 5\n}'


class TestPathParams:
    """Tests for PathParams lookup."""

    def test_get(self) -> None:
        params = PathParams([PathParam("id", "42")])
        assert params.get("id") == "42"
        assert params.get("missing") == ""


class TestRenderData:
    """Tests for render_data."""

    @pytest.mark.parametrize(
        "data, expected",
        [
            ([b'{"ok":true}'], '{\n  "ok": true\n}'),
            ([b"plain text"], "plain text"),
            ([], ""),
        ],
    )
    def test_render(self, data: list[bytes], expected: str) -> None:
        assert render_data(data).text == expected

    def test_sql_mode(self) -> None:
        assert render_data([b"SELECT 1"], mode=ContentMode.SQL).mode == ContentMode.SQL
