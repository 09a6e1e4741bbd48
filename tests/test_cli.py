"""Tests for the tlk command line."""
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path

import pytest

from tlk.cli import build_parser, main
from tlk.errors import set_verbose


@pytest.fixture(autouse=True)
def isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for key in ("TLK_TIME_UNIT", "TLK_LOG_LEVEL", "TLK_JSON_INDENT", "TLK_VALIDATE_SCHEMA"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    set_verbose(False)


def _run(capsys: pytest.CaptureFixture[str], *argv: str):
    code = main(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


class TestCommands:
    """Each subcommand prints JSON for the selected request."""

    def test_summary(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "summary", "--trace", str(sample_trace_path))
        assert code == 0
        data = json.loads(out)
        assert data["request_id"] == "req-1"
        assert (data["calls"], data["queries"], data["publishes"], data["logs"]) == (1, 3, 1, 2)
        assert data["children"] == ["req-2"]

    def test_lanes(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "lanes", "--trace", str(sample_trace_path))
        assert code == 0
        lanes = json.loads(out)
        assert [lane["goid"] for lane in lanes] == [1, 2]
        assert (lanes[1]["start"], lanes[1]["end"]) == (25, 75)
        assert lanes[1]["bars"] == [{"key": "ev-req-1-2-0", "type": "DBQuery", "start": 25, "end": 50}]

    def test_payload(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "payload", "--trace", str(sample_trace_path))
        assert code == 0
        data = json.loads(out)
        assert data["params"] == [{"name": "id", "value": "42"}, {"name": "order", "value": "7"}]
        assert data["body"] == '{\n  "a": 1\n}'

    def test_logs(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "logs", "--trace", str(sample_trace_path))
        assert code == 0
        assert json.loads(out) == [
            "00:00:00.500 INF loading order order=7 note=",
            '00:00:03.900 WRN slow request err="boom"',
        ]

    def test_detail_for_child(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "detail", "--trace", str(sample_trace_path), "--request", "req-2")
        assert code == 0
        data = json.loads(out)
        assert data["request_id"] == "req-2"
        assert data["definition"]["service"] == "billing"
        assert data["call"]["type"] == "RPCCall"
        assert data["location"]["kind"] == "rpc_def"

    def test_detail_for_root(self, capsys, sample_trace_path: Path) -> None:
        code, out, _ = _run(capsys, "detail", "--trace", str(sample_trace_path))
        assert code == 0
        data = json.loads(out)
        assert data["body"]["response"]["text"] == '{\n  "ok": true\n}'
        assert len(data["lanes"]) == 2


class TestErrors:
    """Failures print a TLK error code and exit non-zero."""

    def test_missing_trace_file(self, capsys, tmp_path: Path) -> None:
        code, _, err = _run(capsys, "summary", "--trace", str(tmp_path / "nope.json"))
        assert code == 1
        assert "TLK-E300" in err

    def test_trace_path_is_directory(self, capsys, tmp_path: Path) -> None:
        code, _, err = _run(capsys, "summary", "--trace", str(tmp_path))
        assert code == 1
        assert "TLK-E302" in err

    def test_unknown_request(self, capsys, sample_trace_path: Path) -> None:
        code, _, err = _run(capsys, "summary", "--trace", str(sample_trace_path), "--request", "ghost")
        assert code == 1
        assert "TLK-E204" in err

    def test_invalid_document(self, capsys, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text('{"id": 1}', encoding="utf-8")
        code, _, err = _run(capsys, "summary", "--trace", str(path))
        assert code == 1
        assert "TLK-E202" in err

    def test_bad_config_value(self, capsys, sample_trace_path: Path, tmp_path: Path) -> None:
        env_file = tmp_path / "tlk.env"
        env_file.write_text("TLK_JSON_INDENT=wide\n")
        code, _, err = _run(
            capsys, "--env-file", str(env_file), "summary", "--trace", str(sample_trace_path),
        )
        assert code == 1
        assert "TLK-E002" in err

    def test_missing_lane(self, capsys, tmp_path: Path) -> None:
        path = tmp_path / "broken.json"
        path.write_text(json.dumps({
            "id": "t", "date": "2024-01-01T00:00:00", "start_time": 0,
            "root": {"id": "r", "goid": 1, "type": "RPC", "start_time": 0, "end_time": 10,
                     "events": [{"type": "DBQuery", "goid": 5, "start_time": 1, "end_time": 2}]},
        }), encoding="utf-8")
        code, _, err = _run(capsys, "lanes", "--trace", str(path))
        assert code == 1
        assert "TLK-E203" in err

    def test_bad_time_unit_flag(self, sample_trace_path: Path) -> None:
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["summary", "--trace", str(sample_trace_path), "--time-unit", "h"])
        assert exc_info.value.code == 2


def test_module_entrypoint(sample_trace_path: Path) -> None:
    """``python -m tlk`` runs the same CLI."""
    result = subprocess.run(
        [sys.executable, "-m", "tlk", "summary", "--trace", str(sample_trace_path)],
        cwd=str(Path(__file__).parent.parent / "src"),
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, f"CLI failed: {result.stderr}"
    assert json.loads(result.stdout)["request_id"] == "req-1"
