# ABOUTME: Validates the spanlens CLI over JSON and parquet span exports.
# ABOUTME: Checks stdout report shape, --output files, config wiring, and error exit codes on stderr.

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from spanlens import cli


def _write_spans(tmp_path: Path) -> Path:
    spans_path = tmp_path / "spans.json"
    spans_path.write_text(
        json.dumps(
            [
                {
                    "spanKey": "s1",
                    "operationName": "chat",
                    "startTime": 0,
                    "duration": 40,
                    "traceId": "t1",
                    "tags": {
                        "gen_ai.request.model": "gpt-4-turbo",
                        "gen_ai.usage.input_tokens": "1000",
                        "gen_ai.usage.output_tokens": "500",
                        "gen_ai.input.messages": json.dumps([{"role": "user", "content": "Summarize the ticket."}]),
                        "gen_ai.output.messages": json.dumps(
                            [{"role": "assistant", "content": "The ticket reports a login failure."}]
                        ),
                    },
                },
                {
                    "spanKey": "s2",
                    "operationName": "chat",
                    "startTime": 0,
                    "duration": 10,
                    "traceId": "t2",
                    "tags": {"gen_ai.request.model": "gpt-4o", "gen_ai.usage.input_tokens": "10"},
                },
            ]
        ),
        encoding="utf-8",
    )
    return spans_path


def test_cli_prints_one_report_per_trace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    spans_path = _write_spans(tmp_path)

    exit_code = cli.main(["--spans", str(spans_path)])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert [report["trace_id"] for report in payload] == ["t1", "t2"]
    assert payload[0]["summary"]["total_estimated_cost"] == pytest.approx(0.025)
    assert len(payload[0]["spans"][0]["quality_checks"]) == 5


def test_cli_single_trace_writes_output_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    spans_path = _write_spans(tmp_path)
    output_path = tmp_path / "report.json"

    exit_code = cli.main(["--spans", str(spans_path), "--trace-id", "t1", "--output", str(output_path)])

    assert exit_code == 0
    assert capsys.readouterr().out == ""
    report = json.loads(output_path.read_text(encoding="utf-8"))
    assert report["trace_id"] == "t1"
    assert report["span_count"] == 1


def test_cli_reads_parquet_and_honors_no_content_checks(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys,
) -> None:
    monkeypatch.chdir(tmp_path)
    parquet_path = tmp_path / "spans.parquet"
    pd.DataFrame(
        [
            {
                "context.span_id": "p1",
                "context.trace_id": "trace-p",
                "parent_id": None,
                "name": "chat",
                "start_time": pd.Timestamp("2024-01-01T00:00:00Z"),
                "end_time": pd.Timestamp("2024-01-01T00:00:00.500Z"),
                "status_code": "OK",
                "attributes.gen_ai.request.model": "gpt-4o",
                "attributes.gen_ai.input.messages": json.dumps([{"role": "user", "content": "hi"}]),
            }
        ]
    ).to_parquet(parquet_path, index=False)

    exit_code = cli.main(["--parquet", str(parquet_path), "--trace-id", "trace-p", "--no-content-checks"])

    assert exit_code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["trace_id"] == "trace-p"
    assert report["spans"][0]["quality_checks"] == []
    assert report["summary"]["workflow"]["nodes"][0]["duration_ms"] == pytest.approx(500.0)


def test_cli_applies_config_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    spans_path = _write_spans(tmp_path)
    config_path = tmp_path / "spanlens.yaml"
    config_path.write_text(
        "quality:\n  check_sentiment: false\nsecurity:\n  check_pii: false\n",
        encoding="utf-8",
    )

    exit_code = cli.main(["--spans", str(spans_path), "--trace-id", "t1", "--config", str(config_path)])

    assert exit_code == 0
    report = json.loads(capsys.readouterr().out)
    span = report["spans"][0]
    assert "sentiment" not in [check["type"] for check in span["quality_checks"]]
    assert "pii_detected" not in [check["type"] for check in span["security_checks"]]


def test_cli_unknown_trace_id_exits_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    spans_path = _write_spans(tmp_path)

    exit_code = cli.main(["--spans", str(spans_path), "--trace-id", "nope"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert '"error": "unknown trace id: nope"' in captured.err


def test_cli_bad_inputs_exit_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.chdir(tmp_path)
    spans_path = _write_spans(tmp_path)
    bad_config = tmp_path / "bad.yaml"
    bad_config.write_text("colour: blue\n", encoding="utf-8")

    missing_exit = cli.main(["--spans", str(tmp_path / "missing.json")])
    config_exit = cli.main(["--spans", str(spans_path), "--config", str(bad_config)])

    captured = capsys.readouterr()
    assert missing_exit == 1
    assert config_exit == 1
    assert "unknown key colour" in captured.err
    assert captured.out == ""


def test_cli_requires_a_span_source(capsys) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])

    assert excinfo.value.code == 2
