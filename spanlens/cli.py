# ABOUTME: Provides a command-line entrypoint that analyzes exported spans and prints TraceReport JSON.
# ABOUTME: Wires span sources, YAML configuration, and trace analysis; input errors exit with code 1.

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from dotenv import load_dotenv

from spanlens.analysis import AnalysisConfig, analyze_trace
from spanlens.config import ConfigError, load_config
from spanlens.contracts import Span
from spanlens.sources import ParquetSpanSource, group_by_trace, load_span_records

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Analyze LLM agent spans for one trace or a whole export.")
    source_group = parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--spans", help="JSON file with a list of span records.")
    source_group.add_argument("--parquet", help="Parquet export of a spans dataframe.")
    parser.add_argument("--trace-id", help="Analyze only this trace. Defaults to every trace in the input.")
    parser.add_argument("--config", help="YAML analysis configuration.")
    parser.add_argument("--output", help="Write the JSON report here instead of stdout.")
    parser.add_argument("--no-content-checks", action="store_true", help="Skip quality and security detectors.")
    parser.add_argument("--verbose", action="store_true")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _traces_from_records(path: str, trace_id: str | None) -> dict[str, list[Span]]:
    grouped = group_by_trace(load_span_records(path))
    if trace_id is None:
        return grouped
    if trace_id not in grouped:
        raise KeyError(trace_id)
    return {trace_id: grouped[trace_id]}


def _traces_from_parquet(path: str, trace_id: str | None) -> dict[str, list[Span]]:
    source = ParquetSpanSource(path)
    if trace_id is not None:
        return {trace_id: source.get_spans(trace_id)}
    return {listed: source.get_spans(listed) for listed in source.trace_ids()}


def _build_reports(args: argparse.Namespace, config: AnalysisConfig) -> list[dict[str, Any]]:
    if args.spans:
        traces = _traces_from_records(str(args.spans), args.trace_id)
    else:
        traces = _traces_from_parquet(str(args.parquet), args.trace_id)
    return [analyze_trace(spans, config=config, trace_id=trace_id).to_dict() for trace_id, spans in traces.items()]


def _emit(payload: Any, output: str | None) -> None:
    text = json.dumps(payload, indent=2, sort_keys=True)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        logger.info("Wrote report to %s", output)
        return
    print(text)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    _configure_logging(bool(args.verbose))
    load_dotenv(Path.cwd() / ".env", override=False)

    try:
        config = load_config(args.config)
        if args.no_content_checks:
            config.content_checks = False
        reports = _build_reports(args, config)
    except KeyError as exc:
        print(json.dumps({"error": f"unknown trace id: {exc.args[0]}"}, indent=2, sort_keys=True), file=sys.stderr)
        return 1
    except (FileNotFoundError, ConfigError, ValueError) as exc:
        print(json.dumps({"error": str(exc)}, indent=2, sort_keys=True), file=sys.stderr)
        return 1

    _emit(reports[0] if args.trace_id else reports, args.output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
