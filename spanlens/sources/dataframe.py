# ABOUTME: Converts Phoenix-style span dataframes into Span records for the analysis engine.
# ABOUTME: Flattens attribute columns into dotted tag keys and derives start/duration in epoch milliseconds.

from __future__ import annotations

from datetime import datetime, timezone
import json
import logging
from typing import Any, Mapping

import pandas as pd

from spanlens.contracts import Span, coerce_tags

logger = logging.getLogger(__name__)

RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
ATTRIBUTE_PREFIX = "attributes."
ERROR_STATUS_CODES = frozenset({"ERROR", "STATUS_CODE_ERROR"})


def _nan_to_none(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    return value


def _to_rfc3339(value: Any) -> str | None:
    value = _nan_to_none(value)
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if value.tzinfo is None:
            value = value.tz_localize("UTC")
        return value.tz_convert("UTC").strftime(RFC3339_FORMAT)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).strftime(RFC3339_FORMAT)
    return str(value)


def _epoch_ms(value: Any) -> float | None:
    value = _nan_to_none(value)
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        timestamp = pd.Timestamp(value)
    except (TypeError, ValueError):
        return None
    if timestamp is pd.NaT:
        return None
    if timestamp.tzinfo is None:
        timestamp = timestamp.tz_localize("UTC")
    return float(timestamp.timestamp() * 1000.0)


def _flatten(prefix: str, value: Any, into: dict[str, Any]) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            _flatten(f"{prefix}.{key}" if prefix else str(key), item, into)
        return
    value = _nan_to_none(value)
    if value is None:
        return
    if hasattr(value, "tolist") and not isinstance(value, str):
        value = value.tolist()
    into[prefix] = value


def _parse_attribute_blob(value: Any) -> Mapping[str, Any] | None:
    if isinstance(value, Mapping):
        return value
    if isinstance(value, str) and value.strip().startswith("{"):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            return None
        return decoded if isinstance(decoded, Mapping) else None
    return None


def extract_tags(row: pd.Series) -> dict[str, str]:
    flattened: dict[str, Any] = {}
    blob = _parse_attribute_blob(row.get("attributes")) if "attributes" in row.index else None
    if blob:
        _flatten("", blob, flattened)
    for column in row.index:
        if not str(column).startswith(ATTRIBUTE_PREFIX):
            continue
        _flatten(str(column).removeprefix(ATTRIBUTE_PREFIX), row[column], flattened)
    return coerce_tags(flattened)


def _duration_ms(row: pd.Series) -> float:
    latency = _nan_to_none(row.get("latency_ms"))
    if latency is not None:
        return float(latency)
    start = _epoch_ms(row.get("start_time"))
    end = _epoch_ms(row.get("end_time"))
    if start is not None and end is not None:
        return max(0.0, end - start)
    return 0.0


def span_from_row(row: pd.Series) -> Span:
    parent = _nan_to_none(row.get("parent_id"))
    status_code = str(_nan_to_none(row.get("status_code")) or "UNSET").upper()
    trace_id = _nan_to_none(row.get("context.trace_id"))
    return Span(
        span_key=str(_nan_to_none(row.get("context.span_id")) or ""),
        operation_name=str(_nan_to_none(row.get("name")) or ""),
        start_time=_epoch_ms(row.get("start_time")) or 0.0,
        duration=_duration_ms(row),
        tags=extract_tags(row),
        parent_span_key=str(parent) if parent else None,
        is_error=status_code in ERROR_STATUS_CODES,
        trace_id=str(trace_id) if trace_id is not None else None,
    )


def sorted_spans_frame(dataframe: pd.DataFrame) -> pd.DataFrame:
    if dataframe.empty:
        return dataframe
    sort_columns = [column for column in ("start_time", "context.span_id") if column in dataframe.columns]
    if not sort_columns:
        return dataframe.reset_index(drop=True)
    return dataframe.sort_values(sort_columns, kind="mergesort").reset_index(drop=True)


def spans_from_dataframe(dataframe: pd.DataFrame, trace_id: str | None = None) -> list[Span]:
    if dataframe is None or dataframe.empty:
        return []
    frame = dataframe
    if trace_id is not None:
        if "context.trace_id" not in frame.columns:
            return []
        frame = frame[frame["context.trace_id"].astype(str) == trace_id]
    return [span_from_row(row) for _, row in sorted_spans_frame(frame).iterrows()]


class DataFrameSpanSource:
    def __init__(self, dataframe: pd.DataFrame) -> None:
        self._dataframe = pd.DataFrame() if dataframe is None else dataframe.copy()

    @property
    def dataframe(self) -> pd.DataFrame:
        return self._dataframe

    def trace_ids(self) -> list[str]:
        if self._dataframe.empty or "context.trace_id" not in self._dataframe.columns:
            return []
        return sorted(str(value) for value in self._dataframe["context.trace_id"].dropna().unique())

    def list_traces(self) -> list[dict[str, Any]]:
        dataframe = self._dataframe
        if dataframe.empty or "context.trace_id" not in dataframe.columns:
            return []
        traces: list[dict[str, Any]] = []
        for trace_id, group in dataframe.groupby("context.trace_id"):
            ordered = sorted_spans_frame(group)
            start = ordered["start_time"].min() if "start_time" in ordered.columns else None
            end = ordered["end_time"].max() if "end_time" in ordered.columns else None
            latency_ms = None
            if isinstance(start, pd.Timestamp) and isinstance(end, pd.Timestamp):
                latency_ms = float((end - start).total_seconds() * 1000.0)
            traces.append(
                {
                    "trace_id": str(trace_id),
                    "span_count": int(len(group)),
                    "start_time": _to_rfc3339(start),
                    "end_time": _to_rfc3339(end),
                    "latency_ms": latency_ms,
                }
            )
        return sorted(traces, key=lambda row: ((row["start_time"] or ""), row["trace_id"]))

    def get_spans(self, trace_id: str) -> list[Span]:
        spans = spans_from_dataframe(self._dataframe, trace_id=trace_id)
        if not spans:
            raise KeyError(trace_id)
        logger.debug("Loaded %d spans for trace %s", len(spans), trace_id)
        return spans
