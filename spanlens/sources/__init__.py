# ABOUTME: Exposes span input adapters for dataframe, parquet, and JSON record exports.
# ABOUTME: Adapters only convert captured spans; they never talk to a tracing backend.

from spanlens.sources.dataframe import DataFrameSpanSource, span_from_row, spans_from_dataframe
from spanlens.sources.parquet import ParquetSpanSource, SpanFrameQuery, parse_filter_expr
from spanlens.sources.records import group_by_trace, load_span_records

__all__ = [
    "DataFrameSpanSource",
    "ParquetSpanSource",
    "SpanFrameQuery",
    "group_by_trace",
    "load_span_records",
    "parse_filter_expr",
    "span_from_row",
    "spans_from_dataframe",
]
